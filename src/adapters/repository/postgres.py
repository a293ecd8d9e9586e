"""
PostgreSQL repository adapter - Implements ProfileStore protocol.

This module provides the PostgreSQL implementation of the domain's
profile store port using psycopg3 with raw SQL.

Error Mapping
-------------
The domain expects store failures as typed results, not driver errors:

- lookup/update matching no row   -> ProfileNotFound (code PGRST116)
- unique_violation (23505)        -> ProfileConflict, with the violated
                                     column derived from the constraint name
- any other psycopg error         -> ProfileStoreError (code = SQLSTATE)

Uniqueness on id, username and email is enforced by the table's
constraints, which PostgreSQL checks atomically. Concurrent inserts for the
same id therefore yield exactly one row and one ProfileConflict.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors, sql
from psycopg_pool import ConnectionPool

from src.domain.exceptions import ProfileConflict, ProfileNotFound, ProfileStoreError
from src.domain.ports import Profile

logger = logging.getLogger(__name__)

# Constraint names created by migrations/001_create_profiles.sql
_CONSTRAINT_FIELDS = {
    "profiles_pkey": "id",
    "profiles_username_key": "username",
    "profiles_email_key": "email",
}

_UPDATABLE_COLUMNS = frozenset({"username", "email", "email_verified"})

_PROFILE_COLUMNS = "id, username, email, email_verified"


def _row_to_profile(row: tuple) -> Profile:
    return Profile(id=str(row[0]), username=row[1], email=row[2], email_verified=row[3])


class PostgresProfileStore:
    """
    Implements ProfileStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def get_by_id(self, profile_id: str) -> Profile:
        return self._fetch_one("id", profile_id)

    def get_by_username(self, username: str) -> Profile:
        return self._fetch_one("username", username)

    def get_by_email(self, email: str) -> Profile:
        return self._fetch_one("email", email)

    def update(self, profile_id: str, fields: dict[str, Any]) -> Profile:
        """
        Update columns of an existing profile.

        Args:
            profile_id: Profile id (== provider user id)
            fields: Column values; only username, email and email_verified
                may be updated

        Returns:
            Profile after the update

        Raises:
            ProfileNotFound: No row with this id
            ProfileConflict: New username/email already used
        """
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if not fields or unknown:
            raise ValueError(f"Invalid profile update columns: {sorted(unknown) or 'none'}")

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in fields
        )
        query = sql.SQL(
            "UPDATE profiles SET {}, updated_at = NOW() WHERE id = %s RETURNING " + _PROFILE_COLUMNS
        ).format(assignments)

        with self._errors():
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(query, (*fields.values(), profile_id))
                row = cursor.fetchone()
                conn.commit()

        if row is None:
            raise ProfileNotFound(f"No profile with id {profile_id}")
        return _row_to_profile(row)

    def insert(self, profile: Profile) -> Profile:
        """
        Insert a new profile row.

        Raises:
            ProfileConflict: id, username or email already present
        """
        query = f"""
            INSERT INTO profiles (id, username, email, email_verified)
            VALUES (%s, %s, %s, %s)
            RETURNING {_PROFILE_COLUMNS}
        """

        with self._errors():
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(
                    query,
                    (profile.id, profile.username, profile.email, profile.email_verified),
                )
                row = cursor.fetchone()
                conn.commit()

        return _row_to_profile(row)

    def _fetch_one(self, column: str, value: str) -> Profile:
        query = sql.SQL("SELECT " + _PROFILE_COLUMNS + " FROM profiles WHERE {} = %s").format(
            sql.Identifier(column)
        )

        with self._errors():
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(query, (value,))
                row = cursor.fetchone()

        if row is None:
            raise ProfileNotFound(f"No profile with {column} {value}")
        return _row_to_profile(row)

    @contextmanager
    def _errors(self) -> Iterator[None]:
        """Translate psycopg errors into domain store errors."""
        try:
            yield
        except errors.UniqueViolation as e:
            constraint = e.diag.constraint_name
            raise ProfileConflict(
                f"Unique constraint violated: {constraint}",
                field=_CONSTRAINT_FIELDS.get(constraint or ""),
            ) from e
        except psycopg.Error as e:
            logger.error("Profile store error (%s): %s", e.sqlstate, e)
            raise ProfileStoreError(str(e), e.sqlstate or "unknown") from e


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
