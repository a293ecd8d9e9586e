"""
Shared fixtures for integration tests.

Database tests run against the PostgreSQL instance named by DATABASE_URL
and are skipped when it cannot be reached.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.postgres import PostgresProfileStore, run_migrations
from src.config.settings import get_settings


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests."""
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    try:
        pool.open(wait=True, timeout=3)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def store(pool: ConnectionPool) -> Generator[PostgresProfileStore, None, None]:
    """Profile store over an emptied profiles table."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM profiles")
        conn.commit()
    yield PostgresProfileStore(pool)
