"""
Shared fixtures for adversarial tests.

Provides the database pool for race condition tests. Tests that only need
the in-memory fakes use the root conftest fixtures and run without
PostgreSQL.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for adversarial tests."""
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=20, open=False)
    try:
        pool.open(wait=True, timeout=3)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_profiles(pool: ConnectionPool) -> Generator[ConnectionPool, None, None]:
    """Empty the profiles table before each database test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM profiles")
        conn.commit()
    yield pool

