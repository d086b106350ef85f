import os
from collections.abc import Generator

import pytest

from doctranslate.config.settings import Settings
from doctranslate.store.connection import close_pool, init_pool
from doctranslate.store.postgres_store import PostgresJobStore


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "doctranslate_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        PostgresJobStore(close_pool_on_exit=False).initialize()
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run.")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def postgres_store(integration_pool: None) -> Generator[PostgresJobStore, None, None]:
    store = PostgresJobStore(close_pool_on_exit=False)
    store.initialize()
    store.clear()
    try:
        yield store
    finally:
        store.clear()
