"""
Global pytest configuration and fixtures.
"""
import datetime as dt
import os
from decimal import Decimal
from typing import Dict

import pytest

from shp_billing.config import BillingEngineConfig, reload_config
from shp_billing.config.logging_config import reset_logging
from shp_billing.db.engine import (
    create_engine_from_url,
    create_session_factory,
    create_tables,
    reset_engine,
    session_scope,
)
from shp_billing.db.models import Client, Developer, Task
from shp_billing.services.billing_service import BillingService
from shp_billing.services.retry_handler import RetryHandler

# Mid-year, so a reset on January 1st of 2025 is current
FIXED_NOW = dt.datetime(2025, 6, 15, 12, 0, 0)


@pytest.fixture(scope="session")
def test_env_vars() -> Dict[str, str]:
    """Test environment variables for configuration."""
    return {
        'DATABASE_URL': 'sqlite:///:memory:',
        'DEFAULT_HOURLY_RATE': '75',
        'ENVIRONMENT': 'testing',
        'DEBUG': 'true',
        'LOG_LEVEL': 'DEBUG',
        'MAX_RETRIES': '3',
        'RETRY_DELAY': '0',
    }


@pytest.fixture
def mock_env(test_env_vars, monkeypatch):
    """Mock environment variables for testing."""
    for key, value in test_env_vars.items():
        monkeypatch.setenv(key, value)

    # Clear the global config to force reload with test values
    import shp_billing.config.settings
    shp_billing.config.settings._config = None

    yield test_env_vars

    # Clean up
    shp_billing.config.settings._config = None


@pytest.fixture
def test_config(mock_env) -> BillingEngineConfig:
    """Test configuration instance."""
    return reload_config()


@pytest.fixture
def fixed_now() -> dt.datetime:
    """The time every service in the tests sees."""
    return FIXED_NOW


@pytest.fixture
def billing_config() -> BillingEngineConfig:
    """Configuration independent of the environment and .env files."""
    return BillingEngineConfig(
        _env_file=None,
        DATABASE_URL='sqlite:///:memory:',
        DEFAULT_HOURLY_RATE='75',
        ENVIRONMENT='testing',
        MAX_RETRIES='3',
        RETRY_DELAY='0',
        RECALCULATION_WORKERS='4',
    )


@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite engine so worker threads share one database."""
    engine = create_engine_from_url(f"sqlite:///{tmp_path / 'billing.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test database."""
    return create_session_factory(db_engine)


@pytest.fixture
def billing_service(session_factory, billing_config, fixed_now) -> BillingService:
    """BillingService with a fixed clock and no retry delay."""
    return BillingService(
        session_factory,
        config=billing_config,
        clock=lambda: fixed_now,
        retry_handler=RetryHandler(max_retries=3, base_delay=0, sleep=lambda s: None),
    )


@pytest.fixture
def make_client(session_factory):
    """Create a client row directly and return its id."""

    def _make_client(
        allowance="10",
        used="0",
        last_year_reset=dt.datetime(2025, 1, 1),
        domain_name=None,
    ) -> str:
        with session_scope(session_factory) as session:
            client = Client(
                domain_name=domain_name or f"client-{os.urandom(4).hex()}.example",
                annual_hour_allowance=Decimal(allowance),
                yearly_hours_used=Decimal(used),
                last_year_reset=last_year_reset,
            )
            session.add(client)
            session.flush()
            return client.id

    return _make_client


@pytest.fixture
def make_task(session_factory):
    """Create a task for a client and return its id."""

    def _make_task(client_id: str, title: str = "Maintenance") -> str:
        with session_scope(session_factory) as session:
            task = Task(client_id=client_id, title=title)
            session.add(task)
            session.flush()
            return task.id

    return _make_task


@pytest.fixture
def make_developer(session_factory):
    """Create a developer and return its id."""

    def _make_developer(name: str = "Jane Roe", hourly_rate=None) -> str:
        with session_scope(session_factory) as session:
            developer = Developer(
                name=name,
                hourly_rate=Decimal(hourly_rate) if hourly_rate is not None else None,
            )
            session.add(developer)
            session.flush()
            return developer.id

    return _make_developer


@pytest.fixture
def load_client(session_factory):
    """Read a client row in a fresh session."""

    def _load_client(client_id: str) -> Client:
        with session_scope(session_factory) as session:
            return session.get(Client, client_id)

    return _load_client


@pytest.fixture(autouse=True)
def cleanup_global_state():
    """Reset logging handlers and the CLI engine after each test."""
    yield

    reset_logging()
    reset_engine()


# Pytest configuration for different test types
def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (threads, real database locks)"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on location."""
    for item in items:
        # Add unit marker for tests in tests/unit/
        if "tests/unit/" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
