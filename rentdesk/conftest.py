# rentdesk/conftest.py
import os
import pytest

# In-memory SQLite unless a real test database is provided
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    """
    Create all database tables before running tests.

    Runs once per test session against TEST_DATABASE_URL.
    """
    from rentdesk.core.database import create_all_tables
    create_all_tables()
    yield


@pytest.fixture(scope="function", autouse=True)
def local_settings(monkeypatch):
    """
    Pin policy settings to their defaults so a local .env cannot leak in.

    Tests that need another value monkeypatch the shared settings object.
    """
    from rentdesk.core.config import settings

    monkeypatch.setattr(settings, "ENTITLEMENT_BACKEND", "sql")
    monkeypatch.setattr(settings, "AI_ENTITLEMENT_MODE", "local")
    monkeypatch.setattr(settings, "AI_ZERO_LIMIT_POLICY", "unlimited")
    monkeypatch.setattr(settings, "PAST_DUE_GRACE", True)
    monkeypatch.setattr(settings, "USAGE_TIMEZONE", "UTC")
    monkeypatch.setattr(settings, "BACKEND_TIMEOUT_SECONDS", 5.0)
    yield settings


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """
    Reset database tables before each test and seed default agent limits.
    """
    from rentdesk.core.database import reset_database
    from rentdesk.features.plans.service import seed_plan_feature_limits

    reset_database()
    seed_plan_feature_limits()
    yield


@pytest.fixture(scope="function", autouse=True)
def reset_metrics():
    from rentdesk.core.metrics import METRICS

    METRICS.reset()
    yield


@pytest.fixture
def account_id():
    from uuid import uuid4
    return f"acct-{uuid4()}"


@pytest.fixture
def account_session(account_id):
    from rentdesk.features.session.service import AccountSession
    return AccountSession(account_id)


@pytest.fixture
def sql_backend():
    from rentdesk.features.backends.sql_backend import SqlEntitlementBackend
    return SqlEntitlementBackend()
