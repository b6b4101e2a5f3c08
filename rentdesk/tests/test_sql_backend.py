"""
Tests for the SQL entitlement backend and default agent limits.
"""
import time

import pytest
from sqlalchemy.exc import OperationalError

from rentdesk.core.errors import BackendUnavailableError
from rentdesk.core.metrics import backend_failures_total
from rentdesk.features.backends import sql_backend as sql_backend_module
from rentdesk.features.backends.sql_backend import SqlEntitlementBackend
from rentdesk.features.entitlements.service import EntitlementEvaluator
from rentdesk.features.plans.service import (
    get_plan_feature_limits,
    seed_plan_feature_limits,
    set_plan_feature_limit,
)
from rentdesk.features.session.service import AccountSession
from rentdesk.features.subscriptions.service import change_plan, create_default_subscription
from rentdesk.features.usage.counter import UsageCounter
from rentdesk.features.usage.service import increment_usage, month_key
from rentdesk.models.plan import PlanId


def test_seeded_pro_limits():
    limits = {limit.agent_type: limit for limit in get_plan_feature_limits("pro")}

    assert limits["communication"].monthly_limit == 50
    assert limits["payment"].monthly_limit == 30
    assert limits["fiscal"].monthly_limit == 10
    assert limits["summary"].monthly_limit == 10
    assert limits["diagnostic"].enabled is False
    assert limits["contract"].enabled is False


def test_seeded_business_limits_are_null():
    limits = get_plan_feature_limits("business")

    assert len(limits) == 6
    assert all(limit.enabled and limit.monthly_limit is None for limit in limits)


def test_free_plan_has_no_rows():
    assert get_plan_feature_limits("free") == []


def test_seed_keeps_operator_edits():
    set_plan_feature_limit("pro", "payment", monthly_limit=99)

    seed_plan_feature_limits()

    limits = {limit.agent_type: limit for limit in get_plan_feature_limits("pro")}
    assert limits["payment"].monthly_limit == 99


@pytest.mark.asyncio
async def test_fetch_subscription(sql_backend, account_id):
    assert await sql_backend.fetch_subscription(account_id) is None

    create_default_subscription(account_id)
    sub = await sql_backend.fetch_subscription(account_id)

    assert sub.account_id == account_id
    assert sub.plan == "free"


@pytest.mark.asyncio
async def test_upsert_and_fetch_usage(sql_backend, account_id):
    await sql_backend.upsert_usage(account_id, "payment", "2024-05", tokens_used=5)
    await sql_backend.upsert_usage(account_id, "payment", "2024-05", tokens_used=5)

    record = await sql_backend.fetch_usage(account_id, "payment", "2024-05")
    month = await sql_backend.fetch_month_usage(account_id, "2024-05")

    assert record.usage_count == 2
    assert record.tokens_used == 10
    assert [r.agent_type for r in month] == ["payment"]


@pytest.mark.asyncio
async def test_check_agent_entitlement_pro_limit(sql_backend, account_id):
    create_default_subscription(account_id)
    change_plan(account_id, "pro")
    current = month_key()

    for _ in range(9):
        increment_usage(account_id, "fiscal", current)
    assert await sql_backend.check_agent_entitlement(account_id, "fiscal") is True

    increment_usage(account_id, "fiscal", current)
    assert await sql_backend.check_agent_entitlement(account_id, "fiscal") is False


@pytest.mark.asyncio
async def test_check_agent_entitlement_free_plan(sql_backend, account_id):
    create_default_subscription(account_id)

    assert await sql_backend.check_agent_entitlement(account_id, "communication") is False


@pytest.mark.asyncio
async def test_check_agent_entitlement_business_null_limit(sql_backend, account_id, local_settings, monkeypatch):
    create_default_subscription(account_id)
    change_plan(account_id, "business")

    assert await sql_backend.check_agent_entitlement(account_id, "contract") is True

    monkeypatch.setattr(local_settings, "AI_ZERO_LIMIT_POLICY", "disabled")
    assert await sql_backend.check_agent_entitlement(account_id, "contract") is False


@pytest.mark.asyncio
async def test_database_errors_become_backend_unavailable(sql_backend, monkeypatch):
    def boom(account_id):
        raise OperationalError("SELECT 1", {}, Exception("db down"))

    monkeypatch.setattr(sql_backend_module, "get_active_subscription", boom)

    with pytest.raises(BackendUnavailableError):
        await sql_backend.fetch_subscription("acct-x")
    assert backend_failures_total.value({"operation": "fetch_subscription", "reason": "OperationalError"}) == 1


@pytest.mark.asyncio
async def test_slow_database_times_out_to_free_plan(sql_backend, account_id, local_settings, monkeypatch):
    create_default_subscription(account_id)
    pro = change_plan(account_id, "pro")
    monkeypatch.setattr(local_settings, "BACKEND_TIMEOUT_SECONDS", 0.05)

    def slow_subscription(_account_id):
        time.sleep(0.3)
        return pro

    monkeypatch.setattr(sql_backend_module, "get_active_subscription", slow_subscription)
    evaluator = EntitlementEvaluator(AccountSession(account_id), sql_backend)

    started = time.monotonic()
    await evaluator.refresh()
    elapsed = time.monotonic() - started

    assert elapsed < 0.25
    assert evaluator.plan.id is PlanId.FREE
    assert await evaluator.can_use_ai_agent("payment") is False


@pytest.mark.asyncio
async def test_slow_usage_write_reports_timeout(sql_backend, account_id, local_settings, monkeypatch):
    monkeypatch.setattr(local_settings, "BACKEND_TIMEOUT_SECONDS", 0.05)

    def slow_increment(*args, **kwargs):
        time.sleep(0.3)

    monkeypatch.setattr(sql_backend_module, "increment_usage", slow_increment)
    counter = UsageCounter(AccountSession(account_id), sql_backend)
    failures = []
    counter.add_failure_listener(failures.append)

    assert await counter.track_ai_usage("payment") is False
    assert [f.reason for f in failures] == ["timeout"]


@pytest.mark.asyncio
async def test_agent_check_uses_backend_timezone(account_id, local_settings, monkeypatch):
    create_default_subscription(account_id)
    change_plan(account_id, "pro")
    seen = {}

    def spy_month_key(now=None, tz_name=None):
        seen["tz_name"] = tz_name
        return month_key(now, tz_name)

    monkeypatch.setattr(sql_backend_module, "month_key", spy_month_key)
    backend = SqlEntitlementBackend(local_settings.model_copy(update={"USAGE_TIMEZONE": "America/Toronto"}))

    assert await backend.check_agent_entitlement(account_id, "payment") is True
    assert seen["tz_name"] == "America/Toronto"
