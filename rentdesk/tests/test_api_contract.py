"""
HTTP contract tests for the entitlement API.
"""
import pytest
from fastapi.testclient import TestClient

from rentdesk.api.deps import get_entitlement_backend
from rentdesk.main import app
from rentdesk.tests.mocks import FakeBackend, unavailable

client = TestClient(app)


def _headers(account_id):
    return {"X-Account-Id": account_id}


@pytest.fixture
def pro_account(account_id):
    client.post("/v1/subscription", headers=_headers(account_id))
    client.post("/v1/subscription/plan", headers=_headers(account_id), json={"plan": "pro"})
    return account_id


def test_plans_catalog():
    resp = client.get("/v1/plans")
    assert resp.status_code == 200
    body = resp.json()
    plans = {p["id"]: p for p in body["data"]}

    assert body["count"] == 3
    assert plans["free"]["features"]["max_tenants"] == 1
    assert plans["free"]["ai_agents"] == []
    assert plans["pro"]["ai_agents"] == ["communication", "payment", "fiscal", "summary"]
    assert len(plans["business"]["ai_agents"]) == 6
    assert plans["business"]["currency"] == "CAD"


def test_missing_account_header_is_401():
    resp = client.get("/v1/entitlements")
    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["code"] == "not_authenticated"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_entitlements_without_subscription_are_free(account_id):
    resp = client.get("/v1/entitlements", headers=_headers(account_id), params={"properties": 1, "tenants": 1})
    assert resp.status_code == 200
    body = resp.json()

    assert body["plan"] == "free"
    assert body["subscription_status"] is None
    assert body["can_add_property"] is False
    assert body["can_add_tenant"] is False
    assert body["features"]["ai"] is False
    assert body["limits"]["tenants"]["remaining"] == 0


def test_entitlements_for_pro(pro_account):
    resp = client.get("/v1/entitlements", headers=_headers(pro_account), params={"properties": 3})
    body = resp.json()

    assert body["plan"] == "pro"
    assert body["can_add_property"] is True
    assert body["limits"]["properties"]["remaining"] == 7
    assert body["features"]["pdf_generation"] is True
    assert body["features"]["advanced_reports"] is False


def test_negative_counts_rejected(account_id):
    resp = client.get("/v1/entitlements", headers=_headers(account_id), params={"properties": -1})
    assert resp.status_code == 422


def test_subscription_lifecycle(account_id):
    created = client.post("/v1/subscription", headers=_headers(account_id))
    assert created.status_code == 201
    assert created.json()["data"]["plan"] == "free"

    upgraded = client.post("/v1/subscription/plan", headers=_headers(account_id), json={"plan": "business"})
    assert upgraded.status_code == 200
    assert upgraded.json()["change"] == "upgrade"

    downgraded = client.post("/v1/subscription/plan", headers=_headers(account_id), json={"plan": "pro"})
    assert downgraded.json()["change"] == "downgrade"

    current = client.get("/v1/subscription", headers=_headers(account_id)).json()
    assert current["plan"] == "pro"
    assert current["is_active"] is True
    assert current["days_until_renewal"] >= 29


def test_same_plan_change_is_conflict(pro_account):
    resp = client.post("/v1/subscription/plan", headers=_headers(pro_account), json={"plan": "pro"})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"


def test_unknown_plan_is_validation_error(pro_account):
    resp = client.post("/v1/subscription/plan", headers=_headers(pro_account), json={"plan": "gold"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_plan_change_without_subscription_is_404(account_id):
    resp = client.post("/v1/subscription/plan", headers=_headers(account_id), json={"plan": "pro"})
    assert resp.status_code == 404


def test_past_due_status_keeps_features(pro_account):
    resp = client.post("/v1/subscription/status", headers=_headers(pro_account), json={"status": "past_due"})
    assert resp.status_code == 200

    body = client.get("/v1/entitlements", headers=_headers(pro_account)).json()
    assert body["plan"] == "pro"
    assert body["is_payment_overdue"] is True


def test_cancel_immediately_drops_to_free(pro_account):
    resp = client.post("/v1/subscription/cancel", headers=_headers(pro_account), json={"at_period_end": False})
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "canceled"

    body = client.get("/v1/entitlements", headers=_headers(pro_account)).json()
    assert body["plan"] == "free"


def test_subscription_writes_need_local_store(pro_account, local_settings, monkeypatch):
    monkeypatch.setattr(local_settings, "ENTITLEMENT_BACKEND", "http")

    resp = client.post("/v1/subscription/plan", headers=_headers(pro_account), json={"plan": "business"})
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "subscription_writes_unavailable"


def test_ai_agent_entitlement(pro_account):
    allowed = client.get("/v1/entitlements/ai-agents/payment", headers=_headers(pro_account))
    assert allowed.status_code == 200
    assert allowed.json()["allowed"] is True

    blocked = client.get("/v1/entitlements/ai-agents/contract", headers=_headers(pro_account))
    assert blocked.json()["allowed"] is False
    assert blocked.json()["required_plan"] == "business"


def test_unknown_ai_agent_is_404(pro_account):
    resp = client.get("/v1/entitlements/ai-agents/astrologer", headers=_headers(pro_account))
    assert resp.status_code == 404


def test_track_and_read_usage(pro_account):
    for _ in range(3):
        resp = client.post("/v1/usage/ai-agents/fiscal", headers=_headers(pro_account), json={"tokens_used": 20})
        assert resp.status_code == 202
        assert resp.json()["tracked"] is True

    body = client.get("/v1/usage/ai-agents", headers=_headers(pro_account)).json()
    lines = {line["agent_type"]: line for line in body["data"]}

    assert body["plan"] == "pro"
    assert lines["fiscal"]["count"] == 3
    assert lines["fiscal"]["max"] == 10
    assert lines["fiscal"]["status"] == "available"
    assert lines["payment"]["count"] == 0


def test_usage_limit_blocks_agent(pro_account):
    for _ in range(10):
        client.post("/v1/usage/ai-agents/summary", headers=_headers(pro_account))

    body = client.get("/v1/entitlements/ai-agents/summary", headers=_headers(pro_account)).json()
    assert body["allowed"] is False

    usage = client.get("/v1/usage/ai-agents", headers=_headers(pro_account)).json()
    summary = next(line for line in usage["data"] if line["agent_type"] == "summary")
    assert summary["status"] == "exhausted"
    assert summary["percentage"] == 100.0


def test_tracking_failure_still_accepted(account_id):
    backend = FakeBackend()
    backend.fail_with = unavailable()
    app.dependency_overrides[get_entitlement_backend] = lambda: backend
    try:
        resp = client.post("/v1/usage/ai-agents/payment", headers=_headers(account_id))
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 202
    assert resp.json()["tracked"] is False


def test_ai_agent_check_backend_down_denies(account_id):
    backend = FakeBackend()
    backend.fail_with = unavailable()
    app.dependency_overrides[get_entitlement_backend] = lambda: backend
    try:
        resp = client.get("/v1/entitlements/ai-agents/payment", headers=_headers(account_id))
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 200
    assert resp.json()["allowed"] is False


def test_healthz_and_readyz():
    assert client.get("/healthz").json() == {"status": "ok"}

    ready = client.get("/readyz")
    assert ready.status_code == 200
    assert ready.json()["backend"] == "sql"


def test_metrics_exposed_after_requests(account_id):
    client.get("/v1/entitlements", headers=_headers(account_id))

    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "entitlement_checks_total" in resp.text


def test_readyz_reports_database_down(monkeypatch):
    import rentdesk.api.health as health_api

    monkeypatch.setattr(health_api, "check_connection", lambda: False)

    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert resp.json()["detail"] == "database unreachable"
