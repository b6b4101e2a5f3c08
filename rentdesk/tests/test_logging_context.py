"""Tests for structured logging and request_id propagation."""

import json
import logging

from fastapi.testclient import TestClient

from rentdesk.core.logging import (
    JsonFormatter,
    PrettyFormatter,
    _safe_truncate,
    latency_bucket_ms,
    log_event,
    request_id_ctx_var,
)
from rentdesk.main import app


def _record(msg="hello", **extra):
    record = logging.LogRecord("rentdesk", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_request_id_in_response_and_logs(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="rentdesk"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"


def test_incoming_request_id_is_echoed():
    client = TestClient(app)
    response = client.get("/healthz", headers={"x-request-id": "rid-123"})
    assert response.headers.get("x-request-id") == "rid-123"


def test_request_id_in_error_response():
    client = TestClient(app)
    response = client.get("/v1/entitlements/ai-agents/payment")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 401
    assert rid
    assert response.json()["error"]["request_id"] == rid


def test_json_formatter_includes_extra_fields():
    line = JsonFormatter().format(_record(request_id="rid-1", agent_type="fiscal"))
    payload = json.loads(line)
    assert payload["message"] == "hello"
    assert payload["request_id"] == "rid-1"
    assert payload["agent_type"] == "fiscal"
    assert payload["timestamp"].endswith("Z")


def test_pretty_formatter_includes_request_id():
    line = PrettyFormatter().format(_record(request_id="rid-2", plan="pro"))
    assert "[rid=rid-2]" in line
    assert "plan=pro" in line


def test_log_event_uses_context_request_id(caplog):
    token = request_id_ctx_var.set("rid-ctx")
    try:
        with caplog.at_level(logging.INFO, logger="rentdesk"):
            log_event("info", "usage.checked", account_id="acct-1", event_type="usage", extra={"note": "x" * 600})
    finally:
        request_id_ctx_var.reset(token)

    record = next(r for r in caplog.records if r.getMessage() == "usage.checked")
    assert record.request_id == "rid-ctx"
    assert record.account_id == "acct-1"
    assert record.note.endswith("...<truncated>")


def test_safe_truncate_and_latency_buckets():
    assert _safe_truncate("short") == "short"
    assert len(_safe_truncate("y" * 1000, limit=10)) == 10 + len("...<truncated>")
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(2500) == ">=1000ms"
