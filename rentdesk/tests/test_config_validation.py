"""Tests for configuration validation."""

import logging

import pytest

from rentdesk.core.config import Settings, validate_config


def make_settings(**overrides):
    defaults = dict(
        ENV="development",
        DATABASE_URL="sqlite:///rentdesk.db",
        ENTITLEMENT_BACKEND="sql",
        BAAS_URL=None,
        BAAS_API_KEY=None,
        AI_ZERO_LIMIT_POLICY="unlimited",
        AI_ENTITLEMENT_MODE="local",
    )
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def test_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.ENTITLEMENT_BACKEND == "sql"
    assert cfg.BACKEND_TIMEOUT_SECONDS == 5.0
    assert cfg.AI_ZERO_LIMIT_POLICY == "unlimited"
    assert cfg.PAST_DUE_GRACE is True
    assert cfg.USAGE_TIMEZONE == "UTC"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("AI_ZERO_LIMIT_POLICY", "disabled")
    monkeypatch.setenv("PAST_DUE_GRACE", "false")
    cfg = Settings(_env_file=None)
    assert cfg.AI_ZERO_LIMIT_POLICY == "disabled"
    assert cfg.PAST_DUE_GRACE is False


def test_valid_sql_config_passes():
    assert validate_config(strict=True, settings_obj=make_settings()) is True


def test_valid_http_config_passes():
    cfg = make_settings(
        DATABASE_URL=None,
        ENTITLEMENT_BACKEND="http",
        BAAS_URL="https://baas.example.test",
        BAAS_API_KEY="anon-key",
    )
    assert validate_config(strict=True, settings_obj=cfg) is True


def test_missing_baas_keys_fail_in_strict_mode():
    cfg = make_settings(ENTITLEMENT_BACKEND="http")
    with pytest.raises(RuntimeError) as exc:
        validate_config(strict=True, settings_obj=cfg)
    assert "BAAS_URL" in str(exc.value)


def test_missing_database_url_warns_when_not_strict(caplog):
    cfg = make_settings(DATABASE_URL=None)
    logger = logging.getLogger("rentdesk.test_config")
    with caplog.at_level(logging.WARNING, logger="rentdesk.test_config"):
        assert validate_config(strict=False, settings_obj=cfg, logger=logger) is True
    assert "DATABASE_URL" in caplog.text


@pytest.mark.parametrize(
    "field,value",
    [
        ("ENTITLEMENT_BACKEND", "mongo"),
        ("AI_ZERO_LIMIT_POLICY", "sometimes"),
        ("AI_ENTITLEMENT_MODE", "remote"),
    ],
)
def test_invalid_enumerated_values_fail(field, value):
    cfg = make_settings(**{field: value})
    with pytest.raises(RuntimeError):
        validate_config(strict=True, settings_obj=cfg)


def test_secrets_are_not_logged(caplog):
    cfg = make_settings(ENTITLEMENT_BACKEND="http", BAAS_URL="https://baas.example.test", BAAS_API_KEY=None)
    logger = logging.getLogger("rentdesk.test_config")
    with caplog.at_level(logging.WARNING, logger="rentdesk.test_config"):
        validate_config(strict=False, settings_obj=cfg, logger=logger)
    assert "BAAS_API_KEY" in caplog.text
    assert "baas.example.test" not in caplog.text
