import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database (local SQL entitlement store)
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Entitlement backend: "sql" talks to DATABASE_URL, "http" to the hosted BaaS
    ENTITLEMENT_BACKEND: str = "sql"
    BAAS_URL: Optional[str] = None
    BAAS_API_KEY: Optional[str] = None
    BACKEND_TIMEOUT_SECONDS: float = 5.0

    # Entitlement policy
    AI_ENTITLEMENT_MODE: str = "local"  # local | delegated
    AI_ZERO_LIMIT_POLICY: str = "unlimited"  # unlimited | disabled
    PAST_DUE_GRACE: bool = True

    # Usage accounting
    USAGE_TIMEZONE: str = "UTC"

    # App URLs
    BACKEND_URL: str = "http://localhost:8000"
    CORS_ORIGINS: str = "http://localhost:5173"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("rentdesk")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    if cfg.ENTITLEMENT_BACKEND == "http":
        required_keys = ["BAAS_URL", "BAAS_API_KEY"]
    else:
        required_keys = ["DATABASE_URL"]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]

    problems = []
    if missing:
        problems.append(f"Missing required configuration: {', '.join(missing)}")
    if cfg.ENTITLEMENT_BACKEND not in ("sql", "http"):
        problems.append(f"ENTITLEMENT_BACKEND must be 'sql' or 'http', got {cfg.ENTITLEMENT_BACKEND!r}")
    if cfg.AI_ZERO_LIMIT_POLICY not in ("unlimited", "disabled"):
        problems.append(f"AI_ZERO_LIMIT_POLICY must be 'unlimited' or 'disabled', got {cfg.AI_ZERO_LIMIT_POLICY!r}")
    if cfg.AI_ENTITLEMENT_MODE not in ("local", "delegated"):
        problems.append(f"AI_ENTITLEMENT_MODE must be 'local' or 'delegated', got {cfg.AI_ENTITLEMENT_MODE!r}")

    for message in problems:
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
