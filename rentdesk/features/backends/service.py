"""Backend selection from configuration."""
from typing import Optional

from rentdesk.core.config import Settings, settings
from rentdesk.features.backends.http_backend import HttpEntitlementBackend
from rentdesk.features.backends.provider import EntitlementBackend
from rentdesk.features.backends.sql_backend import SqlEntitlementBackend


def uses_hosted_backend(settings_obj: Optional[Settings] = None) -> bool:
    cfg = settings_obj or settings
    return cfg.ENTITLEMENT_BACKEND == "http"


def get_backend(settings_obj: Optional[Settings] = None) -> EntitlementBackend:
    """Build the configured backend (ENTITLEMENT_BACKEND = sql | http)."""
    cfg = settings_obj or settings
    if uses_hosted_backend(cfg):
        return HttpEntitlementBackend(settings_obj=cfg)
    return SqlEntitlementBackend(settings_obj=cfg)
