"""
Hosted backend-as-a-service implementation of EntitlementBackend.

Talks to the BaaS REST interface (PostgREST dialect):
- table reads:  GET  {BAAS_URL}/rest/v1/<table>?<column>=eq.<value>
- procedures:   POST {BAAS_URL}/rest/v1/rpc/<function>

The hosted schema keys rows by user_id; it is mapped to account_id here.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
import logging
import re

import httpx

from rentdesk.core.config import Settings, settings
from rentdesk.core.errors import BackendUnavailableError
from rentdesk.core.metrics import backend_failures_total
from rentdesk.models.subscription import Subscription, SubscriptionStatus
from rentdesk.models.usage import PlanFeatureLimit, UsageRecord


logger = logging.getLogger(__name__)


_FRACTION = re.compile(r"\.(\d+)")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    """Parse a Postgres timestamp; fractions of any length are cut or padded to microseconds."""
    if not value:
        return None
    value = value.replace("Z", "+00:00")
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    return datetime.fromisoformat(value)


def _subscription_from_row(row: Dict[str, Any]) -> Subscription:
    return Subscription(
        id=str(row["id"]),
        account_id=str(row["user_id"]),
        plan=row.get("plan") or "free",
        status=SubscriptionStatus(row.get("status") or "active"),
        current_period_start=_parse_ts(row.get("current_period_start")),
        current_period_end=_parse_ts(row.get("current_period_end")),
        cancel_at_period_end=bool(row.get("cancel_at_period_end", False)),
        created_at=_parse_ts(row.get("created_at")),
        updated_at=_parse_ts(row.get("updated_at")),
    )


def _usage_from_row(row: Dict[str, Any]) -> UsageRecord:
    return UsageRecord(
        account_id=str(row["user_id"]),
        agent_type=row["agent_type"],
        usage_month=row["usage_month"],
        usage_count=int(row.get("usage_count") or 0),
        tokens_used=int(row.get("tokens_used") or 0),
        cost=Decimal(str(row.get("cost") or 0)),
    )


class HttpEntitlementBackend:
    """httpx implementation of EntitlementBackend for the hosted BaaS."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        settings_obj: Optional[Settings] = None,
    ):
        cfg = settings_obj or settings
        self.base_url = (base_url or cfg.BAAS_URL or "").rstrip("/")
        self.api_key = api_key or cfg.BAAS_API_KEY

        if not self.base_url:
            raise BackendUnavailableError("BAAS_URL not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=cfg.BACKEND_TIMEOUT_SECONDS,
        )

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            backend_failures_total.inc(labels={"operation": operation, "reason": type(e).__name__})
            logger.error(
                "[backend.http] request failed",
                extra={"operation": operation, "path": path, "error": str(e)},
            )
            raise BackendUnavailableError(f"Hosted backend {operation} failed: {e}")

        if not response.content:
            return None
        return response.json()

    async def _select(self, operation: str, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        rows = await self._request(operation, "GET", f"/rest/v1/{table}", params={"select": "*", **params})
        return rows or []

    async def fetch_subscription(self, account_id: str) -> Optional[Subscription]:
        rows = await self._select(
            "fetch_subscription",
            "subscriptions",
            {"user_id": f"eq.{account_id}", "order": "created_at.desc", "limit": "1"},
        )
        if not rows:
            return None
        return _subscription_from_row(rows[0])

    async def fetch_plan_feature_limits(self, plan: str) -> List[PlanFeatureLimit]:
        rows = await self._select("fetch_plan_feature_limits", "ai_plan_features", {"plan": f"eq.{plan}"})
        return [
            PlanFeatureLimit(
                plan=row["plan"],
                agent_type=row["agent_type"],
                monthly_limit=row.get("monthly_limit"),
                enabled=bool(row.get("enabled", False)),
            )
            for row in rows
        ]

    async def fetch_usage(self, account_id: str, agent_type: str, usage_month: str) -> Optional[UsageRecord]:
        rows = await self._select(
            "fetch_usage",
            "ai_usage_tracking",
            {
                "user_id": f"eq.{account_id}",
                "agent_type": f"eq.{agent_type}",
                "usage_month": f"eq.{usage_month}",
                "limit": "1",
            },
        )
        if not rows:
            return None
        return _usage_from_row(rows[0])

    async def fetch_month_usage(self, account_id: str, usage_month: str) -> List[UsageRecord]:
        rows = await self._select(
            "fetch_month_usage",
            "ai_usage_tracking",
            {"user_id": f"eq.{account_id}", "usage_month": f"eq.{usage_month}"},
        )
        return [_usage_from_row(row) for row in rows]

    async def upsert_usage(
        self,
        account_id: str,
        agent_type: str,
        usage_month: str,
        tokens_used: int = 0,
        cost: Union[Decimal, float, int] = 0,
    ) -> None:
        # track_ai_usage derives the month on the server; usage_month is not sent
        await self._request(
            "upsert_usage",
            "POST",
            "/rest/v1/rpc/track_ai_usage",
            json={
                "user_id_param": account_id,
                "agent_type_param": agent_type,
                "tokens_used_param": tokens_used,
                "cost_param": float(cost),
            },
        )

    async def check_agent_entitlement(self, account_id: str, agent_type: str) -> bool:
        result = await self._request(
            "check_agent_entitlement",
            "POST",
            "/rest/v1/rpc/can_use_ai_agent",
            json={"user_id_param": account_id, "agent_type_param": agent_type},
        )
        return result is True

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
