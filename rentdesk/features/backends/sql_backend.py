"""
SQL entitlement backend.

Implements the EntitlementBackend protocol over the local SQLAlchemy tables.
Used for development, self-hosting and tests.

The feature services are blocking, so each call runs in a worker thread and
the caller's asyncio.wait_for can give up on it.
"""
import asyncio
from decimal import Decimal
from typing import List, Optional, Union
import logging

from sqlalchemy.exc import SQLAlchemyError

from rentdesk.core.config import Settings, settings
from rentdesk.core.errors import BackendUnavailableError
from rentdesk.core.metrics import backend_failures_total
from rentdesk.features.entitlements import policy
from rentdesk.features.plans.service import get_plan_feature_limits
from rentdesk.features.subscriptions.service import get_active_subscription
from rentdesk.features.usage.service import (
    get_usage_count,
    get_usage_for_month,
    get_usage_record,
    increment_usage,
    month_key,
)
from rentdesk.models.subscription import Subscription
from rentdesk.models.usage import PlanFeatureLimit, UsageRecord


logger = logging.getLogger(__name__)


class SqlEntitlementBackend:
    """SQLAlchemy implementation of EntitlementBackend."""

    def __init__(self, settings_obj: Optional[Settings] = None):
        self.settings = settings_obj or settings

    def _unavailable(self, operation: str, exc: Exception) -> BackendUnavailableError:
        backend_failures_total.inc(labels={"operation": operation, "reason": type(exc).__name__})
        logger.error(
            "[backend.sql] operation failed",
            extra={"operation": operation, "error": str(exc)},
        )
        return BackendUnavailableError(f"SQL backend {operation} failed: {exc}")

    async def _run(self, operation: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except SQLAlchemyError as e:
            raise self._unavailable(operation, e)

    async def fetch_subscription(self, account_id: str) -> Optional[Subscription]:
        return await self._run("fetch_subscription", get_active_subscription, account_id)

    async def fetch_plan_feature_limits(self, plan: str) -> List[PlanFeatureLimit]:
        return await self._run("fetch_plan_feature_limits", get_plan_feature_limits, plan)

    async def fetch_usage(self, account_id: str, agent_type: str, usage_month: str) -> Optional[UsageRecord]:
        return await self._run("fetch_usage", get_usage_record, account_id, agent_type, usage_month)

    async def fetch_month_usage(self, account_id: str, usage_month: str) -> List[UsageRecord]:
        return await self._run("fetch_month_usage", get_usage_for_month, account_id, usage_month)

    async def upsert_usage(
        self,
        account_id: str,
        agent_type: str,
        usage_month: str,
        tokens_used: int = 0,
        cost: Union[Decimal, float, int] = 0,
    ) -> None:
        await self._run(
            "upsert_usage",
            increment_usage,
            account_id,
            agent_type,
            usage_month,
            tokens_used=tokens_used,
            cost=cost,
        )

    def _agent_allowed(self, account_id: str, agent_type: str) -> bool:
        subscription = get_active_subscription(account_id)
        plan = policy.effective_plan(subscription, past_due_grace=self.settings.PAST_DUE_GRACE)
        if not policy.can_use_ai(plan):
            return False
        limits = get_plan_feature_limits(plan.id.value)
        usage_count = get_usage_count(
            account_id, agent_type, month_key(tz_name=self.settings.USAGE_TIMEZONE)
        )
        return policy.agent_access_allowed(
            plan,
            limits,
            agent_type,
            usage_count,
            zero_limit_policy=self.settings.AI_ZERO_LIMIT_POLICY,
        )

    async def check_agent_entitlement(self, account_id: str, agent_type: str) -> bool:
        return await self._run("check_agent_entitlement", self._agent_allowed, account_id, agent_type)

    async def aclose(self) -> None:
        return None
