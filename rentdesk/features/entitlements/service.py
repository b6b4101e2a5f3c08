"""
rentdesk/features/entitlements/service.py

Entitlement evaluator.

Handles:
- Plan resolution for the signed-in account (cached subscription)
- Count limits (properties, tenants) and feature flags
- Per-agent AI access, computed locally or delegated to the backend
- Fail-closed behaviour: no account, backend errors and timeouts all deny
"""

from datetime import datetime, timezone
from typing import Callable, Optional
import asyncio
import logging

from rentdesk.core.config import Settings, settings
from rentdesk.core.metrics import entitlement_checks_total
from rentdesk.features.backends.provider import EntitlementBackend
from rentdesk.features.entitlements import policy
from rentdesk.features.plans.catalog import FREE_PLAN
from rentdesk.features.session.service import AccountSession
from rentdesk.features.subscriptions.service import (
    days_until_renewal,
    is_payment_overdue,
    is_subscription_active,
)
from rentdesk.features.usage.service import month_key
from rentdesk.models.plan import LimitStatus, PlanDefinition
from rentdesk.models.subscription import Subscription, SubscriptionStatus


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntitlementEvaluator:
    """
    Answers "may this account do X" for the account in `session`.

    Synchronous checks use the cached subscription (free until `refresh`
    has loaded one). `can_use_ai_agent` always goes to the backend.
    """

    def __init__(
        self,
        session: AccountSession,
        backend: EntitlementBackend,
        *,
        settings_obj: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.backend = backend
        self.settings = settings_obj or settings
        self.clock = clock or _utc_now
        self._subscription: Optional[Subscription] = None
        self._loaded_for: Optional[str] = None
        self._unsubscribe = session.subscribe(self._on_session_change)

    def close(self) -> None:
        self._unsubscribe()

    def _on_session_change(self, session: AccountSession) -> None:
        self._subscription = None
        self._loaded_for = None

    @property
    def timeout(self) -> float:
        return self.settings.BACKEND_TIMEOUT_SECONDS

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    @property
    def is_loaded(self) -> bool:
        return self.session.is_authenticated and self._loaded_for == self.session.account_id

    async def refresh(self) -> Optional[Subscription]:
        """
        Re-fetch the account's subscription.

        On failure or timeout the cache is cleared, which resolves to free.
        """
        account_id = self.session.account_id
        if not account_id:
            self._subscription = None
            self._loaded_for = None
            return None

        try:
            subscription = await asyncio.wait_for(
                self.backend.fetch_subscription(account_id), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "[entitlement] subscription fetch timed out, using free plan",
                extra={"account_id": account_id, "timeout_s": self.timeout},
            )
            subscription = None
        except Exception as e:
            logger.warning(
                "[entitlement] subscription fetch failed, using free plan",
                extra={"account_id": account_id, "error": str(e)},
            )
            subscription = None

        # The session may have changed while we were waiting
        if self.session.account_id != account_id:
            return None

        self._subscription = subscription
        self._loaded_for = account_id
        if subscription is not None and subscription.status is SubscriptionStatus.PAST_DUE:
            logger.warning(
                "[entitlement] payment overdue, plan features kept during grace"
                if self.settings.PAST_DUE_GRACE
                else "[entitlement] payment overdue, plan features revoked",
                extra={"account_id": account_id, "plan": subscription.plan},
            )
        return subscription

    @property
    def plan(self) -> PlanDefinition:
        """Plan whose features apply to the signed-in account."""
        if not self.is_loaded:
            return FREE_PLAN
        return policy.effective_plan(self._subscription, past_due_grace=self.settings.PAST_DUE_GRACE)

    def _record(self, check: str, allowed: bool) -> bool:
        entitlement_checks_total.inc(labels={"check": check, "result": "allow" if allowed else "deny"})
        return allowed

    def _check(self, check: str, rule: Callable[[PlanDefinition], bool]) -> bool:
        if not self.session.is_authenticated:
            return self._record(check, False)
        return self._record(check, rule(self.plan))

    def can_add_property(self, current_count: int) -> bool:
        return self._check("add_property", lambda plan: policy.can_add_property(plan, current_count))

    def can_add_tenant(self, current_count: int) -> bool:
        return self._check("add_tenant", lambda plan: policy.can_add_tenant(plan, current_count))

    def can_use_ai(self) -> bool:
        return self._check("use_ai", policy.can_use_ai)

    def can_generate_pdf(self) -> bool:
        return self._check("generate_pdf", policy.can_generate_pdf)

    def can_use_advanced_reports(self) -> bool:
        return self._check("advanced_reports", policy.can_use_advanced_reports)

    def can_use_multi_user(self) -> bool:
        return self._check("multi_user", policy.can_use_multi_user)

    def can_use_extended_ai(self) -> bool:
        return self._check("extended_ai", policy.can_use_extended_ai)

    def property_limit_status(self, current_count: int) -> LimitStatus:
        status = policy.limit_status("properties", self.plan.max_properties, current_count)
        if not self.session.is_authenticated:
            return status.model_copy(update={"allowed": False})
        return status

    def tenant_limit_status(self, current_count: int) -> LimitStatus:
        status = policy.limit_status("tenants", self.plan.max_tenants, current_count)
        if not self.session.is_authenticated:
            return status.model_copy(update={"allowed": False})
        return status

    def is_subscription_active(self) -> bool:
        return is_subscription_active(self._subscription)

    def is_payment_overdue(self) -> bool:
        return is_payment_overdue(self._subscription)

    def days_until_renewal(self) -> int:
        return days_until_renewal(self._subscription, now=self.clock())

    async def can_use_ai_agent(self, agent_type: str) -> bool:
        """
        Whether the account may invoke `agent_type` right now.

        Never raises: any error or a timeout resolves to False.
        """
        account_id = self.session.account_id
        if not account_id:
            return self._record("ai_agent", False)

        try:
            allowed = await asyncio.wait_for(self._check_agent(account_id, agent_type), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "[entitlement] ai agent check timed out",
                extra={"account_id": account_id, "agent_type": agent_type, "timeout_s": self.timeout},
            )
            allowed = False
        except Exception as e:
            logger.error(
                "[entitlement] ai agent check failed",
                extra={"account_id": account_id, "agent_type": agent_type, "error": str(e)},
            )
            allowed = False

        return self._record("ai_agent", allowed)

    async def _check_agent(self, account_id: str, agent_type: str) -> bool:
        # Always re-read: another session may have changed plan or usage
        await self.refresh()
        plan = self.plan
        if not policy.can_use_ai(plan):
            return False

        if self.settings.AI_ENTITLEMENT_MODE == "delegated":
            return bool(await self.backend.check_agent_entitlement(account_id, agent_type))

        limits = await self.backend.fetch_plan_feature_limits(plan.id.value)
        feature_limit = policy.find_feature_limit(limits, agent_type)
        if feature_limit is None or not feature_limit.enabled:
            return False

        usage = await self.backend.fetch_usage(account_id, agent_type, month_key(self.clock(), self.settings.USAGE_TIMEZONE))
        usage_count = usage.usage_count if usage else 0

        return policy.agent_usage_allowed(
            feature_limit,
            usage_count,
            zero_limit_policy=self.settings.AI_ZERO_LIMIT_POLICY,
        )
