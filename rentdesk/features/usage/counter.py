"""
rentdesk/features/usage/counter.py

Per-session AI usage counter.

track_ai_usage is fire-and-forget: the caller's workflow never fails because
usage could not be recorded. Failures are logged, counted and handed to any
registered failure listeners instead.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Union
import asyncio
import logging

from rentdesk.core.config import Settings, settings
from rentdesk.core.logging import log_event
from rentdesk.core.metrics import usage_tracked_total, usage_tracking_failures_total
from rentdesk.features.backends.provider import EntitlementBackend
from rentdesk.features.entitlements import policy
from rentdesk.features.session.service import AccountSession
from rentdesk.features.usage.service import month_key, usage_status
from rentdesk.models.agent import AI_AGENTS
from rentdesk.models.usage import AgentUsage, PlanFeatureLimit


logger = logging.getLogger(__name__)


@dataclass
class UsageTrackingFailure:
    account_id: Optional[str]
    agent_type: str
    usage_month: Optional[str]
    reason: str
    error: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


FailureListener = Callable[[UsageTrackingFailure], None]


def agent_max_usage(feature_limit: Optional[PlanFeatureLimit]) -> int:
    """Display maximum for an agent: the enabled row's limit, otherwise 0."""
    if feature_limit is None or not feature_limit.enabled:
        return 0
    return feature_limit.monthly_limit or 0


class UsageCounter:
    def __init__(
        self,
        session: AccountSession,
        backend: EntitlementBackend,
        *,
        settings_obj: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.backend = backend
        self.settings = settings_obj or settings
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._failure_listeners: List[FailureListener] = []

    def add_failure_listener(self, listener: FailureListener) -> Callable[[], None]:
        self._failure_listeners.append(listener)

        def remove() -> None:
            if listener in self._failure_listeners:
                self._failure_listeners.remove(listener)

        return remove

    def current_month(self) -> str:
        return month_key(self.clock(), self.settings.USAGE_TIMEZONE)

    def _report_failure(self, failure: UsageTrackingFailure) -> None:
        usage_tracking_failures_total.inc(labels={"agent_type": failure.agent_type, "reason": failure.reason})
        log_event(
            "warning",
            "[usage] tracking failed",
            account_id=failure.account_id,
            event_type="usage.tracking_failed",
            error_code=failure.reason,
            extra={"agent_type": failure.agent_type, "usage_month": failure.usage_month, "error": failure.error},
        )
        for listener in list(self._failure_listeners):
            try:
                listener(failure)
            except Exception:
                logger.exception("[usage] failure listener raised")

    async def track_ai_usage(
        self,
        agent_type: str,
        tokens_used: int = 0,
        cost: Union[Decimal, float, int] = 0,
    ) -> bool:
        """
        Record one use of `agent_type` for the signed-in account.

        Returns True when the increment was stored. Never raises and never
        retries.
        """
        account_id = self.session.account_id
        if not account_id:
            self._report_failure(
                UsageTrackingFailure(
                    account_id=None,
                    agent_type=agent_type,
                    usage_month=None,
                    reason="not_authenticated",
                )
            )
            return False

        usage_month = self.current_month()
        try:
            await asyncio.wait_for(
                self.backend.upsert_usage(
                    account_id,
                    agent_type,
                    usage_month,
                    tokens_used=tokens_used,
                    cost=cost,
                ),
                timeout=self.settings.BACKEND_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            self._report_failure(
                UsageTrackingFailure(
                    account_id=account_id,
                    agent_type=agent_type,
                    usage_month=usage_month,
                    reason="timeout",
                )
            )
            return False
        except Exception as e:
            self._report_failure(
                UsageTrackingFailure(
                    account_id=account_id,
                    agent_type=agent_type,
                    usage_month=usage_month,
                    reason=type(e).__name__,
                    error=str(e),
                )
            )
            return False

        usage_tracked_total.inc(labels={"agent_type": agent_type})
        logger.info(
            "[usage] tracked",
            extra={"account_id": account_id, "agent_type": agent_type, "usage_month": usage_month},
        )
        return True

    async def get_usage(self, agent_type: str) -> int:
        """Current month's count for one agent (0 when signed out or no row)."""
        account_id = self.session.account_id
        if not account_id:
            return 0
        record = await self.backend.fetch_usage(account_id, agent_type, self.current_month())
        return record.usage_count if record else 0

    async def get_usage_summary(self, plan: str) -> List[AgentUsage]:
        """
        Usage line for every agent, re-read from the backend.

        Counts are never kept locally; concurrent sessions may have
        incremented them.
        """
        account_id = self.session.account_id
        limits = await self.backend.fetch_plan_feature_limits(plan)
        counts = {}
        if account_id:
            for record in await self.backend.fetch_month_usage(account_id, self.current_month()):
                counts[record.agent_type] = record.usage_count

        summary = []
        for agent in AI_AGENTS:
            agent_type = agent.agent_type.value
            count = counts.get(agent_type, 0)
            max_usage = agent_max_usage(policy.find_feature_limit(limits, agent_type))
            band = usage_status(count, max_usage)
            summary.append(
                AgentUsage(
                    agent_type=agent_type,
                    count=count,
                    max=max_usage,
                    status=band.status,
                    percentage=band.percentage,
                )
            )
        return summary
