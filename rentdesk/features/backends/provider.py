"""
Entitlement backend protocol.

Defines the storage/policy collaborator the evaluator and usage counter
talk to. The hosted backend-as-a-service and the local SQL store both
implement it, so policy code never depends on where the rows live.
"""
from decimal import Decimal
from typing import List, Optional, Protocol, Union

from rentdesk.models.subscription import Subscription
from rentdesk.models.usage import PlanFeatureLimit, UsageRecord


class EntitlementBackend(Protocol):
    """
    Protocol for entitlement backends.

    Implementations must raise BackendUnavailableError (rentdesk.core.errors)
    when the store cannot be reached; callers decide whether to fail closed
    or swallow.
    """

    async def fetch_subscription(self, account_id: str) -> Optional[Subscription]:
        """Latest subscription for the account, or None."""
        ...

    async def fetch_plan_feature_limits(self, plan: str) -> List[PlanFeatureLimit]:
        """Per-agent limit rows for a plan."""
        ...

    async def fetch_usage(self, account_id: str, agent_type: str, usage_month: str) -> Optional[UsageRecord]:
        """Usage row for (account, agent, month), or None when unused."""
        ...

    async def fetch_month_usage(self, account_id: str, usage_month: str) -> List[UsageRecord]:
        """Every agent's usage row for one month."""
        ...

    async def upsert_usage(
        self,
        account_id: str,
        agent_type: str,
        usage_month: str,
        tokens_used: int = 0,
        cost: Union[Decimal, float, int] = 0,
    ) -> None:
        """Increment usage_count by 1, creating the row if absent."""
        ...

    async def check_agent_entitlement(self, account_id: str, agent_type: str) -> bool:
        """Server-side combined check (plan, agent row, monthly cap)."""
        ...

    async def aclose(self) -> None:
        ...
