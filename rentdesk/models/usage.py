"""
rentdesk/models/usage.py

Usage models for metered AI agents.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UsageRecord(BaseModel):
    """
    Monthly usage counter for one (account, agent) pair.

    Rows are created lazily on first use in a month and only ever
    incremented. A month with no row means zero usage.
    """
    model_config = ConfigDict(frozen=True)

    account_id: str
    agent_type: str
    usage_month: str  # YYYY-MM
    usage_count: int = 0
    tokens_used: int = 0
    cost: Decimal = Decimal("0")


class PlanFeatureLimit(BaseModel):
    """
    Per-agent monthly cap for a plan.

    Independent from PlanFeatures.ai_enabled: an agent can be disabled
    for a plan that has AI in general.
    """
    model_config = ConfigDict(frozen=True)

    plan: str
    agent_type: str
    monthly_limit: Optional[int] = None
    enabled: bool = True


class UsageBand(str, Enum):
    AVAILABLE = "available"
    WARNING = "warning"
    EXHAUSTED = "exhausted"
    UNLIMITED = "unlimited"


class UsageStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: UsageBand
    percentage: float


class AgentUsage(BaseModel):
    """Usage line shown next to each AI agent."""
    model_config = ConfigDict(frozen=True)

    agent_type: str
    count: int
    max: int
    status: UsageBand
    percentage: float
