"""
rentdesk/models/plan.py

Plan models for plan-gated features.

A plan is a named tier (free, pro, business) bundling feature limits and a
monthly price.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


UNLIMITED = -1


class PlanId(str, Enum):
    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


class PlanPriority(str, Enum):
    """Support priority bundled with a plan."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PlanFeatures(BaseModel):
    """
    Feature limits of a plan.

    Numeric limits use -1 for "no cap". Flags are plain booleans.
    """
    model_config = ConfigDict(frozen=True)

    max_properties: int
    max_tenants: int
    ai_enabled: bool
    pdf_generation: bool
    multi_user: bool
    advanced_reports: bool
    extended_ai: bool
    priority: PlanPriority


class PlanDefinition(BaseModel):
    """
    Immutable catalog entry for one plan id.

    PlanDefinition does NOT include:
    - Per-agent AI caps (see PlanFeatureLimit)
    - Payment processor identifiers
    """
    model_config = ConfigDict(frozen=True)

    id: PlanId
    name: str
    description: str
    price: Decimal
    currency: str = "CAD"
    interval: str = "month"
    popular: bool = False
    features: PlanFeatures

    @property
    def max_properties(self) -> int:
        return self.features.max_properties

    @property
    def max_tenants(self) -> int:
        return self.features.max_tenants


class LimitStatus(BaseModel):
    """Remaining capacity for a countable resource (properties, tenants)."""
    model_config = ConfigDict(frozen=True)

    resource: str
    limit: Optional[int]  # None = unlimited
    current_count: int
    allowed: bool
    remaining: int | str  # int or "unlimited"
