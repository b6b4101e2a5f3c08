"""
rentdesk/features/plans/catalog.py

Static plan catalog.

Handles:
- The build-time table of plan definitions (free, pro, business)
- Resolution of stored plan values, with free as the fallback
- Plan ordering for upgrade/downgrade detection
"""

from decimal import Decimal
from typing import List, Optional, Union
import logging

from rentdesk.models.plan import (
    PlanDefinition,
    PlanFeatures,
    PlanId,
    PlanPriority,
    UNLIMITED,
)


logger = logging.getLogger(__name__)


FREE_PLAN = PlanDefinition(
    id=PlanId.FREE,
    name="Free",
    description="Perfect for getting started",
    price=Decimal("0"),
    features=PlanFeatures(
        max_properties=1,
        max_tenants=1,
        ai_enabled=False,
        pdf_generation=False,
        multi_user=False,
        advanced_reports=False,
        extended_ai=False,
        priority=PlanPriority.LOW,
    ),
)

PRO_PLAN = PlanDefinition(
    id=PlanId.PRO,
    name="Pro",
    description="For active landlords",
    price=Decimal("19"),
    popular=True,
    features=PlanFeatures(
        max_properties=10,
        max_tenants=50,
        ai_enabled=True,
        pdf_generation=True,
        multi_user=False,
        advanced_reports=False,
        extended_ai=False,
        priority=PlanPriority.MEDIUM,
    ),
)

BUSINESS_PLAN = PlanDefinition(
    id=PlanId.BUSINESS,
    name="Business",
    description="For property management professionals",
    price=Decimal("49"),
    features=PlanFeatures(
        max_properties=UNLIMITED,
        max_tenants=UNLIMITED,
        ai_enabled=True,
        pdf_generation=True,
        multi_user=True,
        advanced_reports=True,
        extended_ai=True,
        priority=PlanPriority.HIGH,
    ),
)

# Display and upgrade order
PLAN_ORDER = (PlanId.FREE, PlanId.PRO, PlanId.BUSINESS)


def resolve_plan_id(value: Union[PlanId, str, None]) -> PlanId:
    """Map a stored plan value to a PlanId; unknown or missing values become free."""
    if isinstance(value, PlanId):
        return value
    if value is None:
        return PlanId.FREE
    try:
        return PlanId(str(value).strip().lower())
    except ValueError:
        logger.warning(
            "[plans] unknown plan id, falling back to free",
            extra={"plan": value},
        )
        return PlanId.FREE


def get_plan_definition(plan: Union[PlanId, str, None]) -> PlanDefinition:
    """Return the catalog entry for a plan id (free for anything unknown)."""
    plan_id = resolve_plan_id(plan)
    if plan_id is PlanId.FREE:
        return FREE_PLAN
    elif plan_id is PlanId.PRO:
        return PRO_PLAN
    elif plan_id is PlanId.BUSINESS:
        return BUSINESS_PLAN
    # New PlanId members must get an explicit arm above
    logger.error("[plans] plan id without catalog entry", extra={"plan": plan_id.value})
    return FREE_PLAN


def list_plans() -> List[PlanDefinition]:
    return [get_plan_definition(plan_id) for plan_id in PLAN_ORDER]


def plan_rank(plan: Union[PlanId, str, None]) -> int:
    return PLAN_ORDER.index(resolve_plan_id(plan))


def compare_plans(a: Union[PlanId, str, None], b: Union[PlanId, str, None]) -> int:
    """Return -1, 0 or 1 as plan a is below, equal to or above plan b."""
    rank_a, rank_b = plan_rank(a), plan_rank(b)
    return (rank_a > rank_b) - (rank_a < rank_b)


def plan_satisfies(plan: Union[PlanId, str, None], required: Optional[PlanId]) -> bool:
    """True if plan is at least the required tier."""
    if required is None:
        return True
    return compare_plans(plan, required) >= 0
