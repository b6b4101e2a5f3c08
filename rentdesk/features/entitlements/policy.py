"""Pure entitlement rules over a plan definition.

No I/O here: every function is a deterministic function of its arguments so
the same rules serve the in-process evaluator and the SQL backend's
server-side agent check.
"""
from typing import Iterable, Optional

from rentdesk.models.plan import LimitStatus, PlanDefinition, UNLIMITED
from rentdesk.models.subscription import Subscription, SubscriptionStatus
from rentdesk.models.usage import PlanFeatureLimit
from rentdesk.features.plans.catalog import FREE_PLAN, get_plan_definition

ZERO_LIMIT_UNLIMITED = "unlimited"
ZERO_LIMIT_DISABLED = "disabled"


def within_limit(limit: int, current_count: int) -> bool:
    return limit == UNLIMITED or current_count < limit


def can_add_property(plan: PlanDefinition, current_count: int) -> bool:
    return within_limit(plan.features.max_properties, current_count)


def can_add_tenant(plan: PlanDefinition, current_count: int) -> bool:
    return within_limit(plan.features.max_tenants, current_count)


def can_use_ai(plan: PlanDefinition) -> bool:
    return plan.features.ai_enabled


def can_generate_pdf(plan: PlanDefinition) -> bool:
    return plan.features.pdf_generation


def can_use_advanced_reports(plan: PlanDefinition) -> bool:
    return plan.features.advanced_reports


def can_use_multi_user(plan: PlanDefinition) -> bool:
    return plan.features.multi_user


def can_use_extended_ai(plan: PlanDefinition) -> bool:
    return plan.features.extended_ai


def limit_status(resource: str, limit: int, current_count: int) -> LimitStatus:
    if limit == UNLIMITED:
        return LimitStatus(
            resource=resource,
            limit=None,
            current_count=current_count,
            allowed=True,
            remaining="unlimited",
        )
    return LimitStatus(
        resource=resource,
        limit=limit,
        current_count=current_count,
        allowed=current_count < limit,
        remaining=max(0, limit - current_count),
    )


def effective_plan(subscription: Optional[Subscription], *, past_due_grace: bool = True) -> PlanDefinition:
    """Plan whose features apply to an account right now.

    - no subscription: free
    - active: the subscribed plan
    - past_due: the subscribed plan while past_due_grace is on, else free
    - pending, suspended, canceled: free
    """
    if subscription is None:
        return FREE_PLAN
    status = subscription.status
    if status is SubscriptionStatus.ACTIVE:
        return get_plan_definition(subscription.plan)
    if status is SubscriptionStatus.PAST_DUE and past_due_grace:
        return get_plan_definition(subscription.plan)
    return FREE_PLAN


def find_feature_limit(limits: Iterable[PlanFeatureLimit], agent_type: str) -> Optional[PlanFeatureLimit]:
    for limit in limits:
        if limit.agent_type == agent_type:
            return limit
    return None


def agent_usage_allowed(
    feature_limit: Optional[PlanFeatureLimit],
    usage_count: int,
    *,
    zero_limit_policy: str = ZERO_LIMIT_UNLIMITED,
) -> bool:
    """Per-agent cap check.

    A missing or disabled row never allows. A NULL or 0 monthly_limit means
    unlimited under the "unlimited" policy and not allowed under "disabled".
    """
    if feature_limit is None or not feature_limit.enabled:
        return False
    monthly_limit = feature_limit.monthly_limit
    if not monthly_limit:
        return zero_limit_policy == ZERO_LIMIT_UNLIMITED
    return usage_count < monthly_limit


def agent_access_allowed(
    plan: PlanDefinition,
    limits: Iterable[PlanFeatureLimit],
    agent_type: str,
    usage_count: int,
    *,
    zero_limit_policy: str = ZERO_LIMIT_UNLIMITED,
) -> bool:
    if not can_use_ai(plan):
        return False
    return agent_usage_allowed(
        find_feature_limit(limits, agent_type),
        usage_count,
        zero_limit_policy=zero_limit_policy,
    )