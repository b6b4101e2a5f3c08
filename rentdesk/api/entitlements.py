"""
Entitlement API.

- GET /v1/entitlements: plan flags and property/tenant limit status
- GET /v1/entitlements/ai-agents/{agent_type}: whether one AI agent may run now
"""
import logging

from fastapi import APIRouter, Query

from rentdesk.api.deps import Evaluator
from rentdesk.core.errors import NotFoundError
from rentdesk.models.agent import get_agent


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/entitlements", tags=["entitlements"])


@router.get("")
async def get_entitlements(
    evaluator: Evaluator,
    properties: int = Query(0, ge=0, description="Properties the account currently has"),
    tenants: int = Query(0, ge=0, description="Tenants the account currently has"),
):
    """
    Snapshot of what the account may do on its current plan.

    Counts come from the caller; this service does not own properties or
    tenants.
    """
    await evaluator.refresh()
    subscription = evaluator.subscription
    plan = evaluator.plan

    return {
        "account_id": evaluator.session.account_id,
        "plan": plan.id.value,
        "subscription_status": subscription.status.value if subscription else None,
        "is_payment_overdue": evaluator.is_payment_overdue(),
        "features": {
            "ai": evaluator.can_use_ai(),
            "pdf_generation": evaluator.can_generate_pdf(),
            "advanced_reports": evaluator.can_use_advanced_reports(),
            "multi_user": evaluator.can_use_multi_user(),
            "extended_ai": evaluator.can_use_extended_ai(),
        },
        "can_add_property": evaluator.can_add_property(properties),
        "can_add_tenant": evaluator.can_add_tenant(tenants),
        "limits": {
            "properties": evaluator.property_limit_status(properties).model_dump(),
            "tenants": evaluator.tenant_limit_status(tenants).model_dump(),
        },
    }


@router.get("/ai-agents/{agent_type}")
async def get_ai_agent_entitlement(agent_type: str, evaluator: Evaluator):
    agent = get_agent(agent_type)
    if agent is None:
        raise NotFoundError(f"Unknown AI agent: {agent_type}")

    allowed = await evaluator.can_use_ai_agent(agent.agent_type.value)
    return {
        "agent_type": agent.agent_type.value,
        "required_plan": agent.required_plan.value,
        "plan": evaluator.plan.id.value,
        "allowed": allowed,
    }
