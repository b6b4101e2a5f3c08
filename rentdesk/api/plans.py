"""
Plan catalog API.

- GET /v1/plans: plans in display order, with the AI agents each unlocks
"""
from fastapi import APIRouter

from rentdesk.features.plans.catalog import list_plans, plan_satisfies
from rentdesk.models.agent import AI_AGENTS


router = APIRouter(prefix="/v1/plans", tags=["plans"])


@router.get("")
async def get_plans():
    plans = []
    for plan in list_plans():
        payload = plan.model_dump(mode="json")
        payload["ai_agents"] = [
            agent.agent_type.value
            for agent in AI_AGENTS
            if plan.features.ai_enabled and plan_satisfies(plan.id, agent.required_plan)
        ]
        plans.append(payload)
    return {"data": plans, "count": len(plans)}
