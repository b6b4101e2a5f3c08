"""
AI usage API.

- GET  /v1/usage/ai-agents: this month's usage line per agent
- POST /v1/usage/ai-agents/{agent_type}: record one agent invocation (202)
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from rentdesk.api.deps import Counter, Evaluator
from rentdesk.core.errors import NotFoundError
from rentdesk.models.agent import get_agent


router = APIRouter(prefix="/v1/usage", tags=["usage"])


class TrackUsageRequest(BaseModel):
    tokens_used: int = Field(0, ge=0)
    cost: Decimal = Field(Decimal("0"), ge=0)


@router.get("/ai-agents")
async def get_ai_usage(evaluator: Evaluator, counter: Counter):
    await evaluator.refresh()
    plan = evaluator.plan
    summary = await counter.get_usage_summary(plan.id.value)
    return {
        "plan": plan.id.value,
        "usage_month": counter.current_month(),
        "data": [line.model_dump(mode="json") for line in summary],
    }


@router.post("/ai-agents/{agent_type}", status_code=202)
async def track_ai_usage(agent_type: str, counter: Counter, request: Optional[TrackUsageRequest] = None):
    """
    Record one invocation of an AI agent.

    Always answers 202 for a known agent: a failed write is reported in
    `tracked` and through the failure metrics, never as an error status.
    """
    agent = get_agent(agent_type)
    if agent is None:
        raise NotFoundError(f"Unknown AI agent: {agent_type}")
    request = request or TrackUsageRequest()

    tracked = await counter.track_ai_usage(
        agent.agent_type.value,
        tokens_used=request.tokens_used,
        cost=request.cost,
    )
    return {
        "agent_type": agent.agent_type.value,
        "usage_month": counter.current_month(),
        "tracked": tracked,
    }
