"""
rentdesk/features/plans/service.py

Per-agent plan limits (stored).

Handles:
- Seeding default AI agent limits per plan
- Limit lookup by plan
- Limit updates for a single (plan, agent) pair
"""

from typing import Dict, List, Optional, Union
from sqlalchemy import select, insert, update

from rentdesk.core.database import get_db_session, ai_plan_features
from rentdesk.models.agent import AgentType
from rentdesk.models.plan import PlanId
from rentdesk.models.usage import PlanFeatureLimit


# Default per-agent monthly limits. None = no numeric cap.
DEFAULT_AGENT_LIMITS: Dict[PlanId, Dict[AgentType, Dict[str, Union[int, bool, None]]]] = {
    PlanId.PRO: {
        AgentType.COMMUNICATION: {"monthly_limit": 50, "enabled": True},
        AgentType.PAYMENT: {"monthly_limit": 30, "enabled": True},
        AgentType.FISCAL: {"monthly_limit": 10, "enabled": True},
        AgentType.SUMMARY: {"monthly_limit": 10, "enabled": True},
        AgentType.DIAGNOSTIC: {"monthly_limit": None, "enabled": False},
        AgentType.CONTRACT: {"monthly_limit": None, "enabled": False},
    },
    PlanId.BUSINESS: {
        agent_type: {"monthly_limit": None, "enabled": True}
        for agent_type in AgentType
    },
}


def seed_plan_feature_limits() -> None:
    """
    Seed default per-agent limits (idempotent).

    Existing rows are left untouched so operator edits survive restarts.
    """
    with get_db_session() as session:
        for plan_id, agents in DEFAULT_AGENT_LIMITS.items():
            for agent_type, config in agents.items():
                existing = session.execute(
                    select(ai_plan_features.c.id)
                    .where(ai_plan_features.c.plan == plan_id.value)
                    .where(ai_plan_features.c.agent_type == agent_type.value)
                ).first()
                if existing:
                    continue
                session.execute(
                    insert(ai_plan_features).values(
                        plan=plan_id.value,
                        agent_type=agent_type.value,
                        monthly_limit=config["monthly_limit"],
                        enabled=config["enabled"],
                    )
                )


def get_plan_feature_limits(plan: str) -> List[PlanFeatureLimit]:
    """All per-agent rows for a plan (empty list when the plan has none)."""
    with get_db_session() as session:
        rows = session.execute(
            select(ai_plan_features)
            .where(ai_plan_features.c.plan == plan)
            .order_by(ai_plan_features.c.agent_type)
        ).all()

        return [
            PlanFeatureLimit(
                plan=row.plan,
                agent_type=row.agent_type,
                monthly_limit=row.monthly_limit,
                enabled=bool(row.enabled),
            )
            for row in rows
        ]


def set_plan_feature_limit(
    plan: str,
    agent_type: str,
    *,
    monthly_limit: Optional[int],
    enabled: bool = True,
) -> PlanFeatureLimit:
    """Create or replace the limit row for (plan, agent_type)."""
    with get_db_session() as session:
        existing = session.execute(
            select(ai_plan_features.c.id)
            .where(ai_plan_features.c.plan == plan)
            .where(ai_plan_features.c.agent_type == agent_type)
        ).first()
        if existing:
            session.execute(
                update(ai_plan_features)
                .where(ai_plan_features.c.id == existing.id)
                .values(monthly_limit=monthly_limit, enabled=enabled)
            )
        else:
            session.execute(
                insert(ai_plan_features).values(
                    plan=plan,
                    agent_type=agent_type,
                    monthly_limit=monthly_limit,
                    enabled=enabled,
                )
            )

    return PlanFeatureLimit(plan=plan, agent_type=agent_type, monthly_limit=monthly_limit, enabled=enabled)
