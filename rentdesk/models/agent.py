"""
rentdesk/models/agent.py

AI agent catalog.

Each agent is an opaque remote function (payment analysis, fiscal report,
tenant communication, monthly summary, problem diagnostic, lease contract).
Only its identity and plan requirement matter here.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict

from rentdesk.models.plan import PlanId


class AgentType(str, Enum):
    COMMUNICATION = "communication"
    PAYMENT = "payment"
    FISCAL = "fiscal"
    SUMMARY = "summary"
    DIAGNOSTIC = "diagnostic"
    CONTRACT = "contract"


class AgentCategory(str, Enum):
    COMMUNICATION = "communication"
    FINANCIAL = "financial"
    MAINTENANCE = "maintenance"
    ANALYSIS = "analysis"


class AIAgent(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_type: AgentType
    name: str
    description: str
    category: AgentCategory
    required_plan: PlanId


AI_AGENTS = (
    AIAgent(
        agent_type=AgentType.COMMUNICATION,
        name="Communication Assistant",
        description="Drafts professional messages for tenants",
        category=AgentCategory.COMMUNICATION,
        required_plan=PlanId.PRO,
    ),
    AIAgent(
        agent_type=AgentType.PAYMENT,
        name="Payment Assistant",
        description="Helps follow up on rent payments",
        category=AgentCategory.FINANCIAL,
        required_plan=PlanId.PRO,
    ),
    AIAgent(
        agent_type=AgentType.FISCAL,
        name="Fiscal Assistant",
        description="Tax advice and deduction optimization",
        category=AgentCategory.FINANCIAL,
        required_plan=PlanId.PRO,
    ),
    AIAgent(
        agent_type=AgentType.SUMMARY,
        name="Monthly Summary",
        description="Generates monthly portfolio reports",
        category=AgentCategory.ANALYSIS,
        required_plan=PlanId.PRO,
    ),
    AIAgent(
        agent_type=AgentType.DIAGNOSTIC,
        name="Problem Diagnostic",
        description="Analyzes maintenance issues and proposes fixes",
        category=AgentCategory.MAINTENANCE,
        required_plan=PlanId.BUSINESS,
    ),
    AIAgent(
        agent_type=AgentType.CONTRACT,
        name="Contract Generator",
        description="Creates tailored lease contracts",
        category=AgentCategory.ANALYSIS,
        required_plan=PlanId.BUSINESS,
    ),
)


def get_agent(agent_type: str) -> AIAgent | None:
    for agent in AI_AGENTS:
        if agent.agent_type.value == agent_type:
            return agent
    return None
