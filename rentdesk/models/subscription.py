"""
rentdesk/models/subscription.py

Subscription record for an account.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


class Subscription(BaseModel):
    """
    Subscription represents an account's billing state.

    Constraints:
    - Owned by exactly one account
    - Created at signup on the free plan
    - Never hard-deleted; cancellation moves status to canceled

    `plan` is kept as the raw stored string so that unknown values survive
    the round trip and are resolved (to free) by the plan catalog.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    account_id: str
    plan: str
    status: SubscriptionStatus
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
