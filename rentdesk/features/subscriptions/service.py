"""
rentdesk/features/subscriptions/service.py

Subscription service.

Handles:
- Default free subscription at signup
- Latest subscription lookup
- Plan changes and billing status transitions
- Cancellation (never a hard delete)
- Derived views: active, payment overdue, days until renewal
"""

from datetime import datetime, timezone, timedelta
from typing import Optional, Union
from uuid import uuid4
import logging
import math

from sqlalchemy import select, insert, update

from rentdesk.core.database import get_db_session, subscriptions
from rentdesk.core.errors import ConflictError, NotFoundError, ValidationError
from rentdesk.models.plan import PlanId
from rentdesk.models.subscription import Subscription, SubscriptionStatus
from rentdesk.features.plans.catalog import resolve_plan_id


logger = logging.getLogger(__name__)

BILLING_PERIOD = timedelta(days=30)

# Allowed status transitions; canceled is terminal
STATUS_TRANSITIONS = {
    SubscriptionStatus.PENDING: {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED},
    SubscriptionStatus.ACTIVE: {SubscriptionStatus.PAST_DUE, SubscriptionStatus.SUSPENDED, SubscriptionStatus.CANCELED},
    SubscriptionStatus.PAST_DUE: {SubscriptionStatus.ACTIVE, SubscriptionStatus.SUSPENDED, SubscriptionStatus.CANCELED},
    SubscriptionStatus.SUSPENDED: {SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELED},
    SubscriptionStatus.CANCELED: set(),
}


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_subscription(row) -> Subscription:
    return Subscription(
        id=row.id,
        account_id=row.account_id,
        plan=row.plan,
        status=SubscriptionStatus(row.status),
        current_period_start=_utc(row.current_period_start),
        current_period_end=_utc(row.current_period_end),
        cancel_at_period_end=bool(row.cancel_at_period_end),
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def get_active_subscription(account_id: str) -> Optional[Subscription]:
    """Latest subscription row for the account, whatever its status."""
    with get_db_session() as session:
        row = session.execute(
            select(subscriptions)
            .where(subscriptions.c.account_id == account_id)
            .order_by(subscriptions.c.created_at.desc())
            .limit(1)
        ).first()

        if not row:
            return None

        return _row_to_subscription(row)


def _require_subscription(account_id: str) -> Subscription:
    subscription = get_active_subscription(account_id)
    if not subscription:
        raise NotFoundError(f"No subscription for account {account_id}")
    return subscription


def create_default_subscription(account_id: str, now: Optional[datetime] = None) -> Subscription:
    """
    Create the signup subscription on the free plan (idempotent).

    Returns the existing subscription when the account already has one.
    """
    existing = get_active_subscription(account_id)
    if existing:
        return existing

    now = now or datetime.now(timezone.utc)
    subscription_id = str(uuid4())
    with get_db_session() as session:
        session.execute(
            insert(subscriptions).values(
                id=subscription_id,
                account_id=account_id,
                plan=PlanId.FREE.value,
                status=SubscriptionStatus.ACTIVE.value,
                current_period_start=now,
                current_period_end=now + BILLING_PERIOD,
                cancel_at_period_end=False,
                created_at=now,
                updated_at=now,
            )
        )

    logger.info(
        "[subscriptions] default subscription created",
        extra={"account_id": account_id, "plan": PlanId.FREE.value},
    )
    return _require_subscription(account_id)


def change_plan(account_id: str, plan: Union[PlanId, str], now: Optional[datetime] = None) -> Subscription:
    """
    Move the account's subscription to another plan.

    Raises:
        ValidationError: If plan is not a catalog plan id
        NotFoundError: If the account has no subscription
        ConflictError: If the account is already on that plan
    """
    try:
        plan_id = plan if isinstance(plan, PlanId) else PlanId(str(plan).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown plan: {plan}")

    current = _require_subscription(account_id)
    if current.status is SubscriptionStatus.CANCELED:
        raise ConflictError("Subscription is canceled")
    if resolve_plan_id(current.plan) is plan_id:
        raise ConflictError(f"Account is already on the {plan_id.value} plan")

    now = now or datetime.now(timezone.utc)
    with get_db_session() as session:
        session.execute(
            update(subscriptions)
            .where(subscriptions.c.id == current.id)
            .values(plan=plan_id.value, cancel_at_period_end=False, updated_at=now)
        )

    logger.info(
        "[subscriptions] plan changed",
        extra={"account_id": account_id, "from_plan": current.plan, "to_plan": plan_id.value},
    )
    return _require_subscription(account_id)


def apply_status(
    account_id: str,
    status: Union[SubscriptionStatus, str],
    *,
    current_period_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Apply a billing status transition (webhook-style, idempotent).

    Re-applying the current status only refreshes the period end.

    Raises:
        ValidationError: If status is unknown
        ConflictError: If the transition is not allowed
    """
    try:
        new_status = SubscriptionStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown subscription status: {status}")

    current = _require_subscription(account_id)
    if new_status is not current.status and new_status not in STATUS_TRANSITIONS[current.status]:
        raise ConflictError(
            f"Cannot move subscription from {current.status.value} to {new_status.value}"
        )

    now = now or datetime.now(timezone.utc)
    values = {"status": new_status.value, "updated_at": now}
    if current_period_end is not None:
        values["current_period_start"] = current.current_period_end or now
        values["current_period_end"] = current_period_end

    with get_db_session() as session:
        session.execute(
            update(subscriptions)
            .where(subscriptions.c.id == current.id)
            .values(**values)
        )

    log_fn = logger.warning if new_status is SubscriptionStatus.PAST_DUE else logger.info
    log_fn(
        "[subscriptions] status applied",
        extra={"account_id": account_id, "from_status": current.status.value, "to_status": new_status.value},
    )
    return _require_subscription(account_id)


def cancel_subscription(account_id: str, *, at_period_end: bool = True, now: Optional[datetime] = None) -> Subscription:
    """
    Cancel the account's subscription.

    With at_period_end the subscription stays usable until the period ends;
    otherwise the status moves to canceled immediately. Rows are never deleted.
    """
    current = _require_subscription(account_id)
    if current.status is SubscriptionStatus.CANCELED:
        return current

    now = now or datetime.now(timezone.utc)
    if at_period_end:
        values = {"cancel_at_period_end": True, "updated_at": now}
    else:
        values = {"status": SubscriptionStatus.CANCELED.value, "cancel_at_period_end": False, "updated_at": now}

    with get_db_session() as session:
        session.execute(
            update(subscriptions)
            .where(subscriptions.c.id == current.id)
            .values(**values)
        )

    logger.info(
        "[subscriptions] canceled",
        extra={"account_id": account_id, "at_period_end": at_period_end},
    )
    return _require_subscription(account_id)


def is_subscription_active(subscription: Optional[Subscription]) -> bool:
    return subscription is not None and subscription.status is SubscriptionStatus.ACTIVE


def is_payment_overdue(subscription: Optional[Subscription]) -> bool:
    return subscription is not None and subscription.status is SubscriptionStatus.PAST_DUE


def days_until_renewal(subscription: Optional[Subscription], now: Optional[datetime] = None) -> int:
    """Whole days (rounded up) until the period ends; 0 without a subscription."""
    if subscription is None or subscription.current_period_end is None:
        return 0
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    seconds = (subscription.current_period_end - now).total_seconds()
    return math.ceil(seconds / 86400)
