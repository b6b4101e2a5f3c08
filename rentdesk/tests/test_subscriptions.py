"""
Tests for the subscription service (SQL store).
"""
from datetime import datetime, timedelta, timezone

import pytest

from rentdesk.core.errors import ConflictError, NotFoundError, ValidationError
from rentdesk.features.subscriptions.service import (
    apply_status,
    cancel_subscription,
    change_plan,
    create_default_subscription,
    days_until_renewal,
    get_active_subscription,
    is_payment_overdue,
    is_subscription_active,
)
from rentdesk.models.plan import PlanId
from rentdesk.models.subscription import SubscriptionStatus


NOW = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


def test_no_subscription_returns_none(account_id):
    assert get_active_subscription(account_id) is None


def test_default_subscription_is_free_and_active(account_id):
    sub = create_default_subscription(account_id, now=NOW)

    assert sub.plan == "free"
    assert sub.status is SubscriptionStatus.ACTIVE
    assert sub.cancel_at_period_end is False
    assert sub.current_period_end == NOW + timedelta(days=30)


def test_default_subscription_is_idempotent(account_id):
    first = create_default_subscription(account_id)
    second = create_default_subscription(account_id)

    assert first.id == second.id


def test_change_plan(account_id):
    create_default_subscription(account_id)

    sub = change_plan(account_id, "pro")

    assert sub.plan == PlanId.PRO.value
    assert get_active_subscription(account_id).plan == "pro"


def test_change_to_same_plan_conflicts(account_id):
    create_default_subscription(account_id)

    with pytest.raises(ConflictError):
        change_plan(account_id, "free")


def test_change_to_unknown_plan_rejected(account_id):
    create_default_subscription(account_id)

    with pytest.raises(ValidationError):
        change_plan(account_id, "enterprise")


def test_change_plan_without_subscription(account_id):
    with pytest.raises(NotFoundError):
        change_plan(account_id, "pro")


def test_apply_past_due_then_recover(account_id):
    create_default_subscription(account_id)
    change_plan(account_id, "pro")

    late = apply_status(account_id, "past_due")
    assert is_payment_overdue(late) is True
    assert is_subscription_active(late) is False

    renewed_until = NOW + timedelta(days=60)
    recovered = apply_status(account_id, SubscriptionStatus.ACTIVE, current_period_end=renewed_until)
    assert is_subscription_active(recovered) is True
    assert recovered.current_period_end == renewed_until


def test_reapplying_status_is_allowed(account_id):
    create_default_subscription(account_id)

    sub = apply_status(account_id, "active")

    assert sub.status is SubscriptionStatus.ACTIVE


def test_canceled_is_terminal(account_id):
    create_default_subscription(account_id)
    cancel_subscription(account_id, at_period_end=False)

    with pytest.raises(ConflictError):
        apply_status(account_id, "active")
    with pytest.raises(ConflictError):
        change_plan(account_id, "pro")


def test_unknown_status_rejected(account_id):
    create_default_subscription(account_id)

    with pytest.raises(ValidationError):
        apply_status(account_id, "frozen")


def test_cancel_at_period_end_keeps_status(account_id):
    create_default_subscription(account_id)
    change_plan(account_id, "business")

    sub = cancel_subscription(account_id)

    assert sub.cancel_at_period_end is True
    assert sub.status is SubscriptionStatus.ACTIVE


def test_cancel_immediately_never_deletes(account_id):
    create_default_subscription(account_id)

    sub = cancel_subscription(account_id, at_period_end=False)

    assert sub.status is SubscriptionStatus.CANCELED
    assert get_active_subscription(account_id) is not None


def test_days_until_renewal(account_id):
    sub = create_default_subscription(account_id, now=NOW)

    assert days_until_renewal(sub, now=NOW) == 30
    assert days_until_renewal(sub, now=NOW + timedelta(days=29, hours=12)) == 1
    assert days_until_renewal(None, now=NOW) == 0
