"""
Subscription API.

- GET  /v1/subscription: current subscription and derived billing views
- POST /v1/subscription: create the signup (free) subscription, idempotent
- POST /v1/subscription/plan: change plan
- POST /v1/subscription/cancel: cancel now or at period end
- POST /v1/subscription/status: apply a billing status event

Mutations need the local SQL store; the hosted backend owns its own
subscription writes.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from rentdesk.api.deps import AccountId, Evaluator
from rentdesk.core.errors import BackendUnavailableError
from rentdesk.features.backends.service import uses_hosted_backend
from rentdesk.features.plans.catalog import compare_plans, resolve_plan_id
from rentdesk.features.subscriptions.service import (
    apply_status,
    cancel_subscription,
    change_plan,
    create_default_subscription,
    get_active_subscription,
)
from rentdesk.models.subscription import Subscription


router = APIRouter(prefix="/v1/subscription", tags=["subscription"])


class ChangePlanRequest(BaseModel):
    plan: str


class CancelRequest(BaseModel):
    at_period_end: bool = True


class StatusRequest(BaseModel):
    status: str
    current_period_end: Optional[datetime] = None


def _require_local_store() -> None:
    if uses_hosted_backend():
        raise BackendUnavailableError(
            "Subscription changes are managed by the hosted backend",
            code="subscription_writes_unavailable",
        )


def _subscription_payload(subscription: Subscription) -> dict:
    return {"data": subscription.model_dump(mode="json")}


@router.get("")
async def get_subscription(evaluator: Evaluator):
    subscription = await evaluator.refresh()
    return {
        "data": subscription.model_dump(mode="json") if subscription else None,
        "plan": evaluator.plan.id.value,
        "is_active": evaluator.is_subscription_active(),
        "is_payment_overdue": evaluator.is_payment_overdue(),
        "days_until_renewal": evaluator.days_until_renewal(),
    }


@router.post("", status_code=201)
async def create_subscription(account_id: AccountId):
    _require_local_store()
    return _subscription_payload(create_default_subscription(account_id))


@router.post("/plan")
async def change_subscription_plan(request: ChangePlanRequest, account_id: AccountId):
    _require_local_store()
    previous = get_active_subscription(account_id)
    subscription = change_plan(account_id, request.plan)

    payload = _subscription_payload(subscription)
    if previous is not None:
        direction = compare_plans(resolve_plan_id(subscription.plan), resolve_plan_id(previous.plan))
        payload["change"] = "upgrade" if direction > 0 else "downgrade"
    return payload


@router.post("/cancel")
async def cancel(request: CancelRequest, account_id: AccountId):
    _require_local_store()
    return _subscription_payload(cancel_subscription(account_id, at_period_end=request.at_period_end))


@router.post("/status")
async def set_status(request: StatusRequest, account_id: AccountId):
    _require_local_store()
    subscription = apply_status(
        account_id,
        request.status,
        current_period_end=request.current_period_end,
    )
    return _subscription_payload(subscription)
