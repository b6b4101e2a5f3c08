"""
Shared FastAPI dependencies: account identity, backend, evaluator, counter.
"""
from typing import Annotated, AsyncIterator, Iterator, Optional

from fastapi import Depends, Header

from rentdesk.core.errors import NotAuthenticatedError
from rentdesk.features.backends.provider import EntitlementBackend
from rentdesk.features.backends.service import get_backend
from rentdesk.features.entitlements.service import EntitlementEvaluator
from rentdesk.features.session.service import AccountSession
from rentdesk.features.usage.counter import UsageCounter


def get_account_id(x_account_id: Annotated[Optional[str], Header(alias="X-Account-Id")] = None) -> str:
    account_id = (x_account_id or "").strip()
    if not account_id:
        raise NotAuthenticatedError("X-Account-Id header is required")
    return account_id


async def get_entitlement_backend() -> AsyncIterator[EntitlementBackend]:
    backend = get_backend()
    try:
        yield backend
    finally:
        await backend.aclose()


def get_account_session(account_id: Annotated[str, Depends(get_account_id)]) -> AccountSession:
    return AccountSession(account_id)


def get_evaluator(
    session: Annotated[AccountSession, Depends(get_account_session)],
    backend: Annotated[EntitlementBackend, Depends(get_entitlement_backend)],
) -> Iterator[EntitlementEvaluator]:
    evaluator = EntitlementEvaluator(session, backend)
    try:
        yield evaluator
    finally:
        evaluator.close()


def get_usage_counter(
    session: Annotated[AccountSession, Depends(get_account_session)],
    backend: Annotated[EntitlementBackend, Depends(get_entitlement_backend)],
) -> UsageCounter:
    return UsageCounter(session, backend)


AccountId = Annotated[str, Depends(get_account_id)]
Backend = Annotated[EntitlementBackend, Depends(get_entitlement_backend)]
Evaluator = Annotated[EntitlementEvaluator, Depends(get_evaluator)]
Counter = Annotated[UsageCounter, Depends(get_usage_counter)]
