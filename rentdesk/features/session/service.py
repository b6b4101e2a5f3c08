"""
rentdesk/features/session/service.py

Account session.

An explicit session object replaces ambient auth state: it is created per
client (or per request) and passed to whatever needs the current account.
Listeners subscribe to sign-in/sign-out changes and get an unsubscribe
callable back.
"""

from enum import Enum
from typing import Callable, List, Optional
import logging


logger = logging.getLogger(__name__)


class AccountRole(str, Enum):
    OWNER = "owner"
    TENANT = "tenant"


SessionListener = Callable[["AccountSession"], None]


class AccountSession:
    def __init__(self, account_id: Optional[str] = None, role: Optional[AccountRole] = None):
        self._account_id = account_id
        self._role = role
        self._listeners: List[SessionListener] = []

    @property
    def account_id(self) -> Optional[str]:
        return self._account_id

    @property
    def role(self) -> Optional[AccountRole]:
        return self._role

    @property
    def is_authenticated(self) -> bool:
        return bool(self._account_id)

    def sign_in(self, account_id: str, role: AccountRole = AccountRole.OWNER) -> None:
        if not account_id:
            raise ValueError("account_id is required to sign in")
        if account_id == self._account_id and role == self._role:
            return
        self._account_id = account_id
        self._role = role
        self._notify()

    def sign_out(self) -> None:
        if self._account_id is None and self._role is None:
            return
        self._account_id = None
        self._role = None
        self._notify()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a change listener; call the returned function to remove it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(
                    "[session] listener failed",
                    extra={"account_id": self._account_id},
                )
