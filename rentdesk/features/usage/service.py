"""
rentdesk/features/usage/service.py

Usage accounting service.

Handles:
- Month keys (YYYY-MM) in a fixed timezone
- Monthly usage increments (one row per account, agent and month)
- Usage lookups
- Usage banding for display (available / warning / exhausted / unlimited)
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from rentdesk.core.config import settings
from rentdesk.core.database import get_db_session, ai_usage_tracking
from rentdesk.models.usage import UsageBand, UsageRecord, UsageStatus


logger = logging.getLogger(__name__)

WARNING_THRESHOLD_PCT = 80
EXHAUSTED_THRESHOLD_PCT = 100


def month_key(now: Optional[datetime] = None, tz_name: Optional[str] = None) -> str:
    """
    Month key for usage rows, computed in USAGE_TIMEZONE.

    Naive datetimes are taken as UTC.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local = now.astimezone(ZoneInfo(tz_name or settings.USAGE_TIMEZONE))
    return local.strftime("%Y-%m")


def usage_status(count: int, max_usage: int) -> UsageStatus:
    """
    Band a usage count against its monthly maximum.

    A maximum of 0 means "no cap", never "zero allowed".
    """
    if not max_usage:
        return UsageStatus(status=UsageBand.UNLIMITED, percentage=0.0)

    percentage = (count / max_usage) * 100

    if percentage >= EXHAUSTED_THRESHOLD_PCT:
        return UsageStatus(status=UsageBand.EXHAUSTED, percentage=100.0)
    if percentage >= WARNING_THRESHOLD_PCT:
        return UsageStatus(status=UsageBand.WARNING, percentage=percentage)
    return UsageStatus(status=UsageBand.AVAILABLE, percentage=percentage)


def _row_to_record(row) -> UsageRecord:
    return UsageRecord(
        account_id=row.account_id,
        agent_type=row.agent_type,
        usage_month=row.usage_month,
        usage_count=int(row.usage_count),
        tokens_used=int(row.tokens_used or 0),
        cost=Decimal(str(row.cost or 0)),
    )


def _increment_existing(session, account_id: str, agent_type: str, usage_month: str, tokens_used: int, cost: Decimal) -> int:
    result = session.execute(
        update(ai_usage_tracking)
        .where(ai_usage_tracking.c.account_id == account_id)
        .where(ai_usage_tracking.c.agent_type == agent_type)
        .where(ai_usage_tracking.c.usage_month == usage_month)
        .values(
            usage_count=ai_usage_tracking.c.usage_count + 1,
            tokens_used=ai_usage_tracking.c.tokens_used + tokens_used,
            cost=ai_usage_tracking.c.cost + cost,
            updated_at=datetime.now(timezone.utc),
        )
    )
    return result.rowcount


def increment_usage(
    account_id: str,
    agent_type: str,
    usage_month: str,
    tokens_used: int = 0,
    cost: Union[Decimal, float, int] = 0,
) -> None:
    """
    Add one use to the (account, agent, month) row, creating it if absent.

    The increment is done in SQL so concurrent writers never lose updates.
    A unique-constraint race on first insert falls back to the update.
    """
    cost = Decimal(str(cost))

    with get_db_session() as session:
        if _increment_existing(session, account_id, agent_type, usage_month, tokens_used, cost):
            return

    try:
        with get_db_session() as session:
            now = datetime.now(timezone.utc)
            session.execute(
                insert(ai_usage_tracking).values(
                    account_id=account_id,
                    agent_type=agent_type,
                    usage_month=usage_month,
                    usage_count=1,
                    tokens_used=tokens_used,
                    cost=cost,
                    created_at=now,
                    updated_at=now,
                )
            )
    except IntegrityError:
        logger.info(
            "[usage] concurrent first insert, retrying as update",
            extra={"account_id": account_id, "agent_type": agent_type, "usage_month": usage_month},
        )
        with get_db_session() as session:
            _increment_existing(session, account_id, agent_type, usage_month, tokens_used, cost)


def get_usage_record(account_id: str, agent_type: str, usage_month: str) -> Optional[UsageRecord]:
    with get_db_session() as session:
        row = session.execute(
            select(ai_usage_tracking)
            .where(ai_usage_tracking.c.account_id == account_id)
            .where(ai_usage_tracking.c.agent_type == agent_type)
            .where(ai_usage_tracking.c.usage_month == usage_month)
        ).first()

        if not row:
            return None

        return _row_to_record(row)


def get_usage_for_month(account_id: str, usage_month: str) -> List[UsageRecord]:
    """All agent rows for an account in one month."""
    with get_db_session() as session:
        rows = session.execute(
            select(ai_usage_tracking)
            .where(ai_usage_tracking.c.account_id == account_id)
            .where(ai_usage_tracking.c.usage_month == usage_month)
            .order_by(ai_usage_tracking.c.agent_type)
        ).all()

        return [_row_to_record(row) for row in rows]


def get_usage_count(account_id: str, agent_type: str, usage_month: str) -> int:
    record = get_usage_record(account_id, agent_type, usage_month)
    return record.usage_count if record else 0
