"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults (SQLite gets a static pool)
- Table definitions for subscriptions, per-agent plan limits and AI usage
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, Numeric, Index, UniqueConstraint, select, true, false
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os

from rentdesk.core.config import settings


logger = logging.getLogger("rentdesk")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads
        _engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(select(1))
        return True
    except Exception as e:
        logger.warning("Database connection check failed", extra={"error": str(e)})
        return False


# Subscriptions: one account may accumulate rows over time, never hard-deleted
subscriptions = Table(
    'subscriptions',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('account_id', String(100), nullable=False, index=True),
    Column('plan', String(50), nullable=False, server_default='free'),
    Column('status', String(50), nullable=False, server_default='active'),  # active, pending, suspended, canceled, past_due
    Column('current_period_start', DateTime(timezone=True), nullable=True),
    Column('current_period_end', DateTime(timezone=True), nullable=True),
    Column('cancel_at_period_end', Boolean, nullable=False, server_default=false()),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    # Composite index for "latest subscription for account" lookups
    Index('idx_subscriptions_account_created', 'account_id', 'created_at'),
    Index('idx_subscriptions_status', 'status'),
)

# Per-agent caps for each plan
ai_plan_features = Table(
    'ai_plan_features',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('plan', String(50), nullable=False),
    Column('agent_type', String(50), nullable=False),
    Column('monthly_limit', Integer, nullable=True),  # NULL/0 handled by AI_ZERO_LIMIT_POLICY
    Column('enabled', Boolean, nullable=False, server_default=true()),
    UniqueConstraint('plan', 'agent_type', name='uq_ai_plan_features_plan_agent'),
    Index('idx_ai_plan_features_plan', 'plan'),
)

# Monthly AI usage: one row per (account, agent, month)
ai_usage_tracking = Table(
    'ai_usage_tracking',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('account_id', String(100), nullable=False),
    Column('agent_type', String(50), nullable=False),
    Column('usage_month', String(7), nullable=False),  # YYYY-MM
    Column('usage_count', Integer, nullable=False, server_default='0'),
    Column('tokens_used', Integer, nullable=False, server_default='0'),
    Column('cost', Numeric(12, 4), nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    UniqueConstraint('account_id', 'agent_type', 'usage_month', name='uq_ai_usage_account_agent_month'),
    Index('idx_ai_usage_account_month', 'account_id', 'usage_month'),
)
