# -*- coding: utf-8 -*-
"""Location: ./wpgateway/db.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

WordPress MCP Gateway - ORM models and database session helpers.

Tables:
    users          - tenants (identity, plan, status)
    plans          - tier reference data (monthly ceiling, per-minute limit)
    connections    - one WordPress site per row, credentials as ciphertext
    api_keys       - SHA-256 hash of the bearer key plus a display prefix
    usage_monthly  - durable monthly counters, unique per (user, year_month)
    usage_logs     - one row per completed request
    usage_daily    - daily aggregate, unique per (user, date)

Examples:
    >>> from sqlalchemy import create_engine
    >>> from sqlalchemy.orm import sessionmaker
    >>> eng = create_engine("sqlite://")
    >>> Base.metadata.create_all(eng)
    >>> with sessionmaker(bind=eng)() as db:
    ...     seed_plans(db)
    ...     db.get(Plan, "free").monthly_request_limit
    100
"""

# Standard
from datetime import datetime, timezone
from typing import Generator, Optional
import uuid

# Third-Party
from sqlalchemy import Boolean, create_engine, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, Session, sessionmaker

# First-Party
from wpgateway.config import settings

USER_STATUSES = ("active", "suspended", "deleted")
CONNECTION_STATUSES = ("active", "inactive", "error", "deleted")

# id, name, monthly_request_limit, rate_limit_per_minute, max_connections, price_monthly
DEFAULT_PLANS = (
    ("free", "Free", 100, 10, 1, 0.0),
    ("starter", "Starter", 1000, 30, 3, 9.99),
    ("pro", "Pro", 10000, 100, 10, 29.99),
    ("enterprise", "Enterprise", 100000, 1000, -1, 99.99),
)


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime.

    Returns:
        datetime: Current UTC time.

    Examples:
        >>> utc_now().tzinfo is timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return a new random identifier.

    Returns:
        str: A UUID4 hex string.
    """
    return uuid.uuid4().hex


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite.

    Args:
        value: A datetime or None.

    Returns:
        Optional[datetime]: A timezone-aware datetime, or None.

    Examples:
        >>> as_utc(datetime(2025, 1, 1)).tzinfo is timezone.utc
        True
        >>> as_utc(None) is None
        True
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all gateway tables."""


class User(Base):
    """A tenant account. Owns connections and api keys."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    plan: Mapped[str] = mapped_column(String(50), nullable=False, default="free")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    connections: Mapped[list["Connection"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    api_keys: Mapped[list["ApiKey"]] = relationship(back_populates="user", cascade="all, delete-orphan")

    @property
    def is_active(self) -> bool:
        """Whether the tenant may authenticate.

        Returns:
            bool: True when status is ``active``.
        """
        return self.status == "active"


class Plan(Base):
    """Subscription tier reference data."""

    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    monthly_request_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    rate_limit_per_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    max_connections: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price_monthly: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Connection(Base):
    """Credentials for one WordPress site, stored as ciphertext only."""

    __tablename__ = "connections"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    site_url: Mapped[str] = mapped_column(String(767), nullable=False)
    username_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    password_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    third_party_key_encrypted: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    last_tested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    user: Mapped[User] = relationship(back_populates="connections")
    api_keys: Mapped[list["ApiKey"]] = relationship(back_populates="connection", cascade="all, delete-orphan")


class ApiKey(Base):
    """A bearer key. Only its SHA-256 hash and a display prefix are stored."""

    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    connection_id: Mapped[str] = mapped_column(String(36), ForeignKey("connections.id", ondelete="CASCADE"), nullable=False, index=True)
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    key_prefix: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="Default")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    user: Mapped[User] = relationship(back_populates="api_keys")
    connection: Mapped[Connection] = relationship(back_populates="api_keys")


class UsageMonthly(Base):
    """Durable per-tenant monthly counter."""

    __tablename__ = "usage_monthly"
    __table_args__ = (UniqueConstraint("user_id", "year_month", name="uq_usage_monthly_user_period"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    year_month: Mapped[str] = mapped_column(String(7), nullable=False)
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)


class UsageLog(Base):
    """One completed request."""

    __tablename__ = "usage_logs"
    __table_args__ = (Index("idx_usage_logs_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    api_key_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    connection_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    tool_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)


class UsageDaily(Base):
    """Daily aggregate fed by the usage recorder."""

    __tablename__ = "usage_daily"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_usage_daily_user_date"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    requests_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


def seed_plans(db: Session) -> None:
    """Insert the default plans that are not present yet.

    Args:
        db: Open database session. Committed on return.
    """
    for plan_id, name, monthly, per_minute, max_conn, price in DEFAULT_PLANS:
        if db.get(Plan, plan_id) is None:
            db.add(Plan(id=plan_id, name=name, monthly_request_limit=monthly, rate_limit_per_minute=per_minute, max_connections=max_conn, price_monthly=price))
    db.commit()


engine = create_engine(settings.database_url, pool_pre_ping=True, **settings.database_settings)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db() -> None:
    """Create all tables and seed the plan catalogue."""
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed_plans(db)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a database session.

    Yields:
        Session: A session closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
