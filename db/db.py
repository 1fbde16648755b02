"""
Async DB helpers for the notification service.
Uses SQLAlchemy 2.0 + asyncpg driver; no raw SQL strings in app code.

Groups, members, profiles and push tokens are owned by the mobile app's
schema and are only read here. `reminder_dispatches` is the one table this
service writes (see migrations/).
"""

from __future__ import annotations

import asyncio
import os
from datetime import date, datetime
from typing import Any, AsyncGenerator, Iterable, Sequence

from sqlalchemy import (
    Date, Numeric, UniqueConstraint, Uuid, delete, func, select
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column
)
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def _db_timeout() -> float:
    return float(os.getenv("DB_TIMEOUT", "10"))

def get_engine():
    global _engine
    if _engine is None:
        timeout = _db_timeout()
        # asyncpg: `timeout` bounds connect, `command_timeout` bounds every statement
        _engine = create_async_engine(
            _build_url(),
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_timeout=timeout,
            connect_args={"timeout": timeout, "command_timeout": timeout},
        )
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()

# ──────────────────────────────────────────────────────────────────────
# 3. ORM models
# ──────────────────────────────────────────────────────────────────────

# The app's tables key rows by UUID; values stay plain str in Python.
UUID_STR = Uuid(as_uuid=False)

class Profile(Base):
    __tablename__ = "profiles"

    id:    Mapped[str] = mapped_column(UUID_STR, primary_key=True)
    name:  Mapped[str | None]
    phone: Mapped[str | None]


class BhishiGroup(Base):
    __tablename__ = "bhishi_groups"

    id:              Mapped[str] = mapped_column(UUID_STR, primary_key=True)
    name:            Mapped[str]
    monthly_amount:  Mapped[float] = mapped_column(Numeric(asdecimal=False))
    draw_date:       Mapped[date | None] = mapped_column(Date)
    current_members: Mapped[int] = mapped_column(default=0)


class GroupMember(Base):
    __tablename__ = "group_members"

    id:                  Mapped[str] = mapped_column(UUID_STR, primary_key=True)
    group_id:            Mapped[str] = mapped_column(UUID_STR)
    user_id:             Mapped[str | None] = mapped_column(UUID_STR)
    name:                Mapped[str | None]
    phone:               Mapped[str | None]
    invited_phone:       Mapped[str | None]
    contribution_status: Mapped[str] = mapped_column(default="pending")
    created_at:          Mapped[datetime] = mapped_column(server_default=func.now())


class PushToken(Base):
    __tablename__ = "push_tokens"

    id:      Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(UUID_STR)
    token:   Mapped[str]


class ReminderDispatch(Base):
    """Marks that a payment reminder for (group, offset, day) went out."""

    __tablename__ = "reminder_dispatches"
    __table_args__ = (
        UniqueConstraint("group_id", "offset", "reminder_date", name="uq_reminder_dispatch"),
    )

    id:            Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    group_id:      Mapped[str]
    offset:        Mapped[int]
    reminder_date: Mapped[date] = mapped_column(Date)
    created_at:    Mapped[datetime] = mapped_column(server_default=func.now())


# ──────────────────────────────────────────────────────────────────────
# 4. Helpers
# ──────────────────────────────────────────────────────────────────────

# Retry reads only on connection-level failures; query errors surface at once.
# asyncpg raises asyncio.TimeoutError when command_timeout expires.
RETRY_ERRORS = (OperationalError, InterfaceError, OSError, asyncio.TimeoutError)

_read_retry = retry(
    wait=wait_random_exponential(multiplier=0.5, max=5),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(RETRY_ERRORS),
    reraise=True,
)


def _as_dict(row: Base) -> dict[str, Any]:
    return {col.key: getattr(row, col.key) for col in row.__mapper__.column_attrs}


# ──────────────────────────────────────────────────────────────────────
# 5. Queries
# ──────────────────────────────────────────────────────────────────────

# 5.1 Members ----------------------------------------------------------
@_read_retry
async def fetch_group_members(
    group_id: str,
    contribution_status: str | None = None,
    exclude_user_id: str | None = None,
) -> list[dict]:
    async for s in get_session():
        stmt = select(GroupMember).where(GroupMember.group_id == group_id)
        if contribution_status:
            stmt = stmt.where(GroupMember.contribution_status == contribution_status)
        if exclude_user_id:
            # NULL user_id rows (invitees) must survive the exclusion
            stmt = stmt.where(GroupMember.user_id.is_distinct_from(exclude_user_id))
        stmt = stmt.order_by(GroupMember.created_at)
        res = await s.execute(stmt)
        return [_as_dict(m) for m in res.scalars()]


@_read_retry
async def fetch_member(group_id: str, user_id: str) -> dict | None:
    async for s in get_session():
        stmt = (
            select(GroupMember)
            .where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .limit(1)
        )
        res = await s.execute(stmt)
        member = res.scalar_one_or_none()
        return _as_dict(member) if member else None


@_read_retry
async def fetch_latest_unregistered_member(group_id: str) -> dict | None:
    async for s in get_session():
        stmt = (
            select(GroupMember)
            .where(GroupMember.group_id == group_id, GroupMember.user_id.is_(None))
            .order_by(GroupMember.created_at.desc())
            .limit(1)
        )
        res = await s.execute(stmt)
        member = res.scalar_one_or_none()
        return _as_dict(member) if member else None


@_read_retry
async def fetch_unregistered_members(group_id: str) -> list[dict]:
    async for s in get_session():
        stmt = (
            select(GroupMember)
            .where(GroupMember.group_id == group_id, GroupMember.user_id.is_(None))
            .order_by(GroupMember.created_at)
        )
        res = await s.execute(stmt)
        return [_as_dict(m) for m in res.scalars()]


# 5.2 Push tokens / profiles --------------------------------------------
@_read_retry
async def fetch_push_tokens(user_ids: Iterable[str]) -> list[dict]:
    ids = sorted({uid for uid in user_ids if uid})
    if not ids:
        return []
    async for s in get_session():
        stmt = select(PushToken).where(PushToken.user_id.in_(ids)).order_by(PushToken.id)
        res = await s.execute(stmt)
        return [{"user_id": t.user_id, "token": t.token} for t in res.scalars()]


@_read_retry
async def fetch_profile(user_id: str) -> dict | None:
    async for s in get_session():
        profile = await s.get(Profile, user_id)
        return _as_dict(profile) if profile else None


# 5.3 Groups -------------------------------------------------------------
@_read_retry
async def fetch_group(group_id: str) -> dict | None:
    async for s in get_session():
        group = await s.get(BhishiGroup, group_id)
        return _as_dict(group) if group else None


@_read_retry
async def fetch_groups_by_draw_dates(dates: Sequence[date]) -> list[dict]:
    if not dates:
        return []
    async for s in get_session():
        stmt = (
            select(BhishiGroup)
            .where(BhishiGroup.draw_date.in_(list(dates)))
            .order_by(BhishiGroup.draw_date, BhishiGroup.id)
        )
        res = await s.execute(stmt)
        return [_as_dict(g) for g in res.scalars()]


# 5.4 Reminder de-duplication --------------------------------------------
async def claim_reminder_slot(group_id: str, offset: int, reminder_date: date) -> bool:
    """Insert the (group, offset, day) marker; False if it already existed."""
    async for s in get_session():
        stmt = (
            pg_insert(ReminderDispatch)
            .values(group_id=group_id, offset=offset, reminder_date=reminder_date)
            .on_conflict_do_nothing(constraint="uq_reminder_dispatch")
            .returning(ReminderDispatch.id)
        )
        res = await s.execute(stmt)
        claimed = res.scalar_one_or_none() is not None
        await s.commit()
        return claimed


async def release_reminder_slot(group_id: str, offset: int, reminder_date: date) -> None:
    async for s in get_session():
        await s.execute(
            delete(ReminderDispatch).where(
                ReminderDispatch.group_id == group_id,
                ReminderDispatch.offset == offset,
                ReminderDispatch.reminder_date == reminder_date,
            )
        )
        await s.commit()


async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
