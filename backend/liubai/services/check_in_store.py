"""Check-in and daily-summary queries. check_in_at is a local wall-clock string, so day ranges are string ranges."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.models.check_in import EnergyCheckIn
from liubai.models.daily_summary import DailyEnergySummary
from liubai.services.time_context import day_bounds, days_before


async def get_check_ins_for_day(
    session: AsyncSession,
    user_id: int,
    day: str,
    limit: int | None = None,
) -> list[EnergyCheckIn]:
    """All check-ins of the user on a local calendar day, newest first."""
    start, end = day_bounds(day)
    q = (
        select(EnergyCheckIn)
        .where(
            EnergyCheckIn.user_id == user_id,
            EnergyCheckIn.check_in_at >= start,
            EnergyCheckIn.check_in_at <= end,
        )
        .order_by(EnergyCheckIn.check_in_at.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    r = await session.execute(q)
    return list(r.scalars().all())


async def create_check_in(
    session: AsyncSession,
    *,
    user_id: int,
    level: str,
    question: str,
    note: str | None,
    ai_response: str | None,
    check_in_at: str,
    check_in_at_utc: datetime | None = None,
    timezone_name: str | None = None,
    check_in_id: str | None = None,
) -> EnergyCheckIn:
    row = EnergyCheckIn(
        id=check_in_id or str(uuid.uuid4()),
        user_id=user_id,
        level=level,
        question=question,
        note=note or None,
        ai_response=ai_response,
        check_in_at=check_in_at,
        check_in_at_utc=check_in_at_utc,
        timezone=timezone_name,
    )
    session.add(row)
    await session.flush()
    return row


async def get_recent_daily_summaries(
    session: AsyncSession,
    user_id: int,
    days: int,
    today: str,
) -> list[DailyEnergySummary]:
    """Summaries from `days` days before `today` onward, newest first."""
    r = await session.execute(
        select(DailyEnergySummary)
        .where(
            DailyEnergySummary.user_id == user_id,
            DailyEnergySummary.date >= days_before(today, days),
        )
        .order_by(DailyEnergySummary.date.desc())
    )
    return list(r.scalars().all())


async def get_daily_summary(session: AsyncSession, user_id: int, day: str) -> DailyEnergySummary | None:
    r = await session.execute(
        select(DailyEnergySummary).where(
            DailyEnergySummary.user_id == user_id,
            DailyEnergySummary.date == day,
        )
    )
    return r.scalar_one_or_none()


async def get_latest_daily_summaries(session: AsyncSession, user_id: int, limit: int) -> list[DailyEnergySummary]:
    """Most recent summaries of the user, newest first."""
    r = await session.execute(
        select(DailyEnergySummary)
        .where(DailyEnergySummary.user_id == user_id)
        .order_by(DailyEnergySummary.date.desc())
        .limit(limit)
    )
    return list(r.scalars().all())


async def get_latest_daily_summary(session: AsyncSession, user_id: int) -> DailyEnergySummary | None:
    rows = await get_latest_daily_summaries(session, user_id, 1)
    return rows[0] if rows else None


async def get_daily_summaries_between(
    session: AsyncSession,
    user_id: int,
    start: str,
    end: str,
) -> list[DailyEnergySummary]:
    """Summaries with start <= date <= end (YYYY-MM-DD), oldest first."""
    r = await session.execute(
        select(DailyEnergySummary)
        .where(
            DailyEnergySummary.user_id == user_id,
            DailyEnergySummary.date >= start,
            DailyEnergySummary.date <= end,
        )
        .order_by(DailyEnergySummary.date.asc())
    )
    return list(r.scalars().all())
