"""
Daily energy summary: one row per (user, local date), recomputed from all of that day's
check-ins every time one is recorded.

Full recomputation instead of applying deltas keeps the row consistent with the check-in
set whatever happened before (failed writes, concurrent submissions, reserve ratio changes).
Callers serialize recomputes of one user within a process; across processes the
(user_id, date) unique constraint turns a double first insert into a recompute-and-update.
The cost is a day-sized scan per check-in, which is a handful of rows at this scale.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.config import settings
from liubai.models.check_in import EnergyCheckIn
from liubai.models.daily_summary import DailyEnergySummary
from liubai.models.user import User
from liubai.services.check_in_store import get_daily_summary
from liubai.services.energy import score_of
from liubai.services.time_context import day_bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryStats:
    avg_score: float
    min_score: float
    max_score: float
    check_in_count: int
    below_reserve: int


def summarize_scores(scores: list[float], reserve_ratio: float) -> SummaryStats:
    """Aggregate a non-empty list of scores; below_reserve counts scores strictly under the ratio."""
    if not scores:
        raise ValueError("summarize_scores needs at least one score")
    return SummaryStats(
        avg_score=sum(scores) / len(scores),
        min_score=min(scores),
        max_score=max(scores),
        check_in_count=len(scores),
        below_reserve=sum(1 for s in scores if s < reserve_ratio),
    )


async def get_reserve_ratio(session: AsyncSession, user_id: int) -> float:
    """Current reserve ratio of the user (live read); default when the user row is gone."""
    r = await session.execute(select(User.energy_reserve_ratio).where(User.id == user_id))
    ratio = r.scalar_one_or_none()
    if ratio is None:
        return settings.default_reserve_ratio
    return float(ratio)


def _apply(row: DailyEnergySummary, stats: SummaryStats) -> None:
    row.avg_score = stats.avg_score
    row.min_score = stats.min_score
    row.max_score = stats.max_score
    row.check_in_count = stats.check_in_count
    row.below_reserve = stats.below_reserve


async def upsert_daily_summary(
    session: AsyncSession,
    user_id: int,
    day: str,
) -> DailyEnergySummary | None:
    """
    Recompute the (user_id, day) summary from that day's check-ins and write it.
    Returns the row, or None when the day has no check-ins (nothing is created).
    Idempotent; storage errors propagate. Caller commits.
    """
    start, end = day_bounds(day)
    r = await session.execute(
        select(EnergyCheckIn.level).where(
            EnergyCheckIn.user_id == user_id,
            EnergyCheckIn.check_in_at >= start,
            EnergyCheckIn.check_in_at <= end,
        )
    )
    levels = [row[0] for row in r.all()]
    if not levels:
        logger.debug("Daily summary: no check-ins for user_id=%s on %s, skipping", user_id, day)
        return None

    reserve_ratio = await get_reserve_ratio(session, user_id)
    stats = summarize_scores([score_of(level) for level in levels], reserve_ratio)

    existing = await get_daily_summary(session, user_id, day)
    if existing is not None:
        _apply(existing, stats)
        await session.flush()
        logger.debug("Daily summary: updated user_id=%s date=%s count=%d", user_id, day, stats.check_in_count)
        return existing

    row = DailyEnergySummary(id=str(uuid.uuid4()), user_id=user_id, date=day)
    _apply(row, stats)
    try:
        async with session.begin_nested():
            session.add(row)
    except IntegrityError:
        # A concurrent first check-in of the day inserted the row first; recompute against it
        logger.info("Daily summary: concurrent insert for user_id=%s date=%s, recomputing", user_id, day)
        if await get_daily_summary(session, user_id, day) is None:
            raise
        return await upsert_daily_summary(session, user_id, day)
    logger.debug("Daily summary: created user_id=%s date=%s count=%d", user_id, day, stats.check_in_count)
    return row
