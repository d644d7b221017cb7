"""Trends API: recent daily summaries and the on-demand weekly review."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.api.deps import get_current_user, get_user_timezone
from liubai.db.session import get_db
from liubai.models.daily_summary import DailyEnergySummary
from liubai.models.user import User
from liubai.schemas.trends import CoachMessageOut, DailySummaryOut, TrendsResponse
from liubai.services.check_in_store import get_recent_daily_summaries
from liubai.services.daily_summary import get_reserve_ratio
from liubai.services.time_context import today_string
from liubai.services.weekly_review import generate_weekly_review

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/trends", tags=["trends"])

MAX_TREND_DAYS = 90


def summary_to_response(row: DailyEnergySummary) -> DailySummaryOut:
    return DailySummaryOut(
        date=row.date,
        avg_score=row.avg_score,
        min_score=row.min_score,
        max_score=row.max_score,
        check_in_count=row.check_in_count,
        below_reserve=row.below_reserve,
    )


@router.get(
    "",
    response_model=TrendsResponse,
    summary="Daily energy summaries for the last N days",
    responses={401: {"description": "Not authenticated"}},
)
async def get_trends(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    tz: Annotated[str, Depends(get_user_timezone)],
    days: int = Query(default=7, ge=1),
) -> TrendsResponse:
    """Newest first. Days beyond 90 are clamped."""
    days = min(days, MAX_TREND_DAYS)
    rows = await get_recent_daily_summaries(session, user.id, days, today_string(tz))
    return TrendsResponse(
        days=days,
        reserve_ratio=await get_reserve_ratio(session, user.id),
        summaries=[summary_to_response(r) for r in rows],
    )


@router.post(
    "/weekly-review",
    response_model=CoachMessageOut,
    summary="Generate the weekly energy review now",
    responses={401: {"description": "Not authenticated"}},
)
async def create_weekly_review(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    tz: Annotated[str, Depends(get_user_timezone)],
) -> CoachMessageOut:
    message = await generate_weekly_review(session, user.id, today_string(tz))
    return CoachMessageOut(
        id=message.id,
        trigger_type=message.trigger_type,
        content=message.content,
        created_at=message.created_at,
    )
