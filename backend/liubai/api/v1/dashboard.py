"""Dashboard: today's garden state in one call."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.api.deps import get_current_user, get_user_timezone
from liubai.api.v1.check_in import check_in_to_response
from liubai.api.v1.trends import summary_to_response
from liubai.db.session import get_db
from liubai.models.user import User
from liubai.schemas.trends import DashboardResponse
from liubai.services.check_in_store import get_check_ins_for_day, get_latest_daily_summary
from liubai.services.daily_summary import get_reserve_ratio
from liubai.services.energy import current_energy
from liubai.services.time_context import today_string

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "",
    response_model=DashboardResponse,
    summary="Today's check-ins, current energy, reserve ratio and latest daily summary",
    responses={401: {"description": "Not authenticated"}},
)
async def get_dashboard(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    tz: Annotated[str, Depends(get_user_timezone)],
) -> DashboardResponse:
    today = today_string(tz)
    rows = await get_check_ins_for_day(session, user.id, today)
    latest = await get_latest_daily_summary(session, user.id)
    return DashboardResponse(
        date=today,
        current_energy=current_energy(r.level for r in rows),
        reserve_ratio=await get_reserve_ratio(session, user.id),
        today_check_ins=[check_in_to_response(r) for r in rows],
        latest_summary=summary_to_response(latest) if latest else None,
    )
