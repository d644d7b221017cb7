"""Coach messages: weekly reviews and other notes addressed to the user."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.api.deps import get_current_user
from liubai.db.session import get_db
from liubai.models.coach_message import CoachMessage
from liubai.models.user import User
from liubai.schemas.trends import CoachMessageOut, CoachMessagesPage

router = APIRouter(prefix="/coach-messages", tags=["coach"])


@router.get(
    "",
    response_model=CoachMessagesPage,
    summary="List coach messages, newest first",
    responses={401: {"description": "Not authenticated"}},
)
async def list_coach_messages(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    trigger_type: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> CoachMessagesPage:
    base = select(CoachMessage).where(CoachMessage.user_id == user.id)
    if trigger_type:
        base = base.where(CoachMessage.trigger_type == trigger_type.upper())
    count_q = select(func.count()).select_from(base.subquery())
    total = (await session.execute(count_q)).scalar() or 0
    r = await session.execute(
        base.order_by(CoachMessage.created_at.desc(), CoachMessage.id.desc()).offset(offset).limit(limit)
    )
    items = [
        CoachMessageOut(id=m.id, trigger_type=m.trigger_type, content=m.content, created_at=m.created_at)
        for m in r.scalars().all()
    ]
    return CoachMessagesPage(
        items=items,
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(items) < total,
    )
