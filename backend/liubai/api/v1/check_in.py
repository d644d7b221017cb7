"""Check-in API: today's prompt and check-ins, and the streamed submission."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.api.deps import get_current_user, get_reply_orchestrator, get_user_timezone
from liubai.db.session import get_db
from liubai.models.check_in import EnergyCheckIn
from liubai.models.user import User
from liubai.schemas.check_in import CheckInBody, CheckInOut, QuestionOut, TodayCheckInsResponse
from liubai.services.check_in_store import get_check_ins_for_day
from liubai.services.energy import emoji_of, label_of, score_of
from liubai.services.questions import (
    RECENT_WINDOW,
    current_period,
    question_id_for_text,
    select_question,
)
from liubai.services.reply_orchestrator import ReplyOrchestrator, ValidationError
from liubai.services.time_context import hour_of_day, today_string

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/check-in", tags=["check-in"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


def check_in_to_response(row: EnergyCheckIn) -> CheckInOut:
    return CheckInOut(
        id=row.id,
        level=row.level,
        label=label_of(row.level),
        emoji=emoji_of(row.level),
        score=score_of(row.level),
        question=row.question,
        note=row.note,
        ai_response=row.ai_response,
        check_in_at=row.check_in_at,
    )


@router.get(
    "",
    response_model=TodayCheckInsResponse,
    summary="Today's check-ins and the next prompt",
    responses={401: {"description": "Not authenticated"}},
)
async def get_today(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    tz: Annotated[str, Depends(get_user_timezone)],
) -> TodayCheckInsResponse:
    today = today_string(tz)
    rows = await get_check_ins_for_day(session, user.id, today)
    recent_ids = [
        qid for qid in (question_id_for_text(r.question) for r in rows[:RECENT_WINDOW]) if qid
    ]
    period = current_period(hour_of_day(tz))
    question = select_question(period, recent_ids)
    return TodayCheckInsResponse(
        date=today,
        today_check_ins=[check_in_to_response(r) for r in rows],
        question=QuestionOut(id=question.id, period=question.period, text=question.text),
        period=period,
    )


@router.post(
    "",
    summary="Submit a check-in and stream the coach reply",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/plain": {}}, "description": "Reply fragments as they are generated"},
        400: {"description": "Missing or invalid level, question or note"},
        401: {"description": "Not authenticated"},
    },
)
async def submit_check_in(
    user: Annotated[User, Depends(get_current_user)],
    tz: Annotated[str, Depends(get_user_timezone)],
    orchestrator: Annotated[ReplyOrchestrator, Depends(get_reply_orchestrator)],
    body: CheckInBody,
) -> StreamingResponse:
    """
    The response body is the coach reply as plain text, streamed fragment by fragment.
    The check-in is stored after the stream ends, also when the client disconnects early.
    """
    try:
        stream = await orchestrator.handle_submission(user.id, body.level, body.question, body.note, tz)
    except ValidationError as e:
        logger.info("Check-in rejected for user_id=%s: %s", user.id, e.message)
        raise HTTPException(status_code=400, detail=e.message) from e
    return StreamingResponse(stream, media_type="text/plain; charset=utf-8", headers=STREAM_HEADERS)
