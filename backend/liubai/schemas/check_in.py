"""Pydantic schemas for check-in API."""

from pydantic import BaseModel, Field

from liubai.services.questions import Period


class CheckInBody(BaseModel):
    """Submission body. Level and question are validated by the orchestrator (400 on failure)."""

    level: str | None = None
    question: str | None = None
    note: str | None = None


class CheckInOut(BaseModel):
    id: str
    level: str
    label: str
    emoji: str
    score: float
    question: str
    note: str | None = None
    ai_response: str | None = None
    check_in_at: str = Field(..., description="User-local wall clock, YYYY-MM-DDTHH:MM:SS")


class QuestionOut(BaseModel):
    id: str
    period: Period
    text: str


class TodayCheckInsResponse(BaseModel):
    date: str
    today_check_ins: list[CheckInOut]
    question: QuestionOut
    period: Period
