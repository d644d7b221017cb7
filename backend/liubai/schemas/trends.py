"""Daily summaries, dashboard and coach messages as returned by the API."""

from datetime import datetime

from pydantic import BaseModel

from liubai.schemas.check_in import CheckInOut


class DailySummaryOut(BaseModel):
    date: str
    avg_score: float
    min_score: float
    max_score: float
    check_in_count: int
    below_reserve: int


class TrendsResponse(BaseModel):
    days: int
    reserve_ratio: float
    summaries: list[DailySummaryOut]


class DashboardResponse(BaseModel):
    date: str
    current_energy: float
    reserve_ratio: float
    today_check_ins: list[CheckInOut]
    latest_summary: DailySummaryOut | None = None


class CoachMessageOut(BaseModel):
    id: int
    trigger_type: str
    content: str
    created_at: datetime | None = None


class CoachMessagesPage(BaseModel):
    items: list[CoachMessageOut]
    total: int
    limit: int
    offset: int
    has_more: bool
