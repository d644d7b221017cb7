"""
Check-in submission: stream the coach reply to the caller, then record the check-in.

    SUBMITTED -> GENERATING -> COMPLETED
    SUBMITTED -> GENERATING -> FAILED -> FALLBACK_COMPLETED

Each submission runs in its own asyncio task. The task forwards every generator fragment
to the caller's queue as soon as it arrives and accumulates the full text. When the
generator errors or produces nothing, one level-specific fallback sentence is forwarded
instead; the generator is never retried. Only after the stream is closed does the task
write the check-in (one insert) and recompute the daily summary, so no reader can see a
check-in with a truncated reply. The task does not depend on the caller: if the client
goes away mid-stream the check-in is still written. Summary recomputes for the same user
are serialized in-process; across processes the (user_id, date) constraint decides.

Only ValidationError leaves handle_submission. Generator and storage failures are logged
and absorbed; a lost check-in is preferred over an error shown to the user.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import random
import time
import uuid
import weakref
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from liubai.services.check_in_store import (
    create_check_in,
    get_check_ins_for_day,
    get_latest_daily_summaries,
)
from liubai.services.daily_summary import upsert_daily_summary
from liubai.services.energy import EnergyLevel, parse_level
from liubai.services.metrics import (
    CHECK_IN_PERSIST_FAILURES,
    CHECK_INS_PERSISTED,
    REPLY_DURATION_SECONDS,
    REPLY_FALLBACKS,
)
from liubai.services.reply_generator import (
    COACH_SYSTEM_PROMPT,
    ReplyGenerator,
    build_check_in_context,
    fallback_reply,
)
from liubai.services.time_context import DEFAULT_TIMEZONE, date_time_string, today_string

logger = logging.getLogger(__name__)

QUESTION_MAX_LENGTH = 500
NOTE_MAX_LENGTH = 500
CONTEXT_SUMMARY_COUNT = 3

_END = object()


class ValidationError(Exception):
    """Submission rejected before anything was generated or stored."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class SubmissionState(str, enum.Enum):
    SUBMITTED = "submitted"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    FALLBACK_COMPLETED = "fallback_completed"


@dataclass(frozen=True)
class CheckInSubmission:
    check_in_id: str
    user_id: int
    level: EnergyLevel
    question: str
    note: str | None
    timezone: str
    check_in_at: str       # local wall clock, YYYY-MM-DDTHH:MM:SS
    check_in_at_utc: datetime
    today: str             # local date, YYYY-MM-DD


class ReplyStream:
    """Reply fragments of one submission, in order. Iterate once."""

    def __init__(self, submission: CheckInSubmission):
        self.submission = submission
        self.state = SubmissionState.SUBMITTED
        self.text = ""
        self.persisted = False
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None

    def __aiter__(self) -> AsyncIterator[str]:
        return self._fragments()

    async def _fragments(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item

    async def wait_persisted(self) -> bool:
        """Wait for the background write; True if the check-in row was stored."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.persisted


def validate_submission(level: object, question: object, note: object) -> tuple[EnergyLevel, str, str | None]:
    if level is None or (isinstance(level, str) and not level.strip()):
        raise ValidationError("level is required", field="level")
    parsed = parse_level(level)
    if parsed is None:
        raise ValidationError(f"unknown energy level: {level}", field="level")
    if not isinstance(question, str) or not question.strip():
        raise ValidationError("question is required", field="question")
    question = question.strip()
    if len(question) > QUESTION_MAX_LENGTH:
        raise ValidationError(f"question must be at most {QUESTION_MAX_LENGTH} characters", field="question")
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be text", field="note")
    note = (note or "").strip() or None
    if note and len(note) > NOTE_MAX_LENGTH:
        raise ValidationError(f"note must be at most {NOTE_MAX_LENGTH} characters", field="note")
    return parsed, question, note


class ReplyOrchestrator:
    """
    Created once per process (app lifespan) with the session maker and the text generator;
    every submission gets its own session for reads and for the final writes.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        generator: ReplyGenerator,
        *,
        system_instruction: str = COACH_SYSTEM_PROMPT,
        rng: random.Random | None = None,
    ):
        self._session_maker = session_maker
        self._generator = generator
        self._system_instruction = system_instruction
        self._rng = rng
        self._tasks: set[asyncio.Task] = set()
        # Summary recomputes of one user run one at a time within this process.
        # A lock lives only while some task holds or awaits it.
        self._summary_locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    async def handle_submission(
        self,
        user_id: int,
        level: object,
        question: object,
        note: object = None,
        tz: str = DEFAULT_TIMEZONE,
        now: datetime | None = None,
    ) -> ReplyStream:
        """Validate, load read-only context, start generation; returns the stream at once."""
        parsed_level, question, note = validate_submission(level, question, note)
        instant = now or datetime.now(timezone.utc)
        submission = CheckInSubmission(
            check_in_id=str(uuid.uuid4()),
            user_id=user_id,
            level=parsed_level,
            question=question,
            note=note,
            timezone=tz,
            check_in_at=date_time_string(tz, instant),
            check_in_at_utc=instant,
            today=today_string(tz, instant),
        )
        try:
            context = await self._load_context(submission)
        except Exception:
            # History is optional; reply without it
            CHECK_IN_PERSIST_FAILURES.labels(stage="context").inc()
            logger.exception(
                "Check-in %s: history load failed for user_id=%s, replying without it",
                submission.check_in_id, user_id,
            )
            context = build_check_in_context(parsed_level, question, [], [])

        stream = ReplyStream(submission)
        task = asyncio.create_task(self._run(stream, context), name=f"check-in-{submission.check_in_id}")
        stream._task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return stream

    async def wait_idle(self) -> None:
        """Wait until every in-flight submission has finished writing."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _load_context(self, submission: CheckInSubmission) -> str:
        async with self._session_maker() as session:
            today_rows = await get_check_ins_for_day(session, submission.user_id, submission.today)
            summaries = await get_latest_daily_summaries(session, submission.user_id, CONTEXT_SUMMARY_COUNT)
        return build_check_in_context(
            submission.level,
            submission.question,
            [(c.level, c.check_in_at) for c in today_rows],
            [(s.date, s.avg_score, s.min_score) for s in summaries],
        )

    async def _run(self, stream: ReplyStream, context: str) -> None:
        sub = stream.submission
        started = time.monotonic()
        stream.state = SubmissionState.GENERATING
        logger.info(
            "Reply %s: generation started (user_id=%s, level=%s)",
            sub.check_in_id, sub.user_id, sub.level.value,
        )
        parts: list[str] = []
        fallback_reason = None
        try:
            async for fragment in self._generator.stream(self._system_instruction, context):
                if not fragment:
                    continue
                parts.append(fragment)
                stream._queue.put_nowait(fragment)
        except Exception as e:
            stream.state = SubmissionState.FAILED
            fallback_reason = "error"
            logger.warning(
                "Reply %s: generator failed after %d fragments (%.0fms): %s",
                sub.check_in_id, len(parts), (time.monotonic() - started) * 1000, e,
            )
        else:
            if not "".join(parts):
                fallback_reason = "empty"
                logger.warning("Reply %s: generator returned no text", sub.check_in_id)

        try:
            if fallback_reason is not None:
                fallback = fallback_reply(sub.level, self._rng)
                parts.append(fallback)
                stream._queue.put_nowait(fallback)
                REPLY_FALLBACKS.labels(reason=fallback_reason).inc()
                stream.state = SubmissionState.FALLBACK_COMPLETED
            else:
                stream.state = SubmissionState.COMPLETED
        finally:
            # The reader must see the end of the stream whatever happened above
            stream.text = "".join(parts)
            stream._queue.put_nowait(_END)
        elapsed = time.monotonic() - started
        REPLY_DURATION_SECONDS.observe(elapsed)
        logger.info(
            "Reply %s: stream closed (%s, %d fragments, %.0fms)",
            sub.check_in_id, stream.state.value, len(parts), elapsed * 1000,
        )
        stream.persisted = await self._persist(sub, stream.text)

    def _summary_lock(self, user_id: int) -> asyncio.Lock:
        lock = self._summary_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._summary_locks[user_id] = lock
        return lock

    async def _persist(self, sub: CheckInSubmission, ai_response: str) -> bool:
        try:
            async with self._session_maker() as session:
                await create_check_in(
                    session,
                    check_in_id=sub.check_in_id,
                    user_id=sub.user_id,
                    level=sub.level.value,
                    question=sub.question,
                    note=sub.note,
                    ai_response=ai_response,
                    check_in_at=sub.check_in_at,
                    check_in_at_utc=sub.check_in_at_utc,
                    timezone_name=sub.timezone,
                )
                await session.commit()
        except Exception:
            CHECK_IN_PERSIST_FAILURES.labels(stage="check_in").inc()
            logger.exception("Check-in %s: save failed, dropped (user_id=%s)", sub.check_in_id, sub.user_id)
            return False
        CHECK_INS_PERSISTED.labels(level=sub.level.value).inc()
        logger.info("Check-in %s: saved (user_id=%s, level=%s)", sub.check_in_id, sub.user_id, sub.level.value)

        try:
            async with self._summary_lock(sub.user_id), self._session_maker() as session:
                await upsert_daily_summary(session, sub.user_id, sub.today)
                await session.commit()
        except Exception:
            CHECK_IN_PERSIST_FAILURES.labels(stage="daily_summary").inc()
            logger.exception(
                "Check-in %s: daily summary update failed for user_id=%s date=%s",
                sub.check_in_id, sub.user_id, sub.today,
            )
        return True
