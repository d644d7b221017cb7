"""Tests for check-in submission: streamed reply, fallbacks, persistence after the stream."""

import asyncio
import gc
import random
from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from liubai.db.session import async_session_maker
from liubai.models.check_in import EnergyCheckIn
from liubai.services.check_in_store import get_check_ins_for_day, get_daily_summary
from liubai.services.reply_generator import COACH_SYSTEM_PROMPT, fallback_replies
from liubai.services.reply_orchestrator import (
    NOTE_MAX_LENGTH,
    QUESTION_MAX_LENGTH,
    ReplyOrchestrator,
    SubmissionState,
    ValidationError,
)

NOW = datetime(2024, 6, 1, 14, 15, 0, tzinfo=timezone.utc)  # 22:15 in Shanghai


async def _collect(stream) -> list[str]:
    return [fragment async for fragment in stream]


async def _check_ins(user_id: int, day: str) -> list[EnergyCheckIn]:
    async with async_session_maker() as session:
        return await get_check_ins_for_day(session, user_id, day)


@pytest.mark.asyncio
async def test_streams_fragments_then_persists(test_user, make_generator):
    user_id, _, _ = test_user
    generator = make_generator(["今天", "辛苦了。"])
    orchestrator = ReplyOrchestrator(async_session_maker, generator)

    stream = await orchestrator.handle_submission(
        user_id, "HIGH", "现在感觉怎么样？", "刚跑完步", "Asia/Shanghai", now=NOW
    )
    assert await _collect(stream) == ["今天", "辛苦了。"]
    assert await stream.wait_persisted() is True
    assert stream.state == SubmissionState.COMPLETED

    rows = await _check_ins(user_id, "2024-06-01")
    assert len(rows) == 1
    row = rows[0]
    assert row.level == "HIGH"
    assert row.note == "刚跑完步"
    assert row.ai_response == "今天辛苦了。"
    assert row.check_in_at == "2024-06-01T22:15:00"
    assert row.timezone == "Asia/Shanghai"
    assert generator.calls[0][0] == COACH_SYSTEM_PROMPT


@pytest.mark.asyncio
async def test_generator_error_sends_single_fallback(test_user, make_generator):
    """EXHAUSTED at 22:15 local with a failing generator: one fallback sentence, check-in and summary stored."""
    user_id, _, _ = test_user
    generator = make_generator(error=RuntimeError("model unavailable"))
    orchestrator = ReplyOrchestrator(async_session_maker, generator)

    stream = await orchestrator.handle_submission(
        user_id, "EXHAUSTED", "今天还有力气吗？", None, "Asia/Shanghai", now=NOW
    )
    fragments = await _collect(stream)
    assert len(fragments) == 1
    assert fragments[0] in fallback_replies("EXHAUSTED")
    assert await stream.wait_persisted() is True
    assert stream.state == SubmissionState.FALLBACK_COMPLETED

    rows = await _check_ins(user_id, "2024-06-01")
    assert [r.ai_response for r in rows] == [fragments[0]]
    assert rows[0].check_in_at == "2024-06-01T22:15:00"
    async with async_session_maker() as session:
        summary = await get_daily_summary(session, user_id, "2024-06-01")
    assert summary is not None
    assert summary.check_in_count == 1
    assert summary.min_score == 0.1
    assert summary.below_reserve == 1


@pytest.mark.asyncio
async def test_partial_reply_then_error_appends_fallback(test_user, make_generator):
    user_id, _, _ = test_user
    generator = make_generator(["先深呼吸"], error=ConnectionError("stream dropped"))
    orchestrator = ReplyOrchestrator(async_session_maker, generator, rng=random.Random(0))

    stream = await orchestrator.handle_submission(user_id, "LOW", "累吗？", tz="Asia/Shanghai", now=NOW)
    fragments = await _collect(stream)
    assert fragments[0] == "先深呼吸"
    assert len(fragments) == 2
    assert fragments[1] in fallback_replies("LOW")
    await stream.wait_persisted()
    rows = await _check_ins(user_id, "2024-06-01")
    assert rows[0].ai_response == "".join(fragments)


@pytest.mark.asyncio
async def test_empty_reply_gets_fallback(test_user, make_generator):
    user_id, _, _ = test_user
    orchestrator = ReplyOrchestrator(async_session_maker, make_generator(["", ""]))
    stream = await orchestrator.handle_submission(user_id, "MEDIUM", "还好吗？", now=NOW)
    fragments = await _collect(stream)
    assert len(fragments) == 1
    assert fragments[0] in fallback_replies("MEDIUM")
    assert stream.state == SubmissionState.FALLBACK_COMPLETED


@pytest.mark.parametrize("level,question,note,field", [
    (None, "问题", None, "level"),
    ("", "问题", None, "level"),
    ("TIRED", "问题", None, "level"),
    ("HIGH", None, None, "question"),
    ("HIGH", "   ", None, "question"),
    ("HIGH", "问" * (QUESTION_MAX_LENGTH + 1), None, "question"),
    ("HIGH", "问题", "记" * (NOTE_MAX_LENGTH + 1), "note"),
    ("HIGH", "问题", 42, "note"),
])
@pytest.mark.asyncio
async def test_invalid_submission_is_rejected(test_user, make_generator, level, question, note, field):
    user_id, _, _ = test_user
    generator = make_generator(["不会出现"])
    orchestrator = ReplyOrchestrator(async_session_maker, generator)
    with pytest.raises(ValidationError) as exc_info:
        await orchestrator.handle_submission(user_id, level, question, note, now=NOW)
    assert exc_info.value.field == field
    assert generator.calls == []
    assert await _check_ins(user_id, "2024-06-01") == []


@pytest.mark.asyncio
async def test_lowercase_level_is_accepted(test_user, make_generator):
    user_id, _, _ = test_user
    orchestrator = ReplyOrchestrator(async_session_maker, make_generator(["嗯"]))
    stream = await orchestrator.handle_submission(user_id, "low", "问题", now=NOW)
    await _collect(stream)
    await stream.wait_persisted()
    assert (await _check_ins(user_id, "2024-06-01"))[0].level == "LOW"


@pytest.mark.asyncio
async def test_context_includes_earlier_check_ins(test_user, make_generator):
    user_id, _, _ = test_user
    generator = make_generator(["好"])
    orchestrator = ReplyOrchestrator(async_session_maker, generator)

    first = await orchestrator.handle_submission(user_id, "HIGH", "早上好吗？", now=NOW)
    await _collect(first)
    await first.wait_persisted()
    second = await orchestrator.handle_submission(user_id, "LOW", "现在呢？", now=NOW)
    await _collect(second)
    await second.wait_persisted()

    first_context = generator.calls[0][1]
    second_context = generator.calls[1][1]
    assert "今天的第一次记录" in first_context
    assert "暂无历史数据" in first_context
    assert "22:15" in second_context
    assert "精力充沛" in second_context
    assert "2024-06-01: 均值 1.00" in second_context


@pytest.mark.asyncio
async def test_concurrent_submissions_both_counted(test_user, make_generator):
    """Two check-ins of the same day submitted together end up in one summary with count 2."""
    user_id, _, _ = test_user
    orchestrator = ReplyOrchestrator(async_session_maker, make_generator(["收到"]))

    streams = await asyncio.gather(
        orchestrator.handle_submission(user_id, "HIGH", "问题一", now=NOW),
        orchestrator.handle_submission(user_id, "EXHAUSTED", "问题二", now=NOW),
    )
    await asyncio.gather(*(_collect(s) for s in streams))
    await orchestrator.wait_idle()

    assert all(s.persisted for s in streams)
    assert len(await _check_ins(user_id, "2024-06-01")) == 2
    async with async_session_maker() as session:
        summary = await get_daily_summary(session, user_id, "2024-06-01")
    assert summary.check_in_count == 2
    assert summary.avg_score == pytest.approx(0.55)
    assert summary.min_score == 0.1
    assert summary.max_score == 1.0


@pytest.mark.asyncio
async def test_abandoned_stream_still_persists(test_user, make_generator):
    """The caller stops reading after the first fragment; the check-in is written anyway."""
    user_id, _, _ = test_user
    orchestrator = ReplyOrchestrator(async_session_maker, make_generator(["第一句。", "第二句。"]))

    stream = await orchestrator.handle_submission(user_id, "MEDIUM", "还撑得住吗？", now=NOW)
    async for _ in stream:
        break
    del stream
    await orchestrator.wait_idle()

    rows = await _check_ins(user_id, "2024-06-01")
    assert len(rows) == 1
    assert rows[0].ai_response == "第一句。第二句。"


class FailingWritesSessionMaker:
    """Real session for the context read, then every further session fails to open."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls > 1:
            raise RuntimeError("database unavailable")
        return async_session_maker()


@pytest.mark.asyncio
async def test_persistence_failure_is_swallowed(test_user, make_generator):
    user_id, _, _ = test_user
    orchestrator = ReplyOrchestrator(FailingWritesSessionMaker(), make_generator(["完整的回复"]))

    stream = await orchestrator.handle_submission(user_id, "HIGH", "问题", now=NOW)
    assert await _collect(stream) == ["完整的回复"]
    assert await stream.wait_persisted() is False
    assert stream.state == SubmissionState.COMPLETED
    async with async_session_maker() as session:
        r = await session.execute(select(EnergyCheckIn).where(EnergyCheckIn.user_id == user_id))
        assert r.scalars().all() == []


class UnavailableSessionMaker:
    """Every session fails to open, including the one for the history read."""

    def __call__(self):
        raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_history_read_failure_still_replies(test_user, make_generator):
    user_id, _, _ = test_user
    generator = make_generator(["hi"])
    orchestrator = ReplyOrchestrator(UnavailableSessionMaker(), generator)

    stream = await orchestrator.handle_submission(user_id, "LOW", "还好吗？", now=NOW)
    assert await _collect(stream) == ["hi"]
    assert await stream.wait_persisted() is False
    assert stream.state == SubmissionState.COMPLETED
    context = generator.calls[0][1]
    assert "今天的第一次记录" in context
    assert "暂无历史数据" in context


class BrokenRandom(random.Random):
    def choice(self, seq):
        raise RuntimeError("no fallback available")


@pytest.mark.asyncio
async def test_stream_ends_even_if_fallback_fails(test_user, make_generator):
    """A reader never hangs: the stream is closed before the error leaves the task."""
    user_id, _, _ = test_user
    orchestrator = ReplyOrchestrator(
        async_session_maker, make_generator(error=RuntimeError("boom")), rng=BrokenRandom()
    )

    stream = await orchestrator.handle_submission(user_id, "HIGH", "问题", now=NOW)
    assert await asyncio.wait_for(_collect(stream), timeout=1) == []
    with pytest.raises(RuntimeError, match="no fallback available"):
        await stream.wait_persisted()
    assert stream.persisted is False


class GatedGenerator:
    """Holds each reply until the test opens the gate of the question it answers."""

    def __init__(self, questions):
        self.questions = questions
        self.gates: dict[str, asyncio.Event] = {}

    async def stream(self, system_instruction: str, context: str):
        question = next(q for q in self.questions if q in context)
        gate = self.gates[question] = asyncio.Event()
        await gate.wait()
        yield "收到"


@pytest.mark.parametrize("release_order", [("问题一", "问题二"), ("问题二", "问题一")])
@pytest.mark.asyncio
async def test_summary_counts_both_check_ins_in_any_finish_order(test_user, release_order):
    user_id, _, _ = test_user
    generator = GatedGenerator(["问题一", "问题二"])
    orchestrator = ReplyOrchestrator(async_session_maker, generator)

    streams = {
        "问题一": await orchestrator.handle_submission(user_id, "HIGH", "问题一", now=NOW),
        "问题二": await orchestrator.handle_submission(user_id, "EXHAUSTED", "问题二", now=NOW),
    }
    while len(generator.gates) < 2:
        await asyncio.sleep(0)
    for question in release_order:
        generator.gates[question].set()
        assert await _collect(streams[question]) == ["收到"]
        assert await streams[question].wait_persisted() is True

    async with async_session_maker() as session:
        summary = await get_daily_summary(session, user_id, "2024-06-01")
    assert summary.check_in_count == 2
    assert summary.avg_score == pytest.approx(0.55)
    assert summary.min_score == 0.1
    assert summary.max_score == 1.0


@pytest.mark.asyncio
async def test_summary_locks_are_released_after_use(test_user, make_generator):
    user_id, _, _ = test_user
    orchestrator = ReplyOrchestrator(async_session_maker, make_generator(["好"]))

    stream = await orchestrator.handle_submission(user_id, "MEDIUM", "问题", now=NOW)
    await _collect(stream)
    assert await stream.wait_persisted() is True
    await orchestrator.wait_idle()
    gc.collect()
    assert len(orchestrator._summary_locks) == 0
