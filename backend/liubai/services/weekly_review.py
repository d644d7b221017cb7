"""Weekly energy review: one coach message per user summarising the last 7 daily summaries."""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.config import settings
from liubai.models.coach_message import CoachMessage, TriggerType
from liubai.models.daily_summary import DailyEnergySummary
from liubai.services.check_in_store import get_daily_summaries_between
from liubai.services.daily_summary import get_reserve_ratio
from liubai.services.gemini_common import build_model, generate_text
from liubai.services.reply_generator import COACH_SYSTEM_PROMPT
from liubai.services.time_context import days_before, today_string

logger = logging.getLogger(__name__)

REVIEW_DAYS = 7
WEEKDAYS = ("周一", "周二", "周三", "周四", "周五", "周六", "周日")
REVIEW_FALLBACK = "本周精力报告暂时无法生成，请稍后再试。"
NO_DATA_MESSAGE = "这周还没有精力记录。先从一次 check-in 开始吧。"


def weekday_label(day: str) -> str:
    return WEEKDAYS[date.fromisoformat(day).weekday()]


def build_weekly_context(summaries: list[DailyEnergySummary], reserve_ratio: float) -> str:
    """Summaries oldest first."""
    lines = ["## 本周精力数据"]
    for s in summaries:
        lines.append(
            f"- {s.date}（{weekday_label(s.date)}）: 均值 {s.avg_score:.2f}, "
            f"最低 {s.min_score:.2f}, 透支 {s.below_reserve} 次"
        )
    lines += [
        "",
        "## 用户设定",
        f"- 精力保留比例: {reserve_ratio * 100:.0f}%",
        "",
        "## 任务",
        "请生成一份温暖的周度精力回顾，包含：",
        "1. 对这周精力状态的总结（2-3句）",
        "2. 发现的规律或值得注意的点（1-2句）",
        "3. 对下周的一个小建议（1句）",
        "控制在 150 字以内。",
    ]
    return "\n".join(lines)


async def _generate_text(context: str) -> str:
    model = build_model(
        COACH_SYSTEM_PROMPT,
        max_output_tokens=settings.weekly_review_max_output_tokens,
        temperature=settings.weekly_review_temperature,
    )
    text = await generate_text(model, context, purpose="weekly review")
    return text or REVIEW_FALLBACK


async def generate_weekly_review(
    session: AsyncSession,
    user_id: int,
    today: str,
    generate=None,
) -> CoachMessage:
    """Build the review for the 7 days up to `today`, store it as a WEEKLY_SUMMARY message."""
    generate = generate or _generate_text
    summaries = await get_daily_summaries_between(
        session, user_id, days_before(today, REVIEW_DAYS - 1), today
    )
    if not summaries:
        content = NO_DATA_MESSAGE
    else:
        reserve_ratio = await get_reserve_ratio(session, user_id)
        context = build_weekly_context(summaries, reserve_ratio)
        try:
            content = await generate(context)
        except Exception as e:
            logger.warning("Weekly review: generation failed for user_id=%s: %s", user_id, e)
            content = REVIEW_FALLBACK
    message = CoachMessage(
        user_id=user_id,
        trigger_type=TriggerType.weekly_summary.value,
        content=content,
    )
    session.add(message)
    await session.flush()
    logger.info("Weekly review: stored for user_id=%s (%d days of data)", user_id, len(summaries))
    return message


async def run_weekly_review_job() -> None:
    """Scheduled job: weekly review for every user that has summaries in the last 7 days."""
    from liubai.db.session import async_session_maker

    today = today_string(settings.default_timezone)
    async with async_session_maker() as session:
        r = await session.execute(
            select(DailyEnergySummary.user_id)
            .where(DailyEnergySummary.date > days_before(today, REVIEW_DAYS))
            .distinct()
        )
        user_ids = [row[0] for row in r.all()]
    if not user_ids:
        logger.debug("Weekly review: no active users this week")
        return
    for user_id in user_ids:
        async with async_session_maker() as session:
            try:
                await generate_weekly_review(session, user_id, today)
                await session.commit()
            except Exception as e:
                logger.exception("Weekly review: job failed for user_id=%s: %s", user_id, e)
                await session.rollback()
