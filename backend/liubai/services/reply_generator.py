"""
Coach reply text: persona prompt, check-in context, level-specific fallbacks and the
streaming Gemini producer used by the reply orchestrator.
"""
from __future__ import annotations

import logging
import random
from collections.abc import AsyncIterator, Sequence
from typing import Protocol

import google.generativeai as genai

from liubai.config import settings
from liubai.services.energy import EnergyLevel, emoji_of, label_of, parse_level
from liubai.services.gemini_common import build_model, chunk_text

logger = logging.getLogger(__name__)

COACH_SYSTEM_PROMPT = """你是一个温暖的精力教练，名叫「知秋」，是「留白」App 的 AI 伙伴。

你的风格：
- 温暖、简短、不说教、像朋友一样关心对方
- 回复控制在 150 字以内
- 如果用户精力充沛，给予肯定和鼓励
- 如果用户精力低，表达理解和关怀，给一个具体小建议
- 不要用感叹号轰炸，不要说"加油"
- 可以偶尔用一个 emoji，但不要过多
- 用"你"而非"您"
- 偶尔用自然界的植物、动物的比喻，目的是让用户知道适时休息才是自然界的法则

核心理念：留白 = 有意识地保留精力空间用于恢复，不透支。"""

_HIGH_FALLBACKS = (
    "今天状态不错呢，花园里的花也开得很好 🌸",
    "精力满满的一天，记得留一些给自己。",
    "状态很好！不过别忘了给花园留点水。",
)
_MEDIUM_FALLBACKS = (
    "还不错，稳稳的。记得适时休息一下。",
    "中等水位，花园还绿着。注意别透支哦。",
    "状态尚可，继续保持节奏就好。",
)
_LOW_FALLBACKS = (
    "辛苦了，花园里的花有点累了。找个时间歇一歇？",
    "精力有些低了，要不要放下手头的事休息一会儿？",
    "今天消耗不少呢。是时候对自己好一点了。",
)
_EXHAUSTED_FALLBACKS = (
    "你真的很累了。现在最重要的事是休息。花园明天还在。",
    "该停下来了。没有什么事比你自己更重要。",
    "低电量模式了。放下一切，去休息吧。明天是新的一天。",
)


class ReplyGenerator(Protocol):
    """Produces a finite, non-restartable stream of text fragments; may raise mid-stream."""

    def stream(self, system_instruction: str, context: str) -> AsyncIterator[str]: ...


def fallback_replies(level: object) -> tuple[str, ...]:
    match parse_level(level):
        case EnergyLevel.HIGH:
            return _HIGH_FALLBACKS
        case EnergyLevel.LOW:
            return _LOW_FALLBACKS
        case EnergyLevel.EXHAUSTED:
            return _EXHAUSTED_FALLBACKS
        case _:
            return _MEDIUM_FALLBACKS


def fallback_reply(level: object, rng: random.Random | None = None) -> str:
    return (rng or random).choice(fallback_replies(level))


def _level_text(level: object) -> str:
    if parse_level(level) is None:
        return str(level)
    return f"{label_of(level)} {emoji_of(level)}"


def build_check_in_context(
    level: object,
    question: str,
    today_check_ins: Sequence[tuple[str, str]],
    recent_summaries: Sequence[tuple[str, float, float]],
) -> str:
    """
    User message for the coach. today_check_ins: (level, check_in_at) newest first;
    recent_summaries: (date, avg_score, min_score) newest first, at most 3 are used.
    """
    lines = [
        "## 当前 check-in",
        f"- 问题：{question}",
        f"- 用户选择：{_level_text(level)}",
        "",
        "## 今天的记录",
    ]
    if today_check_ins:
        for prev_level, check_in_at in today_check_ins:
            hhmm = check_in_at.split("T", 1)[1][:5] if "T" in check_in_at else check_in_at
            lines.append(f"- {hhmm}: {_level_text(prev_level)}")
    else:
        lines.append("今天的第一次记录")
    lines += ["", "## 近几天趋势"]
    if recent_summaries:
        for day, avg_score, min_score in recent_summaries[:3]:
            lines.append(f"- {day}: 均值 {avg_score:.2f}, 最低 {min_score:.2f}")
    else:
        lines.append("暂无历史数据（新用户）")
    lines += ["", "请基于以上信息给出温暖简短的回应。"]
    return "\n".join(lines)


class GeminiReplyGenerator:
    """Streams the coach reply from Gemini. Built once in the app lifespan."""

    def __init__(
        self,
        api_key: str,
        model_name: str | None = None,
        *,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
    ):
        if api_key:
            genai.configure(api_key=api_key)
        self._model_name = model_name or settings.gemini_model
        self._max_output_tokens = max_output_tokens or settings.reply_max_output_tokens
        self._temperature = temperature if temperature is not None else settings.reply_temperature

    async def stream(self, system_instruction: str, context: str) -> AsyncIterator[str]:
        model = build_model(
            system_instruction,
            max_output_tokens=self._max_output_tokens,
            temperature=self._temperature,
            model_name=self._model_name,
        )
        response = await model.generate_content_async(context, stream=True)
        async for chunk in response:
            text = chunk_text(chunk)
            if text:
                yield text
