"""Tests for coach reply context and fallbacks."""

import random

from liubai.services.energy import EnergyLevel
from liubai.services.reply_generator import build_check_in_context, fallback_replies, fallback_reply


def test_each_level_has_three_fallbacks():
    for level in EnergyLevel:
        assert len(fallback_replies(level)) == 3
    assert fallback_replies("UNKNOWN") == fallback_replies(EnergyLevel.MEDIUM)


def test_fallback_reply_is_from_level_set():
    rng = random.Random(5)
    for _ in range(10):
        assert fallback_reply("EXHAUSTED", rng) in fallback_replies(EnergyLevel.EXHAUSTED)


def test_context_for_new_user():
    context = build_check_in_context("HIGH", "现在感觉怎么样？", [], [])
    assert "问题：现在感觉怎么样？" in context
    assert "用户选择：精力充沛 🟢" in context
    assert "今天的第一次记录" in context
    assert "暂无历史数据（新用户）" in context


def test_context_with_history_uses_three_summaries():
    summaries = [
        ("2024-06-04", 0.7, 0.35),
        ("2024-06-03", 0.6, 0.1),
        ("2024-06-02", 0.5, 0.1),
        ("2024-06-01", 0.4, 0.1),
    ]
    context = build_check_in_context(
        "LOW", "累吗？", [("MEDIUM", "2024-06-05T13:05:00")], summaries
    )
    assert "- 13:05: 状态尚可 🟡" in context
    assert "2024-06-02: 均值 0.50, 最低 0.10" in context
    assert "2024-06-01" not in context
