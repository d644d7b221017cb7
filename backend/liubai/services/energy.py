"""
Energy scale: the four qualitative levels a user can report, their numeric scores
and display metadata. All lookups are total; anything outside the enum gets a neutral default.
"""
from __future__ import annotations

import enum
from collections.abc import Iterable

DEFAULT_SCORE = 0.5
# Garden shows "medium" before the first check-in of the day
DEFAULT_CURRENT_ENERGY = 0.65


class EnergyLevel(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    EXHAUSTED = "EXHAUSTED"


def parse_level(value: object) -> EnergyLevel | None:
    """Return the EnergyLevel for an enum member or its string value; None if unrecognized."""
    if isinstance(value, EnergyLevel):
        return value
    if isinstance(value, str):
        try:
            return EnergyLevel(value.strip().upper())
        except ValueError:
            return None
    return None


def score_of(level: object) -> float:
    match parse_level(level):
        case EnergyLevel.HIGH:
            return 1.0
        case EnergyLevel.MEDIUM:
            return 0.65
        case EnergyLevel.LOW:
            return 0.35
        case EnergyLevel.EXHAUSTED:
            return 0.1
        case _:
            return DEFAULT_SCORE


def label_of(level: object) -> str:
    match parse_level(level):
        case EnergyLevel.HIGH:
            return "精力充沛"
        case EnergyLevel.MEDIUM:
            return "状态尚可"
        case EnergyLevel.LOW:
            return "有点疲惫"
        case EnergyLevel.EXHAUSTED:
            return "快没电了"
        case _:
            return "未知"


def emoji_of(level: object) -> str:
    match parse_level(level):
        case EnergyLevel.HIGH:
            return "🟢"
        case EnergyLevel.MEDIUM:
            return "🟡"
        case EnergyLevel.LOW:
            return "🟠"
        case EnergyLevel.EXHAUSTED:
            return "🔴"
        case _:
            return "⚪"


def current_energy(levels: Iterable[object]) -> float:
    """Mean score of today's check-ins (0-1), used for the garden; medium when there are none."""
    scores = [score_of(level) for level in levels]
    if not scores:
        return DEFAULT_CURRENT_ENERGY
    return sum(scores) / len(scores)
