"""Tests for the energy scale: scores, labels, emoji, current energy."""

import pytest

from liubai.services.energy import (
    DEFAULT_CURRENT_ENERGY,
    DEFAULT_SCORE,
    EnergyLevel,
    current_energy,
    emoji_of,
    label_of,
    parse_level,
    score_of,
)


@pytest.mark.parametrize("level,score", [
    (EnergyLevel.HIGH, 1.0),
    (EnergyLevel.MEDIUM, 0.65),
    (EnergyLevel.LOW, 0.35),
    (EnergyLevel.EXHAUSTED, 0.1),
    ("LOW", 0.35),
    (" high ", 1.0),
])
def test_score_of(level, score):
    assert score_of(level) == score


def test_scores_are_strictly_decreasing():
    scores = [score_of(level) for level in EnergyLevel]
    assert scores == sorted(scores, reverse=True)
    assert len(set(scores)) == 4
    assert all(0 <= s <= 1 for s in scores)


@pytest.mark.parametrize("raw", ["TIRED", "", None, 3])
def test_unknown_level_gets_defaults(raw):
    """Lookups are total: anything outside the enum gets the neutral values."""
    assert parse_level(raw) is None
    assert score_of(raw) == DEFAULT_SCORE
    assert label_of(raw) == "未知"
    assert emoji_of(raw) == "⚪"


def test_labels_and_emoji():
    assert label_of(EnergyLevel.HIGH) == "精力充沛"
    assert label_of("EXHAUSTED") == "快没电了"
    assert emoji_of(EnergyLevel.MEDIUM) == "🟡"
    assert emoji_of("LOW") == "🟠"


def test_current_energy_without_check_ins():
    assert current_energy([]) == DEFAULT_CURRENT_ENERGY


def test_current_energy_is_mean_of_scores():
    assert current_energy(["HIGH", "EXHAUSTED"]) == pytest.approx(0.55)
