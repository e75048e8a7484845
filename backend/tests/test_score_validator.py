"""
Tests for best-of-N series score validation.
"""

import pytest

from bracketcore.services.bracket_types import ErrorKind, OutcomeKind, SlotSide, majority_threshold
from bracketcore.services.score_validator import (
    ReportedScore,
    canonical_score,
    series_options,
    validate_score,
)


def test_majority_threshold():
    assert majority_threshold(5) == 3
    assert majority_threshold(7) == 4


class TestNormalResults:
    @pytest.mark.parametrize("a,b", [(3, 0), (3, 1), (3, 2)])
    def test_best_of_5_slot_a_wins(self, a, b):
        result = validate_score(ReportedScore(series_format=5, sets_won_a=a, sets_won_b=b))
        assert result.valid
        assert result.winner_slot is SlotSide.A
        assert (result.sets_won_a, result.sets_won_b) == (a, b)

    def test_best_of_5_slot_b_wins(self):
        result = validate_score(ReportedScore(series_format=5, sets_won_a=2, sets_won_b=3))
        assert result.valid
        assert result.winner_slot is SlotSide.B

    def test_best_of_7_four_three(self):
        result = validate_score(ReportedScore(series_format=7, sets_won_a=4, sets_won_b=3))
        assert result.valid
        assert result.winner_slot is SlotSide.A

    def test_best_of_7_rejects_three_nil(self):
        """3-0 is not finished in a best-of-7."""
        result = validate_score(ReportedScore(series_format=7, sets_won_a=3, sets_won_b=0))
        assert not result.valid
        assert result.reason is ErrorKind.InvalidSeriesScore

    @pytest.mark.parametrize("a,b", [(3, 3), (2, 2), (4, 1), (0, 0), (2, 1)])
    def test_best_of_5_rejects_unfinished_or_overshoot(self, a, b):
        result = validate_score(ReportedScore(series_format=5, sets_won_a=a, sets_won_b=b))
        assert not result.valid
        assert result.reason is ErrorKind.InvalidSeriesScore
        assert result.winner_slot is None

    def test_negative_counts_rejected(self):
        result = validate_score(ReportedScore(series_format=5, sets_won_a=3, sets_won_b=-1))
        assert not result.valid
        assert result.reason is ErrorKind.InvalidSeriesScore

    def test_unsupported_format_rejected(self):
        result = validate_score(ReportedScore(series_format=3, sets_won_a=2, sets_won_b=0))
        assert not result.valid
        assert result.reason is ErrorKind.InvalidSeriesScore
        assert "best-of-3" in result.detail

    def test_declared_winner_must_match_counts(self):
        result = validate_score(
            ReportedScore(series_format=5, sets_won_a=3, sets_won_b=1, winner_slot=SlotSide.B)
        )
        assert not result.valid
        assert result.reason is ErrorKind.InvalidSeriesScore

    def test_declared_winner_agreeing_is_fine(self):
        result = validate_score(
            ReportedScore(series_format=5, sets_won_a=1, sets_won_b=3, winner_slot=SlotSide.B)
        )
        assert result.valid
        assert result.winner_slot is SlotSide.B


class TestWalkoverAndRetirement:
    def test_walkover_without_winner_is_missing_winner(self):
        result = validate_score(
            ReportedScore(series_format=5, sets_won_a=0, sets_won_b=0, outcome_kind=OutcomeKind.walkover)
        )
        assert not result.valid
        assert result.reason is ErrorKind.MissingWinner

    def test_walkover_uses_canonical_score(self):
        result = validate_score(
            ReportedScore(
                series_format=7,
                sets_won_a=0,
                sets_won_b=0,
                outcome_kind=OutcomeKind.walkover,
                winner_slot=SlotSide.B,
            )
        )
        assert result.valid
        assert result.winner_slot is SlotSide.B
        assert (result.sets_won_a, result.sets_won_b) == (0, 4)

    def test_retirement_keeps_declared_winner_over_partial_counts(self):
        """Partial counts are replaced by the canonical score."""
        result = validate_score(
            ReportedScore(
                series_format=5,
                sets_won_a=1,
                sets_won_b=2,
                outcome_kind=OutcomeKind.retired,
                winner_slot=SlotSide.A,
            )
        )
        assert result.valid
        assert result.winner_slot is SlotSide.A
        assert (result.sets_won_a, result.sets_won_b) == (3, 0)

    def test_retirement_after_loser_already_won_is_invalid(self):
        result = validate_score(
            ReportedScore(
                series_format=5,
                sets_won_a=3,
                sets_won_b=1,
                outcome_kind=OutcomeKind.retired,
                winner_slot=SlotSide.B,
            )
        )
        assert not result.valid
        assert result.reason is ErrorKind.InvalidSeriesScore


def test_to_result_on_invalid_raises():
    result = validate_score(ReportedScore(series_format=5, sets_won_a=1, sets_won_b=1))
    with pytest.raises(ValueError):
        result.to_result(5, OutcomeKind.normal)


def test_to_result_carries_format_and_kind():
    validation = validate_score(ReportedScore(series_format=7, sets_won_a=2, sets_won_b=4))
    stored = validation.to_result(7, OutcomeKind.normal)
    assert stored.series_format == 7
    assert stored.winner_slot is SlotSide.B
    assert (stored.sets_won_a, stored.sets_won_b) == (2, 4)


def test_canonical_score():
    assert canonical_score(5, SlotSide.A) == (3, 0)
    assert canonical_score(7, SlotSide.B) == (0, 4)


def test_series_options_best_of_5():
    options = series_options(5)
    assert len(options) == 6
    assert options[0] == (3, 0, SlotSide.A)
    assert (2, 3, SlotSide.B) in options
    for a, b, winner in options:
        result = validate_score(ReportedScore(series_format=5, sets_won_a=a, sets_won_b=b))
        assert result.valid and result.winner_slot is winner


@pytest.mark.parametrize(
    "series_format,legal",
    [
        (5, {(3, 0), (3, 1), (3, 2), (0, 3), (1, 3), (2, 3)}),
        (7, {(4, 0), (4, 1), (4, 2), (4, 3), (0, 4), (1, 4), (2, 4), (3, 4)}),
    ],
)
def test_legal_scores_are_exactly_the_majority_pairs(series_format, legal):
    for a in range(series_format + 1):
        for b in range(series_format + 1):
            result = validate_score(ReportedScore(series_format=series_format, sets_won_a=a, sets_won_b=b))
            assert result.valid == ((a, b) in legal), f"{a}-{b} best-of-{series_format}"


@pytest.mark.parametrize("a,b", [(0, 0), (2, 2), (1, 0), (0, 2)])
def test_walkover_with_non_conflicting_counts_is_canonical(a, b):
    result = validate_score(
        ReportedScore(
            series_format=5,
            sets_won_a=a,
            sets_won_b=b,
            outcome_kind=OutcomeKind.walkover,
            winner_slot=SlotSide.A,
        )
    )
    assert result.valid
    assert (result.sets_won_a, result.sets_won_b) == (3, 0)
