"""
Series score validation for best-of-N matches.

Normal results must show exactly one side at the majority threshold;
walkovers and retirements only need a declared winner and are recorded
with the canonical T-0 score. Validation never raises: every failure is
returned as a tagged result the caller renders back to the reporter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from bracketcore.services.bracket_types import (
    SUPPORTED_SERIES_FORMATS,
    ErrorKind,
    MatchResult,
    OutcomeKind,
    SlotSide,
    majority_threshold,
)


@dataclass(frozen=True)
class ReportedScore:
    series_format: int
    sets_won_a: int
    sets_won_b: int
    outcome_kind: OutcomeKind = OutcomeKind.normal
    winner_slot: Optional[SlotSide] = None


@dataclass(frozen=True)
class ScoreValidationResult:
    valid: bool
    winner_slot: Optional[SlotSide] = None
    reason: Optional[ErrorKind] = None
    detail: Optional[str] = None
    sets_won_a: Optional[int] = None
    sets_won_b: Optional[int] = None

    def to_result(self, series_format: int, outcome_kind: OutcomeKind) -> MatchResult:
        """Build the stored result for a valid report."""
        if not self.valid:
            raise ValueError("Cannot build a match result from an invalid report")
        return MatchResult(
            winner_slot=self.winner_slot,
            series_format=series_format,
            sets_won_a=self.sets_won_a,
            sets_won_b=self.sets_won_b,
            outcome_kind=outcome_kind,
        )


def _invalid(reason: ErrorKind, detail: str) -> ScoreValidationResult:
    return ScoreValidationResult(valid=False, reason=reason, detail=detail)


def canonical_score(series_format: int, winner_slot: SlotSide) -> Tuple[int, int]:
    """T-0 for a slot A win, 0-T for a slot B win."""
    threshold = majority_threshold(series_format)
    return (threshold, 0) if winner_slot is SlotSide.A else (0, threshold)


def series_options(series_format: int) -> List[Tuple[int, int, SlotSide]]:
    """All legal (sets_a, sets_b, winner) outcomes of a normal series, A wins first."""
    threshold = majority_threshold(series_format)
    options = [(threshold, lost, SlotSide.A) for lost in range(threshold)]
    options += [(lost, threshold, SlotSide.B) for lost in range(threshold)]
    return options


def validate_score(reported: ReportedScore) -> ScoreValidationResult:
    """Decide validity and the implied winner of a reported series."""
    if reported.series_format not in SUPPORTED_SERIES_FORMATS:
        return _invalid(
            ErrorKind.InvalidSeriesScore,
            f"Unsupported series format best-of-{reported.series_format}",
        )

    a, b = reported.sets_won_a, reported.sets_won_b
    if a is None or b is None or a < 0 or b < 0:
        return _invalid(ErrorKind.InvalidSeriesScore, f"Set counts must be non-negative, got {a}-{b}")

    threshold = majority_threshold(reported.series_format)

    if reported.outcome_kind is OutcomeKind.normal:
        if a == threshold and b < threshold:
            implied = SlotSide.A
        elif b == threshold and a < threshold:
            implied = SlotSide.B
        else:
            return _invalid(
                ErrorKind.InvalidSeriesScore,
                f"{a}-{b} is not a finished best-of-{reported.series_format} series",
            )
        if reported.winner_slot is not None and reported.winner_slot is not implied:
            return _invalid(
                ErrorKind.InvalidSeriesScore,
                f"{a}-{b} contradicts declared winner {reported.winner_slot.value}",
            )
        return ScoreValidationResult(valid=True, winner_slot=implied, sets_won_a=a, sets_won_b=b)

    # Walkover / retirement
    if reported.winner_slot is None:
        return _invalid(
            ErrorKind.MissingWinner,
            f"A {reported.outcome_kind.value} result needs a declared winning side",
        )
    loser_sets = b if reported.winner_slot is SlotSide.A else a
    if loser_sets >= threshold:
        return _invalid(
            ErrorKind.InvalidSeriesScore,
            f"{a}-{b} already shows side {reported.winner_slot.other.value} winning the series",
        )
    canon_a, canon_b = canonical_score(reported.series_format, reported.winner_slot)
    return ScoreValidationResult(
        valid=True,
        winner_slot=reported.winner_slot,
        sets_won_a=canon_a,
        sets_won_b=canon_b,
    )
