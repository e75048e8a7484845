"""
Minimal codec for stored series score strings.

Supports formats like:
  "3-1"          → normal result, sets 3-1
  "2-4"          → normal result, sets 2-4
  "W.O." / "WO"  → walkover (winner must be supplied separately)
  "RET"          → retirement (winner must be supplied separately)
  {"display": "3-1"} → extracts display string first

The series format always comes from the stored match, never from the
set counts: a best-of-7 match can end 4-0 but a best-of-5 one never
reaches 4, and a 3-0 could be either.

Returns None on parse failure (non-fatal).
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Union

from bracketcore.services.bracket_types import MatchResult, OutcomeKind, SlotSide
from bracketcore.services.score_validator import ReportedScore

WALKOVER_LABEL = "W.O."
RETIRED_LABEL = "RET"

_WALKOVER_TOKENS = {"W.O.", "WO", "W/O"}
_RETIRED_TOKENS = {"RET", "RET.", "RETIRED"}


def format_score(result: MatchResult) -> str:
    """Render a stored result the way the results table shows it."""
    if result.outcome_kind is OutcomeKind.walkover:
        return WALKOVER_LABEL
    if result.outcome_kind is OutcomeKind.retired:
        return RETIRED_LABEL
    return f"{result.sets_won_a}-{result.sets_won_b}"


def parse_score(
    score: Optional[Union[str, Dict[str, Any]]],
    series_format: int,
    winner_slot: Optional[SlotSide] = None,
) -> Optional[ReportedScore]:
    """Parse a stored score display back into a report for re-validation.

    Returns None if the score cannot be parsed.
    """
    if not score:
        return None

    raw: Optional[str] = None
    if isinstance(score, str):
        raw = score
    elif isinstance(score, dict):
        raw = str(score.get("display") or score.get("score") or "")
    if not raw or not raw.strip():
        return None

    token = raw.strip().upper()
    if token in _WALKOVER_TOKENS or token in _RETIRED_TOKENS:
        kind = OutcomeKind.walkover if token in _WALKOVER_TOKENS else OutcomeKind.retired
        return ReportedScore(
            series_format=series_format,
            sets_won_a=0,
            sets_won_b=0,
            outcome_kind=kind,
            winner_slot=winner_slot,
        )

    return _parse_series_string(token, series_format, winner_slot)


def _parse_series_string(raw: str, series_format: int, winner_slot: Optional[SlotSide]) -> Optional[ReportedScore]:
    """Parse strings like '3-1' or '3:1'."""
    pair = raw.replace(":", "-").replace(" ", "").split("-")
    if len(pair) != 2:
        return None
    try:
        a = int(pair[0])
        b = int(pair[1])
    except ValueError:
        return None

    return ReportedScore(
        series_format=series_format,
        sets_won_a=a,
        sets_won_b=b,
        outcome_kind=OutcomeKind.normal,
        winner_slot=winner_slot,
    )
