"""
Shared value types for the bracket engine.

Everything here is immutable and free of persistence concerns: the match
repository converts table rows into MatchSnapshot values, the engine
computes over them, and plans/results flow back out as plain data.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple, Union


class SlotSide(str, Enum):
    A = "A"
    B = "B"

    @property
    def other(self) -> "SlotSide":
        return SlotSide.B if self is SlotSide.A else SlotSide.A


class OutcomeKind(str, Enum):
    normal = "normal"
    walkover = "walkover"
    retired = "retired"


class MatchStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    finished = "finished"


# Forward-only ordering for status transitions
STATUS_ORDER = {
    MatchStatus.scheduled: 0,
    MatchStatus.in_progress: 1,
    MatchStatus.finished: 2,
}

SUPPORTED_SERIES_FORMATS = (5, 7)


class ErrorKind(str, Enum):
    InvalidSeriesScore = "InvalidSeriesScore"
    MissingWinner = "MissingWinner"
    SlotConflict = "SlotConflict"
    SlotUnresolved = "SlotUnresolved"
    DuplicateEntrant = "DuplicateEntrant"
    RosterSizeOutOfRange = "RosterSizeOutOfRange"
    GenderConstraintViolation = "GenderConstraintViolation"
    MissingTeamName = "MissingTeamName"
    StaleWrite = "StaleWrite"


def majority_threshold(series_format: int) -> int:
    """Sets needed to win a best-of-N series (3 for best-of-5, 4 for best-of-7)."""
    return math.ceil(series_format / 2)


# ============================================================================
# Slot occupants
# ============================================================================


@dataclass(frozen=True)
class EmptySlot:
    pass


@dataclass(frozen=True)
class ByeSlot:
    pass


@dataclass(frozen=True)
class EntrantSlot:
    entrant_id: int
    placed_from: Optional[int] = None  # match id whose advancement placed this entrant


@dataclass(frozen=True)
class PlaceholderSlot:
    source_match_id: int  # "winner of match X"


SlotOccupant = Union[EmptySlot, ByeSlot, EntrantSlot, PlaceholderSlot]

EMPTY = EmptySlot()
BYE = ByeSlot()


# ============================================================================
# Match snapshot
# ============================================================================


@dataclass(frozen=True)
class MatchResult:
    winner_slot: SlotSide
    series_format: int
    sets_won_a: int
    sets_won_b: int
    outcome_kind: OutcomeKind = OutcomeKind.normal


@dataclass(frozen=True)
class MatchSnapshot:
    """Read-only view of one bracket node as last fetched from the repository."""

    id: int
    round_number: int
    slot_a: SlotOccupant = EMPTY
    slot_b: SlotOccupant = EMPTY
    next_match_id: Optional[int] = None
    loser_next_match_id: Optional[int] = None
    source_match_ids: Tuple[int, ...] = field(default_factory=tuple)
    status: MatchStatus = MatchStatus.scheduled
    result: Optional[MatchResult] = None
    series_format: int = 5
    version: int = 1
    tournament_id: Optional[int] = None
    event_id: Optional[int] = None
    bracket_role: str = "MAIN"
    match_code: Optional[str] = None

    def slot(self, side: SlotSide) -> SlotOccupant:
        return self.slot_a if side is SlotSide.A else self.slot_b

    def entrant_ids(self) -> Tuple[int, ...]:
        return tuple(o.entrant_id for o in (self.slot_a, self.slot_b) if isinstance(o, EntrantSlot))

    @property
    def is_finished(self) -> bool:
        return self.status is MatchStatus.finished

    def with_result(self, result: MatchResult) -> "MatchSnapshot":
        return replace(self, status=MatchStatus.finished, result=result, series_format=result.series_format)

    def with_slot(self, side: SlotSide, occupant: SlotOccupant) -> "MatchSnapshot":
        if side is SlotSide.A:
            return replace(self, slot_a=occupant)
        return replace(self, slot_b=occupant)
