"""
Response Models

Pydantic response models shared across the runtime, bracket and roster
routers, plus the converters from engine values.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pydantic import BaseModel

from bracketcore.services.advancement_service import AdvanceError, AdvancePlan, SlotWrite
from bracketcore.services.bracket_types import (
    ByeSlot,
    EntrantSlot,
    ErrorKind,
    MatchSnapshot,
    PlaceholderSlot,
    SlotOccupant,
)
from bracketcore.services.conflict_detector import RoundConflictWarning
from bracketcore.services.match_repository import StaleWriteError
from bracketcore.services.score_parser import format_score


class SlotState(BaseModel):
    kind: str  # EMPTY | BYE | ENTRANT | PLACEHOLDER
    entrant_id: Optional[int] = None
    source_match_id: Optional[int] = None


class MatchState(BaseModel):
    id: int
    tournament_id: int
    event_id: int
    match_code: Optional[str] = None
    bracket_role: str
    round_number: int
    status: str
    slot_a: SlotState
    slot_b: SlotState
    next_match_id: Optional[int] = None
    loser_next_match_id: Optional[int] = None
    source_match_ids: List[int]
    series_format: int
    winner_slot: Optional[str] = None
    sets_won_a: Optional[int] = None
    sets_won_b: Optional[int] = None
    outcome_kind: Optional[str] = None
    score_display: Optional[str] = None
    version: int


class ConflictWarningDetail(BaseModel):
    """An entrant placed in two matches of the same round (advisory)"""

    entrant_id: int
    round_number: int
    match_id: int
    slot: str
    conflicting_match_id: int
    conflicting_slot: str
    details: str


class SlotWriteDetail(BaseModel):
    match_id: int
    slot: str
    role: str
    occupant: SlotState


class AdvanceResponse(BaseModel):
    source_match_id: int
    writes: List[SlotWriteDetail]
    noop_reason: Optional[str] = None


def slot_state(occupant: SlotOccupant) -> SlotState:
    if isinstance(occupant, EntrantSlot):
        return SlotState(kind="ENTRANT", entrant_id=occupant.entrant_id, source_match_id=occupant.placed_from)
    if isinstance(occupant, PlaceholderSlot):
        return SlotState(kind="PLACEHOLDER", source_match_id=occupant.source_match_id)
    if isinstance(occupant, ByeSlot):
        return SlotState(kind="BYE")
    return SlotState(kind="EMPTY")


def match_state(snapshot: MatchSnapshot) -> MatchState:
    result = snapshot.result
    return MatchState(
        id=snapshot.id,
        tournament_id=snapshot.tournament_id,
        event_id=snapshot.event_id,
        match_code=snapshot.match_code,
        bracket_role=snapshot.bracket_role,
        round_number=snapshot.round_number,
        status=snapshot.status.value,
        slot_a=slot_state(snapshot.slot_a),
        slot_b=slot_state(snapshot.slot_b),
        next_match_id=snapshot.next_match_id,
        loser_next_match_id=snapshot.loser_next_match_id,
        source_match_ids=list(snapshot.source_match_ids),
        series_format=snapshot.series_format,
        winner_slot=result.winner_slot.value if result else None,
        sets_won_a=result.sets_won_a if result else None,
        sets_won_b=result.sets_won_b if result else None,
        outcome_kind=result.outcome_kind.value if result else None,
        score_display=format_score(result) if result else None,
        version=snapshot.version,
    )


def warning_detail(warning: RoundConflictWarning) -> ConflictWarningDetail:
    return ConflictWarningDetail(
        entrant_id=warning.entrant_id,
        round_number=warning.round_number,
        match_id=warning.match_id,
        slot=warning.slot.value,
        conflicting_match_id=warning.conflicting_match_id,
        conflicting_slot=warning.conflicting_slot.value,
        details=warning.details,
    )


def write_detail(write: SlotWrite) -> SlotWriteDetail:
    return SlotWriteDetail(
        match_id=write.match_id,
        slot=write.slot.value,
        role=write.role,
        occupant=slot_state(write.occupant),
    )


def advance_response(plan: AdvancePlan) -> AdvanceResponse:
    return AdvanceResponse(
        source_match_id=plan.source_match_id,
        writes=[write_detail(w) for w in plan.writes],
        noop_reason=plan.noop_reason,
    )


def error_body(kind: ErrorKind, message: Optional[str]) -> Dict[str, Any]:
    return {"error": kind.value, "message": message or kind.value}


def advance_error_to_http(error: AdvanceError) -> HTTPException:
    """SlotConflict / SlotUnresolved need operator attention (409); MissingWinner is user input (422)."""
    status = 422 if error.kind is ErrorKind.MissingWinner else 409
    body = error_body(error.kind, error.detail)
    body["source_match_id"] = error.source_match_id
    body["destination_match_id"] = error.destination_match_id
    return HTTPException(status_code=status, detail=body)


def stale_write_to_http(exc: StaleWriteError) -> HTTPException:
    """Optimistic-concurrency rejection: re-fetch and retry on the client side (409)."""
    return HTTPException(
        status_code=409,
        detail={**error_body(ErrorKind.StaleWrite, str(exc)), "match_id": exc.match_id},
    )
