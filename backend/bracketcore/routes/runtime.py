"""
Runtime: match status, result reporting, winner advancement.

Results are validated before anything is written; a valid result and the
winner's placement in the successor match are committed together under
compare-and-set. Conflict warnings ride along in the response and never
block the save.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from bracketcore.database import get_session
from bracketcore.services import bracket_service
from bracketcore.services import match_repository as repo
from bracketcore.services.advancement_service import AdvanceError
from bracketcore.services.bracket_service import InvalidStatusTransition, MatchNotFoundError
from bracketcore.services.bracket_types import MatchStatus, OutcomeKind, SlotSide
from bracketcore.services.match_repository import StaleWriteError
from bracketcore.services.score_validator import ReportedScore
from bracketcore.utils.guards import get_match_or_404
from bracketcore.utils.responses import (
    AdvanceResponse,
    ConflictWarningDetail,
    MatchState,
    SlotWriteDetail,
    advance_error_to_http,
    advance_response,
    error_body,
    match_state,
    stale_write_to_http,
    warning_detail,
    write_detail,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class MatchStatusUpdate(BaseModel):
    status: MatchStatus
    expected_version: Optional[int] = None


class MatchResultReport(BaseModel):
    series_format: Optional[int] = None  # optional; must equal the match's stored format
    sets_won_a: int = 0
    sets_won_b: int = 0
    outcome_kind: OutcomeKind = OutcomeKind.normal
    winner_slot: Optional[SlotSide] = None
    expected_version: Optional[int] = None


class MatchResultResponse(BaseModel):
    match: MatchState
    warnings: List[ConflictWarningDetail]
    advanced: List[SlotWriteDetail]
    auto_finished: List[int]


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/tournaments/{tournament_id}/runtime/matches/{match_id}",
    response_model=MatchState,
)
def get_match_runtime(tournament_id: int, match_id: int, session: Session = Depends(get_session)) -> MatchState:
    get_match_or_404(session, match_id, tournament_id)
    return match_state(repo.get_match(session, match_id))


@router.patch(
    "/tournaments/{tournament_id}/runtime/matches/{match_id}",
    response_model=MatchState,
)
def update_match_status(
    tournament_id: int,
    match_id: int,
    payload: MatchStatusUpdate,
    session: Session = Depends(get_session),
) -> MatchState:
    """Move a match to in_progress. Status never regresses; finishing happens by reporting a result."""
    get_match_or_404(session, match_id, tournament_id)
    try:
        if payload.status is MatchStatus.in_progress:
            snapshot = bracket_service.start_match(session, tournament_id, match_id, payload.expected_version)
        else:
            current = repo.get_match(session, match_id)
            bracket_service.validate_status_transition(current.status, payload.status)
            snapshot = current
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except StaleWriteError as exc:
        raise stale_write_to_http(exc)
    return match_state(snapshot)


@router.put(
    "/tournaments/{tournament_id}/runtime/matches/{match_id}/result",
    response_model=MatchResultResponse,
)
def report_match_result(
    tournament_id: int,
    match_id: int,
    payload: MatchResultReport,
    session: Session = Depends(get_session),
) -> MatchResultResponse:
    """Validate and record a series result, then advance the winner (and loser, for third place)."""
    match = get_match_or_404(session, match_id, tournament_id)

    reported = ReportedScore(
        series_format=payload.series_format if payload.series_format is not None else match.series_format,
        sets_won_a=payload.sets_won_a,
        sets_won_b=payload.sets_won_b,
        outcome_kind=payload.outcome_kind,
        winner_slot=payload.winner_slot,
    )

    try:
        outcome = bracket_service.report_match_result(
            session, tournament_id, match_id, reported, payload.expected_version
        )
    except MatchNotFoundError:
        raise HTTPException(status_code=404, detail="Match not found")
    except StaleWriteError as exc:
        raise stale_write_to_http(exc)

    if not outcome.validation.valid:
        raise HTTPException(
            status_code=422,
            detail=error_body(outcome.validation.reason, outcome.validation.detail),
        )
    if outcome.error is not None:
        raise advance_error_to_http(outcome.error)

    return MatchResultResponse(
        match=match_state(outcome.match),
        warnings=[warning_detail(w) for w in outcome.warnings],
        advanced=[write_detail(w) for w in outcome.plan.writes],
        auto_finished=outcome.auto_finished,
    )


@router.post(
    "/tournaments/{tournament_id}/runtime/matches/{match_id}/advance",
    response_model=AdvanceResponse,
)
def advance_match(
    tournament_id: int,
    match_id: int,
    session: Session = Depends(get_session),
) -> AdvanceResponse:
    """Re-run advancement for a finished match (repair). Idempotent: a second call writes nothing."""
    get_match_or_404(session, match_id, tournament_id)
    try:
        outcome = bracket_service.advance_winner(session, tournament_id, match_id)
    except StaleWriteError as exc:
        raise stale_write_to_http(exc)
    if isinstance(outcome, AdvanceError):
        raise advance_error_to_http(outcome)
    return advance_response(outcome)
