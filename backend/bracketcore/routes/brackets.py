"""
Bracket-wide endpoints: round conflict lens, BYE resolution, podium,
and stateless score validation for result-entry forms.
"""
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from bracketcore.database import get_session
from bracketcore.services import bracket_service
from bracketcore.services import match_repository as repo
from bracketcore.services.bracket_service import BracketIntegrityError
from bracketcore.services.bracket_types import SUPPORTED_SERIES_FORMATS, OutcomeKind, SlotSide
from bracketcore.services.match_repository import StaleWriteError
from bracketcore.services.podium import compute_podium
from bracketcore.services.score_validator import ReportedScore, series_options, validate_score
from bracketcore.utils.guards import get_event_or_404, get_tournament_or_404
from bracketcore.utils.responses import ConflictWarningDetail, stale_write_to_http, warning_detail

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class ScoreValidationRequest(BaseModel):
    series_format: int = 5
    sets_won_a: int = 0
    sets_won_b: int = 0
    outcome_kind: OutcomeKind = OutcomeKind.normal
    winner_slot: Optional[SlotSide] = None


class ScoreValidationResponse(BaseModel):
    valid: bool
    winner_slot: Optional[str] = None
    reason: Optional[str] = None
    detail: Optional[str] = None
    sets_won_a: Optional[int] = None
    sets_won_b: Optional[int] = None


class SeriesOption(BaseModel):
    label: str
    sets_won_a: int
    sets_won_b: int
    winner_slot: str


class ResolveByesResponse(BaseModel):
    """Response for bulk BYE resolution"""

    matches_processed: int
    open_slots_before: int
    open_slots_after: int


class PodiumEntry(BaseModel):
    place: int
    entrant_id: int
    display_name: Optional[str] = None


class PodiumResponse(BaseModel):
    event_id: int
    final_match_id: Optional[int] = None
    third_place_match_id: Optional[int] = None
    placings: List[PodiumEntry]


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/scores/validate", response_model=ScoreValidationResponse)
def validate_score_endpoint(payload: ScoreValidationRequest) -> ScoreValidationResponse:
    """Check a series score without saving it. Always 200; validity is in the body."""
    result = validate_score(
        ReportedScore(
            series_format=payload.series_format,
            sets_won_a=payload.sets_won_a,
            sets_won_b=payload.sets_won_b,
            outcome_kind=payload.outcome_kind,
            winner_slot=payload.winner_slot,
        )
    )
    return ScoreValidationResponse(
        valid=result.valid,
        winner_slot=result.winner_slot.value if result.winner_slot else None,
        reason=result.reason.value if result.reason else None,
        detail=result.detail,
        sets_won_a=result.sets_won_a,
        sets_won_b=result.sets_won_b,
    )


@router.get("/scores/options/{series_format}", response_model=List[SeriesOption])
def get_series_options(series_format: int) -> List[SeriesOption]:
    """Legal series scores for a best-of-N picker (A wins first)."""
    if series_format not in SUPPORTED_SERIES_FORMATS:
        raise HTTPException(status_code=422, detail=f"Unsupported series format best-of-{series_format}")
    return [
        SeriesOption(label=f"{a}-{b}", sets_won_a=a, sets_won_b=b, winner_slot=w.value)
        for a, b, w in series_options(series_format)
    ]


@router.get(
    "/tournaments/{tournament_id}/rounds/{round_number}/conflicts",
    response_model=List[ConflictWarningDetail],
)
def get_round_conflicts(
    tournament_id: int,
    round_number: int,
    event_id: Optional[int] = Query(default=None),
    session: Session = Depends(get_session),
) -> List[ConflictWarningDetail]:
    """Advisory: entrants placed in more than one match of the round."""
    get_tournament_or_404(session, tournament_id)
    warnings = bracket_service.detect_round_conflicts(session, tournament_id, round_number, event_id)
    return [warning_detail(w) for w in warnings]


@router.post(
    "/tournaments/{tournament_id}/runtime/resolve-byes",
    response_model=ResolveByesResponse,
)
def resolve_byes(
    tournament_id: int,
    event_id: Optional[int] = Query(default=None),
    session: Session = Depends(get_session),
) -> ResolveByesResponse:
    """
    Auto-finish every match whose only opponent is a BYE and advance the winners.

    Useful right after seeding, or to repair an interrupted cascade.

    Guarantees:
    - Idempotent (safe to call multiple times)
    - Deterministic ordering (round, then match id)
    """
    get_tournament_or_404(session, tournament_id)
    if event_id is not None:
        get_event_or_404(session, event_id, tournament_id)
    try:
        result = bracket_service.resolve_byes(session, tournament_id, event_id)
    except BracketIntegrityError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except StaleWriteError as exc:
        raise stale_write_to_http(exc)
    return ResolveByesResponse(**result)


@router.get(
    "/tournaments/{tournament_id}/events/{event_id}/podium",
    response_model=PodiumResponse,
)
def get_podium(tournament_id: int, event_id: int, session: Session = Depends(get_session)) -> PodiumResponse:
    """Champion, runner-up and third place once the deciding matches are finished."""
    get_event_or_404(session, event_id, tournament_id)
    podium = compute_podium(repo.get_tournament_matches(session, tournament_id, event_id))

    places: List[Tuple[int, int]] = [
        (place, entrant_id)
        for place, entrant_id in ((1, podium.champion_id), (2, podium.runner_up_id), (3, podium.third_place_id))
        if entrant_id is not None
    ]
    names = repo.get_entrant_names(session, (eid for _, eid in places))
    return PodiumResponse(
        event_id=event_id,
        final_match_id=podium.final_match_id,
        third_place_match_id=podium.third_place_match_id,
        placings=[PodiumEntry(place=p, entrant_id=eid, display_name=names.get(eid)) for p, eid in places],
    )
