"""
Roster formation API: eligible entrants, roster validation, team/pair creation.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from bracketcore.database import get_session
from bracketcore.services import roster_service
from bracketcore.services.match_repository import list_eligible_entrants
from bracketcore.services.roster_service import (
    DuplicateTeamNameError,
    RosterNotSupportedError,
    UnknownEntrantError,
)
from bracketcore.utils.guards import get_event_or_404
from bracketcore.utils.responses import error_body

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class RosterRequest(BaseModel):
    member_ids: List[int]
    name: Optional[str] = None


class RosterValidationResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    detail: Optional[str] = None
    name: Optional[str] = None


class EntrantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    display_name: str
    gender: Optional[str] = None


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: int
    kind: str
    name: str
    member_ids: List[int]
    created_at: datetime


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/events/{event_id}/eligible-entrants", response_model=List[EntrantResponse])
def get_eligible_entrants(event_id: int, session: Session = Depends(get_session)):
    """Entrants who may join a roster in this event (gender-filtered for male/female events)."""
    event = get_event_or_404(session, event_id)
    return list_eligible_entrants(session, event.tournament_id, event.id, event.gender_constraint)


@router.post("/events/{event_id}/rosters/validate", response_model=RosterValidationResponse)
def validate_roster_endpoint(event_id: int, request: RosterRequest, session: Session = Depends(get_session)):
    """Check a proposed team/pair without creating it. Validity is in the body."""
    event = get_event_or_404(session, event_id)
    try:
        result = roster_service.check_roster(session, event, request.member_ids, request.name)
    except RosterNotSupportedError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except UnknownEntrantError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return RosterValidationResponse(
        valid=result.valid,
        reason=result.reason.value if result.reason else None,
        detail=result.detail,
        name=result.name,
    )


@router.post("/events/{event_id}/teams", response_model=TeamResponse, status_code=201)
def create_team(event_id: int, request: RosterRequest, session: Session = Depends(get_session)):
    """
    Create a team or pair for an event.

    Constraints (first failure reported):
    - members distinct, count within the event's size range
    - male/female events: every member matches
    - teams need a name; pairs get "A / B" when none is given
    - (event_id, name) must be unique
    """
    event = get_event_or_404(session, event_id)
    try:
        validation, team = roster_service.create_team(session, event, request.member_ids, request.name)
    except RosterNotSupportedError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except UnknownEntrantError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except DuplicateTeamNameError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    if not validation.valid:
        raise HTTPException(status_code=422, detail=error_body(validation.reason, validation.detail))
    return team
