"""
Team / pair formation: build a roster candidate from registered entrants,
validate it, and persist the Team record when it passes.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from bracketcore.models.event import Event, GenderConstraint, RosterKind
from bracketcore.models.team import Team
from bracketcore.services.match_repository import list_eligible_entrants
from bracketcore.services.roster_validator import (
    EventCategory,
    RosterCandidate,
    RosterMember,
    RosterValidationResult,
    validate_roster,
)

logger = logging.getLogger(__name__)

# Default roster sizes when an event does not set its own
DEFAULT_SIZES = {
    RosterKind.pair: (2, 2),
    RosterKind.team: (4, 5),
}


class RosterNotSupportedError(Exception):
    """Raised when an event does not form teams or pairs (singles)"""

    pass


class DuplicateTeamNameError(Exception):
    """Raised when the event already has a team with this name"""

    pass


class UnknownEntrantError(Exception):
    """Raised when a roster names someone not registered for the event"""

    def __init__(self, entrant_ids: Sequence[int]):
        self.entrant_ids = list(entrant_ids)
        super().__init__(f"Entrants not registered for this event: {self.entrant_ids}")


def category_from_event(event: Event) -> EventCategory:
    if not event.roster_kind:
        raise RosterNotSupportedError(f"Event {event.id} does not form teams or pairs")
    # Enum columns are stored as plain strings
    kind = RosterKind(event.roster_kind)
    gender = GenderConstraint(event.gender_constraint) if event.gender_constraint else None
    default_min, default_max = DEFAULT_SIZES[kind]
    return EventCategory(
        kind=kind,
        gender_constraint=gender,
        min_size=event.min_roster_size if event.min_roster_size is not None else default_min,
        max_size=event.max_roster_size if event.max_roster_size is not None else default_max,
    )


def build_candidate(
    session: Session, event: Event, member_ids: Sequence[int], name: Optional[str] = None
) -> RosterCandidate:
    """Resolve member ids against everyone registered for the event, keeping order and duplicates.

    Registrants are not filtered by gender here, so a mismatch is reported by
    validation as GenderConstraintViolation rather than as an unknown entrant.

    Raises:
        UnknownEntrantError: an id is not registered for the event
    """
    eligible = {e.id: e for e in list_eligible_entrants(session, event.tournament_id, event.id)}
    unknown = sorted({mid for mid in member_ids if mid not in eligible})
    if unknown:
        raise UnknownEntrantError(unknown)

    members: List[RosterMember] = [
        RosterMember(
            entrant_id=mid,
            gender=eligible[mid].gender,
            display_name=eligible[mid].display_name,
        )
        for mid in member_ids
    ]
    return RosterCandidate(category=category_from_event(event), members=tuple(members), name=name)


def check_roster(
    session: Session, event: Event, member_ids: Sequence[int], name: Optional[str] = None
) -> RosterValidationResult:
    return validate_roster(build_candidate(session, event, member_ids, name))


def create_team(
    session: Session, event: Event, member_ids: Sequence[int], name: Optional[str] = None
) -> Tuple[RosterValidationResult, Optional[Team]]:
    """Validate and, if valid, persist a Team. Returns (validation, team or None)."""
    validation = check_roster(session, event, member_ids, name)
    if not validation.valid:
        logger.debug("Roster rejected for event %d: %s", event.id, validation.detail)
        return validation, None

    team = Team(
        event_id=event.id,
        kind=RosterKind(event.roster_kind).value,
        name=validation.name,
        member_ids=list(member_ids),
    )
    try:
        session.add(team)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise DuplicateTeamNameError(f"A team named '{validation.name}' already exists in this event")
    session.refresh(team)
    logger.info("Created %s '%s' (team %d) in event %d", team.kind, team.name, team.id, event.id)
    return validation, team
