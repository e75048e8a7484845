"""
Match record store adapter.

Converts Match rows to MatchSnapshot values for the engine and applies
patches back under optimistic concurrency: every write names the version
it was computed against and bumps it. A mismatch rolls the whole batch
back and raises StaleWriteError; the caller must re-fetch and re-plan.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import update
from sqlmodel import Session, select

from bracketcore.models.entrant import Entrant
from bracketcore.models.match import Match
from bracketcore.services.advancement_service import AdvancePlan
from bracketcore.services.bracket_types import (
    BYE,
    EMPTY,
    ByeSlot,
    EmptySlot,
    EntrantSlot,
    MatchResult,
    MatchSnapshot,
    MatchStatus,
    OutcomeKind,
    PlaceholderSlot,
    SlotOccupant,
    SlotSide,
)

logger = logging.getLogger(__name__)

KIND_EMPTY = "EMPTY"
KIND_BYE = "BYE"
KIND_ENTRANT = "ENTRANT"
KIND_PLACEHOLDER = "PLACEHOLDER"


class StaleWriteError(Exception):
    """Raised when a compare-and-set write finds a newer version than expected"""

    def __init__(self, match_id: int, expected_version: int):
        self.match_id = match_id
        self.expected_version = expected_version
        super().__init__(f"Match {match_id} is no longer at version {expected_version}")


@dataclass
class MatchUpdate:
    match_id: int
    expected_version: int
    patch: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Row <-> snapshot conversion
# ============================================================================


def occupant_from_columns(kind: Optional[str], entrant_id: Optional[int], source_match_id: Optional[int]) -> SlotOccupant:
    if kind == KIND_BYE:
        return BYE
    if kind == KIND_ENTRANT and entrant_id is not None:
        return EntrantSlot(entrant_id=entrant_id, placed_from=source_match_id)
    if kind == KIND_PLACEHOLDER and source_match_id is not None:
        return PlaceholderSlot(source_match_id=source_match_id)
    return EMPTY


def occupant_to_columns(side: SlotSide, occupant: SlotOccupant) -> Dict[str, Any]:
    prefix = "slot_a" if side is SlotSide.A else "slot_b"
    if isinstance(occupant, EntrantSlot):
        kind, entrant_id, source_id = KIND_ENTRANT, occupant.entrant_id, occupant.placed_from
    elif isinstance(occupant, PlaceholderSlot):
        kind, entrant_id, source_id = KIND_PLACEHOLDER, None, occupant.source_match_id
    elif isinstance(occupant, ByeSlot):
        kind, entrant_id, source_id = KIND_BYE, None, None
    elif isinstance(occupant, EmptySlot):
        kind, entrant_id, source_id = KIND_EMPTY, None, None
    else:
        raise TypeError(f"Unknown slot occupant {occupant!r}")
    return {
        f"{prefix}_kind": kind,
        f"{prefix}_entrant_id": entrant_id,
        f"{prefix}_source_match_id": source_id,
    }


def result_to_columns(result: MatchResult, completed_at: Optional[datetime] = None) -> Dict[str, Any]:
    """Patch that finishes a match with *result* (status and result written together).

    series_format is never written here: it belongs to the match, and results
    are validated against it.
    """
    return {
        "status": MatchStatus.finished.value,
        "winner_slot": result.winner_slot.value,
        "sets_won_a": result.sets_won_a,
        "sets_won_b": result.sets_won_b,
        "outcome_kind": result.outcome_kind.value,
        "completed_at": completed_at or datetime.utcnow(),
    }


def snapshot_from_row(row: Match) -> MatchSnapshot:
    status = MatchStatus(row.status or MatchStatus.scheduled.value)
    result = None
    if status is MatchStatus.finished and row.winner_slot:
        result = MatchResult(
            winner_slot=SlotSide(row.winner_slot),
            series_format=row.series_format,
            sets_won_a=row.sets_won_a or 0,
            sets_won_b=row.sets_won_b or 0,
            outcome_kind=OutcomeKind(row.outcome_kind or OutcomeKind.normal.value),
        )
    return MatchSnapshot(
        id=row.id,
        round_number=row.round_number,
        slot_a=occupant_from_columns(row.slot_a_kind, row.slot_a_entrant_id, row.slot_a_source_match_id),
        slot_b=occupant_from_columns(row.slot_b_kind, row.slot_b_entrant_id, row.slot_b_source_match_id),
        next_match_id=row.next_match_id,
        loser_next_match_id=row.loser_next_match_id,
        source_match_ids=tuple(row.source_match_ids or ()),
        status=status,
        result=result,
        series_format=row.series_format,
        version=row.version,
        tournament_id=row.tournament_id,
        event_id=row.event_id,
        bracket_role=row.bracket_role,
        match_code=row.match_code,
    )


# ============================================================================
# Reads
# ============================================================================


def get_match(session: Session, match_id: int) -> Optional[MatchSnapshot]:
    row = session.get(Match, match_id)
    return snapshot_from_row(row) if row else None


def get_matches(session: Session, match_ids: Iterable[int]) -> Dict[int, MatchSnapshot]:
    ids = sorted(set(match_ids))
    if not ids:
        return {}
    rows = session.exec(select(Match).where(Match.id.in_(ids))).all()
    return {row.id: snapshot_from_row(row) for row in rows}


def get_matches_by_round(
    session: Session, tournament_id: int, round_number: int, event_id: Optional[int] = None
) -> List[MatchSnapshot]:
    """Matches of one round in deterministic id order."""
    query = select(Match).where(Match.tournament_id == tournament_id, Match.round_number == round_number)
    if event_id is not None:
        query = query.where(Match.event_id == event_id)
    rows = session.exec(query.order_by(Match.id)).all()
    return [snapshot_from_row(row) for row in rows]


def get_tournament_matches(session: Session, tournament_id: int, event_id: Optional[int] = None) -> List[MatchSnapshot]:
    """All matches ordered by (round_number, id)."""
    query = select(Match).where(Match.tournament_id == tournament_id)
    if event_id is not None:
        query = query.where(Match.event_id == event_id)
    rows = session.exec(query.order_by(Match.round_number, Match.id)).all()
    return [snapshot_from_row(row) for row in rows]


def list_eligible_entrants(
    session: Session, tournament_id: int, event_id: int, gender_constraint: Optional[str] = None
) -> List[Entrant]:
    """Entrants registered for an event, by display name then id.

    A male or female *gender_constraint* keeps only entrants of that gender;
    mixed or no constraint keeps everyone.
    """
    query = select(Entrant).where(Entrant.tournament_id == tournament_id, Entrant.event_id == event_id)
    if gender_constraint in ("male", "female"):
        query = query.where(Entrant.gender == gender_constraint)
    rows = session.exec(query).all()
    return sorted(rows, key=lambda e: (e.display_name.lower(), e.id))


# ============================================================================
# Writes (compare-and-set)
# ============================================================================


def plan_to_updates(plan: AdvancePlan) -> List[MatchUpdate]:
    """Group a plan's slot writes into one update per destination match."""
    by_match: Dict[int, MatchUpdate] = {}
    for write in plan.writes:
        entry = by_match.setdefault(write.match_id, MatchUpdate(write.match_id, write.expected_version))
        entry.patch.update(occupant_to_columns(write.slot, write.occupant))
    return [by_match[mid] for mid in sorted(by_match)]


def _execute_update(session: Session, item: MatchUpdate) -> None:
    stmt = (
        update(Match)
        .where(Match.id == item.match_id, Match.version == item.expected_version)
        .values(**item.patch, version=item.expected_version + 1)
    )
    result = session.connection().execute(stmt)
    if result.rowcount != 1:
        raise StaleWriteError(item.match_id, item.expected_version)


def apply_match_updates(session: Session, updates: Sequence[MatchUpdate]) -> Dict[int, int]:
    """Apply all *updates* in one transaction, or none of them.

    Returns:
        Dict of match_id -> new version

    Raises:
        StaleWriteError: any match moved past its expected version (batch rolled back)
    """
    if not updates:
        return {}
    try:
        for item in updates:
            _execute_update(session, item)
        session.commit()
    except StaleWriteError as exc:
        session.rollback()
        logger.warning("Stale write rejected: %s", exc)
        raise
    # Core UPDATEs bypass the identity map; drop cached rows so reads see new versions
    session.expire_all()
    return {item.match_id: item.expected_version + 1 for item in updates}


def apply_match_update(session: Session, match_id: int, expected_version: int, patch: Dict[str, Any]) -> int:
    """Single-record compare-and-set write. Returns the new version."""
    versions = apply_match_updates(session, [MatchUpdate(match_id, expected_version, dict(patch))])
    return versions[match_id]


def get_entrant_names(session: Session, entrant_ids: Iterable[int]) -> Dict[int, str]:
    ids = sorted(set(entrant_ids))
    if not ids:
        return {}
    rows = session.exec(select(Entrant).where(Entrant.id.in_(ids))).all()
    return {row.id: row.display_name for row in rows}
