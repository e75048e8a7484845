"""
Runtime orchestration: score reporting, winner advancement, BYE resolution.

Each operation reads snapshots through the match repository, lets the pure
engine decide, then applies the source result and every successor slot
write in one compare-and-set transaction. A stale write means someone else
touched one of the records: re-fetch, re-plan, try again (bounded by
ADVANCE_MAX_ATTEMPTS). Stale plans are never replayed.
"""
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from sqlmodel import Session

from bracketcore.services import conflict_detector
from bracketcore.services import match_repository as repo
from bracketcore.services.advancement_service import (
    AdvanceError,
    AdvanceOutcome,
    AdvancePlan,
    advance,
    find_link_cycle,
    synthesize_bye_result,
)
from bracketcore.services.bracket_types import (
    STATUS_ORDER,
    ByeSlot,
    EntrantSlot,
    ErrorKind,
    MatchResult,
    MatchSnapshot,
    MatchStatus,
)
from bracketcore.services.conflict_detector import RoundConflictWarning
from bracketcore.services.match_events import MatchUpdated, match_events
from bracketcore.services.match_repository import MatchUpdate, StaleWriteError
from bracketcore.services.score_validator import ReportedScore, ScoreValidationResult, validate_score

logger = logging.getLogger(__name__)

ADVANCE_MAX_ATTEMPTS = max(1, int(os.getenv("ADVANCE_MAX_ATTEMPTS", "3")))

T = TypeVar("T")


class MatchNotFoundError(Exception):
    """Raised when a match id does not exist in the given tournament"""

    pass


class InvalidStatusTransition(Exception):
    """Raised when a status change would move a match backwards"""

    pass


class BracketIntegrityError(Exception):
    """Raised when bracket links form a cycle"""

    pass


@dataclass
class ReportOutcome:
    validation: ScoreValidationResult
    warnings: List[RoundConflictWarning] = field(default_factory=list)
    plan: Optional[AdvancePlan] = None
    error: Optional[AdvanceError] = None
    match: Optional[MatchSnapshot] = None
    auto_finished: List[int] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.validation.valid and self.error is None


@dataclass
class _Applied:
    source: MatchSnapshot
    outcome: AdvanceOutcome


# ============================================================================
# Helpers
# ============================================================================


def _load(session: Session, tournament_id: int, match_id: int) -> MatchSnapshot:
    snapshot = repo.get_match(session, match_id)
    if snapshot is None or snapshot.tournament_id != tournament_id:
        raise MatchNotFoundError(f"Match {match_id} not found in tournament {tournament_id}")
    return snapshot


def _plan_for(session: Session, source: MatchSnapshot) -> AdvanceOutcome:
    destination_ids = [mid for mid in (source.next_match_id, source.loser_next_match_id) if mid is not None]
    destinations = repo.get_matches(session, destination_ids)
    round_matches = [
        source if m.id == source.id else m
        for m in repo.get_matches_by_round(session, source.tournament_id, source.round_number, source.event_id)
    ]
    return advance(source, destinations, round_matches)


def _merge(updates: Sequence[MatchUpdate]) -> List[MatchUpdate]:
    merged: Dict[int, MatchUpdate] = {}
    for item in updates:
        if item.match_id in merged:
            merged[item.match_id].patch.update(item.patch)
        else:
            merged[item.match_id] = MatchUpdate(item.match_id, item.expected_version, dict(item.patch))
    return list(merged.values())


def _with_retries(match_id: int, attempt_fn: Callable[[], T], expected_version: Optional[int] = None) -> T:
    for attempt in range(1, ADVANCE_MAX_ATTEMPTS + 1):
        try:
            return attempt_fn()
        except StaleWriteError as exc:
            # The caller's own token for the source was stale: surface, don't retry
            if expected_version is not None and exc.match_id == match_id:
                raise
            if attempt == ADVANCE_MAX_ATTEMPTS:
                logger.warning(
                    "Giving up on match %d after %d stale writes (last on match %d)",
                    match_id,
                    attempt,
                    exc.match_id,
                )
                raise
            logger.warning(
                "Stale write on match %d while processing match %d; re-planning (attempt %d/%d)",
                exc.match_id,
                match_id,
                attempt,
                ADVANCE_MAX_ATTEMPTS,
            )
    raise AssertionError("unreachable")


def _publish(tournament_id: int, match_ids: Sequence[int], reason: str) -> None:
    for mid in sorted(set(match_ids)):
        match_events.publish(MatchUpdated(match_id=mid, tournament_id=tournament_id, reason=reason))


def _log_advance_error(error: AdvanceError) -> None:
    if error.kind in (ErrorKind.SlotConflict, ErrorKind.SlotUnresolved):
        logger.warning("Advancement blocked (%s): %s", error.kind.value, error.detail)
    else:
        logger.info("Advancement not possible (%s): %s", error.kind.value, error.detail)


def _finish_and_advance(
    session: Session,
    tournament_id: int,
    match_id: int,
    result: MatchResult,
    expected_version: Optional[int] = None,
    reason: str = "result",
) -> _Applied:
    """Write *result* onto the match and its winner into successors, atomically."""

    def attempt() -> _Applied:
        source = _load(session, tournament_id, match_id)
        if expected_version is not None and source.version != expected_version:
            raise StaleWriteError(match_id, expected_version)

        winner = source.slot(result.winner_slot)
        if not isinstance(winner, EntrantSlot):
            return _Applied(
                source=source,
                outcome=AdvanceError(
                    kind=ErrorKind.MissingWinner,
                    detail=f"Match {match_id} slot {result.winner_slot.value} has no competitor to declare winner",
                    source_match_id=match_id,
                ),
            )
        # A result needs an opponent: a placed competitor or a BYE
        opponent = source.slot(result.winner_slot.other)
        if not isinstance(opponent, (EntrantSlot, ByeSlot)):
            return _Applied(
                source=source,
                outcome=AdvanceError(
                    kind=ErrorKind.SlotUnresolved,
                    detail=(
                        f"Match {match_id} slot {result.winner_slot.other.value} has no opponent yet; "
                        f"wait for it to be filled before reporting a result"
                    ),
                    source_match_id=match_id,
                ),
            )

        finished = source.with_result(result)
        outcome = _plan_for(session, finished)
        if isinstance(outcome, AdvanceError):
            return _Applied(source=source, outcome=outcome)

        updates = [MatchUpdate(match_id, source.version, repo.result_to_columns(result))]
        updates.extend(repo.plan_to_updates(outcome))
        repo.apply_match_updates(session, _merge(updates))
        return _Applied(source=_load(session, tournament_id, match_id), outcome=outcome)

    applied = _with_retries(match_id, attempt, expected_version)
    if isinstance(applied.outcome, AdvanceError):
        _log_advance_error(applied.outcome)
        return applied

    _publish(tournament_id, [match_id], reason)
    _publish(tournament_id, [w.match_id for w in applied.outcome.writes], "advancement")
    logger.info(
        "Match %d finished (%s); %d successor slot(s) written",
        match_id,
        reason,
        len(applied.outcome.writes),
    )
    return applied


def _cascade_byes(session: Session, tournament_id: int, match_ids: Sequence[int]) -> List[int]:
    """Auto-finish successors that now face a BYE, following the chain. Returns finished ids."""
    finished: List[int] = []
    queue = sorted(set(match_ids))
    while queue:
        mid = queue.pop(0)
        snapshot = repo.get_match(session, mid)
        if snapshot is None:
            continue
        result = synthesize_bye_result(snapshot)
        if result is None:
            continue
        applied = _finish_and_advance(session, tournament_id, mid, result, reason="bye")
        if isinstance(applied.outcome, AdvanceError):
            continue
        finished.append(mid)
        queue.extend(w.match_id for w in applied.outcome.writes)
    return finished


# ============================================================================
# Operations
# ============================================================================


def report_match_result(
    session: Session,
    tournament_id: int,
    match_id: int,
    reported: ReportedScore,
    expected_version: Optional[int] = None,
) -> ReportOutcome:
    """Validate a reported series, record it, and advance the winner.

    The score is checked against the series format stored on the match.
    Validation failures are returned, never raised, and nothing is written.
    Conflict warnings are advisory and never block the write.

    Raises:
        MatchNotFoundError: unknown match / wrong tournament
        StaleWriteError: expected_version is out of date, or retries exhausted
    """
    source = _load(session, tournament_id, match_id)

    if reported.series_format != source.series_format:
        validation = ScoreValidationResult(
            valid=False,
            reason=ErrorKind.InvalidSeriesScore,
            detail=(
                f"Match {match_id} is best-of-{source.series_format}; "
                f"a best-of-{reported.series_format} score cannot be recorded"
            ),
        )
    else:
        validation = validate_score(reported)
    if not validation.valid:
        logger.debug("Rejected score for match %d: %s", match_id, validation.detail)
        return ReportOutcome(validation=validation, match=source)

    round_matches = repo.get_matches_by_round(session, tournament_id, source.round_number, source.event_id)
    names = repo.get_entrant_names(session, (eid for m in round_matches for eid in m.entrant_ids()))
    warnings = conflict_detector.detect_conflicts(round_matches, source, names)

    result = validation.to_result(reported.series_format, reported.outcome_kind)
    applied = _finish_and_advance(session, tournament_id, match_id, result, expected_version)
    if isinstance(applied.outcome, AdvanceError):
        return ReportOutcome(validation=validation, warnings=warnings, error=applied.outcome, match=applied.source)

    auto_finished = _cascade_byes(session, tournament_id, [w.match_id for w in applied.outcome.writes])
    return ReportOutcome(
        validation=validation,
        warnings=warnings,
        plan=applied.outcome,
        match=applied.source,
        auto_finished=auto_finished,
    )


def advance_winner(session: Session, tournament_id: int, match_id: int) -> AdvanceOutcome:
    """Re-run advancement for a match (repair path). Idempotent.

    Returns the applied plan (no writes when already up to date or when the
    match is not finished) or the AdvanceError that blocked it.
    """

    def attempt() -> AdvanceOutcome:
        source = _load(session, tournament_id, match_id)
        outcome = _plan_for(session, source)
        if isinstance(outcome, AdvanceError) or outcome.is_noop:
            return outcome
        repo.apply_match_updates(session, repo.plan_to_updates(outcome))
        return outcome

    outcome = _with_retries(match_id, attempt)
    if isinstance(outcome, AdvanceError):
        _log_advance_error(outcome)
        return outcome
    if outcome.writes:
        _publish(tournament_id, [w.match_id for w in outcome.writes], "advancement")
        _cascade_byes(session, tournament_id, [w.match_id for w in outcome.writes])
    return outcome


def resolve_byes(session: Session, tournament_id: int, event_id: Optional[int] = None) -> Dict[str, int]:
    """
    Auto-finish every unfinished BYE match and advance the winners.

    Processes matches in (round_number, id) order so early-round BYEs feed
    later rounds in the same pass.

    Returns:
        Dict with:
        - matches_processed: BYE matches finished by this call
        - open_slots_before: empty/placeholder slots before
        - open_slots_after: empty/placeholder slots after

    Guarantees:
        - Idempotent (safe to call multiple times)
        - Deterministic ordering

    Raises:
        BracketIntegrityError: bracket links form a cycle
    """
    matches = repo.get_tournament_matches(session, tournament_id, event_id)
    cycle = find_link_cycle(matches)
    if cycle:
        logger.error("Bracket cycle in tournament %d: %s", tournament_id, " -> ".join(map(str, cycle)))
        raise BracketIntegrityError(f"Bracket links form a cycle: {' -> '.join(map(str, cycle))}")

    open_before = _count_open_slots(matches)
    finished = _cascade_byes(session, tournament_id, [m.id for m in matches if synthesize_bye_result(m)])
    open_after = _count_open_slots(repo.get_tournament_matches(session, tournament_id, event_id))

    return {
        "matches_processed": len(finished),
        "open_slots_before": open_before,
        "open_slots_after": open_after,
    }


def _count_open_slots(matches: Sequence[MatchSnapshot]) -> int:
    return sum(
        1
        for m in matches
        for occupant in (m.slot_a, m.slot_b)
        if not isinstance(occupant, (EntrantSlot, ByeSlot))
    )


def validate_status_transition(current: MatchStatus, new: MatchStatus) -> None:
    if STATUS_ORDER[new] < STATUS_ORDER[current]:
        raise InvalidStatusTransition(f"Cannot move match from {current.value} back to {new.value}")
    if current is MatchStatus.finished:
        raise InvalidStatusTransition("finished is terminal; report a corrected result instead")
    if new is MatchStatus.finished:
        raise InvalidStatusTransition("A match is finished by reporting its result")


def start_match(
    session: Session, tournament_id: int, match_id: int, expected_version: Optional[int] = None
) -> MatchSnapshot:
    """scheduled -> in_progress. Setting in_progress again is a no-op."""
    source = _load(session, tournament_id, match_id)
    validate_status_transition(source.status, MatchStatus.in_progress)
    if source.status is MatchStatus.in_progress:
        return source
    repo.apply_match_update(
        session,
        match_id,
        expected_version if expected_version is not None else source.version,
        {"status": MatchStatus.in_progress.value, "started_at": datetime.utcnow()},
    )
    _publish(tournament_id, [match_id], "status")
    return _load(session, tournament_id, match_id)


def detect_round_conflicts(
    session: Session, tournament_id: int, round_number: int, event_id: Optional[int] = None
) -> List[RoundConflictWarning]:
    """Advisory double-booking warnings for one round."""
    round_matches = repo.get_matches_by_round(session, tournament_id, round_number, event_id)
    names = repo.get_entrant_names(session, (eid for m in round_matches for eid in m.entrant_ids()))
    return conflict_detector.detect_round_conflicts(round_matches, names)
