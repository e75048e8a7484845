"""
Bracket advancement: when a match is finished, place its winner (and, for
third-place wiring, its loser) into the right slot of the successor match.

Pure computation over MatchSnapshot values. Nothing here touches the
database; the result is a plan of slot writes, each carrying the version
of the destination it was computed against, so the caller can apply it
under compare-and-set together with the source match's own result write.

Guarantees:
    - Deterministic: slot order comes from the destination's persisted
      source_match_ids, then ascending match id
    - Idempotent: re-planning after the plan was applied yields no writes
    - Never overwrites a competitor placed by a different source
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from bracketcore.services.bracket_types import (
    ErrorKind,
    ByeSlot,
    EmptySlot,
    EntrantSlot,
    MatchResult,
    MatchSnapshot,
    OutcomeKind,
    PlaceholderSlot,
    SlotOccupant,
    SlotSide,
)
from bracketcore.services.score_validator import canonical_score

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"


@dataclass(frozen=True)
class SlotWrite:
    match_id: int
    slot: SlotSide
    occupant: SlotOccupant
    expected_version: int
    role: str = ROLE_WINNER


@dataclass(frozen=True)
class AdvancePlan:
    source_match_id: int
    writes: List[SlotWrite] = field(default_factory=list)
    noop_reason: Optional[str] = None

    @property
    def is_noop(self) -> bool:
        return not self.writes


@dataclass(frozen=True)
class AdvanceError:
    kind: ErrorKind
    detail: str
    source_match_id: Optional[int] = None
    destination_match_id: Optional[int] = None


AdvanceOutcome = Union[AdvancePlan, AdvanceError]


def _feeders(round_matches: Iterable[MatchSnapshot], destination_id: int, role: str) -> List[MatchSnapshot]:
    if role == ROLE_WINNER:
        return [m for m in round_matches if m.next_match_id == destination_id]
    return [m for m in round_matches if m.loser_next_match_id == destination_id]


def resolve_destination_slot(
    source: MatchSnapshot,
    destination: MatchSnapshot,
    round_matches: Sequence[MatchSnapshot],
    role: str = ROLE_WINNER,
) -> Optional[SlotSide]:
    """Which slot of *destination* the *source* feeds, or None if it cannot be placed.

    A source listed in destination.source_match_ids feeds the slot of its
    position there (index 0 -> A, index 1 -> B), whatever round it is in.
    Unlisted feeders (the source's round-mates sharing the destination) take
    the slots the list leaves free, in ascending id order.
    """
    listed = list(destination.source_match_ids)
    sides = (SlotSide.A, SlotSide.B)

    if source.id in listed:
        position = listed.index(source.id)
        return sides[position] if position < len(sides) else None

    free = [side for i, side in enumerate(sides) if i >= len(listed)]
    unlisted = {m.id for m in _feeders(round_matches, destination.id, role) if m.id not in listed}
    unlisted.add(source.id)
    position = sorted(unlisted).index(source.id)
    return free[position] if position < len(free) else None


def _same_competitor(current: SlotOccupant, incoming: SlotOccupant) -> bool:
    if isinstance(current, EntrantSlot) and isinstance(incoming, EntrantSlot):
        return current.entrant_id == incoming.entrant_id
    return isinstance(current, ByeSlot) and isinstance(incoming, ByeSlot)


def _place(
    source: MatchSnapshot,
    destination: MatchSnapshot,
    side: SlotSide,
    incoming: SlotOccupant,
    role: str,
) -> Union[Optional[SlotWrite], AdvanceError]:
    """Write decision for one destination slot: a write, None (already there), or a conflict."""
    current = destination.slot(side)

    if _same_competitor(current, incoming):
        return None

    writable = isinstance(current, EmptySlot)
    if isinstance(current, PlaceholderSlot) and current.source_match_id == source.id:
        writable = True
    # Corrected result upstream: replace what this same source placed earlier
    if (
        isinstance(current, EntrantSlot)
        and current.placed_from == source.id
        and not destination.is_finished
    ):
        writable = True

    if not writable:
        return AdvanceError(
            kind=ErrorKind.SlotConflict,
            detail=(
                f"Slot {side.value} of match {destination.id} already holds {_describe(current)}; "
                f"refusing to place the {role.lower()} of match {source.id}"
            ),
            source_match_id=source.id,
            destination_match_id=destination.id,
        )

    return SlotWrite(
        match_id=destination.id,
        slot=side,
        occupant=incoming,
        expected_version=destination.version,
        role=role,
    )


def _describe(occupant: SlotOccupant) -> str:
    if isinstance(occupant, EntrantSlot):
        origin = f"match {occupant.placed_from}" if occupant.placed_from is not None else "seeding"
        return f"entrant {occupant.entrant_id} (placed by {origin})"
    if isinstance(occupant, PlaceholderSlot):
        return f"a placeholder for match {occupant.source_match_id}"
    if isinstance(occupant, ByeSlot):
        return "a BYE"
    return "nothing"


def advance(
    source: MatchSnapshot,
    destinations: Mapping[int, MatchSnapshot],
    round_matches: Sequence[MatchSnapshot],
) -> AdvanceOutcome:
    """Compute the slot writes that move *source*'s result into its successors.

    Args:
        source: the finished match
        destinations: successor snapshots by id (next_match_id and loser_next_match_id)
        round_matches: every match of the source's round, used to order feeders

    Returns:
        AdvancePlan (possibly with no writes) or AdvanceError for SlotConflict,
        SlotUnresolved or MissingWinner
    """
    if not source.is_finished or source.result is None:
        return AdvancePlan(source_match_id=source.id, noop_reason="source match is not finished")
    if source.next_match_id is None and source.loser_next_match_id is None:
        return AdvancePlan(source_match_id=source.id, noop_reason="source match has no successor")

    winner_side = source.result.winner_slot
    winner = source.slot(winner_side)
    if not isinstance(winner, EntrantSlot):
        return AdvanceError(
            kind=ErrorKind.MissingWinner,
            detail=f"Match {source.id} winner slot {winner_side.value} holds {_describe(winner)}",
            source_match_id=source.id,
        )

    targets = []
    if source.next_match_id is not None:
        targets.append((source.next_match_id, EntrantSlot(winner.entrant_id, placed_from=source.id), ROLE_WINNER))
    if source.loser_next_match_id is not None:
        loser = source.slot(winner_side.other)
        if isinstance(loser, EntrantSlot):
            targets.append(
                (source.loser_next_match_id, EntrantSlot(loser.entrant_id, placed_from=source.id), ROLE_LOSER)
            )
        elif isinstance(loser, ByeSlot):
            targets.append((source.loser_next_match_id, loser, ROLE_LOSER))

    writes: List[SlotWrite] = []
    for destination_id, incoming, role in targets:
        if destination_id == source.id:
            return AdvanceError(
                kind=ErrorKind.SlotUnresolved,
                detail=f"Match {source.id} names itself as its successor",
                source_match_id=source.id,
                destination_match_id=destination_id,
            )
        destination = destinations.get(destination_id)
        if destination is None:
            return AdvanceError(
                kind=ErrorKind.SlotUnresolved,
                detail=f"Successor match {destination_id} of match {source.id} was not found",
                source_match_id=source.id,
                destination_match_id=destination_id,
            )
        side = resolve_destination_slot(source, destination, round_matches, role)
        if side is None:
            return AdvanceError(
                kind=ErrorKind.SlotUnresolved,
                detail=f"Match {destination_id} has more than two feeders; cannot place match {source.id}",
                source_match_id=source.id,
                destination_match_id=destination_id,
            )
        decision = _place(source, destination, side, incoming, role)
        if isinstance(decision, AdvanceError):
            return decision
        if decision is not None:
            writes.append(decision)

    noop_reason = None if writes else "successor slots already up to date"
    return AdvancePlan(source_match_id=source.id, writes=writes, noop_reason=noop_reason)


def apply_plan(plan: AdvancePlan, matches: Mapping[int, MatchSnapshot]) -> Dict[int, MatchSnapshot]:
    """Return *matches* with the plan's slot writes applied (in-memory preview)."""
    updated = dict(matches)
    for write in plan.writes:
        updated[write.match_id] = updated[write.match_id].with_slot(write.slot, write.occupant)
    return updated


def synthesize_bye_result(match: MatchSnapshot) -> Optional[MatchResult]:
    """A walkover-equivalent result for a match whose only opponent is a BYE.

    Returns None unless exactly one slot is a BYE and the other holds an entrant.
    """
    if match.is_finished:
        return None
    if isinstance(match.slot_a, EntrantSlot) and isinstance(match.slot_b, ByeSlot):
        winner = SlotSide.A
    elif isinstance(match.slot_b, EntrantSlot) and isinstance(match.slot_a, ByeSlot):
        winner = SlotSide.B
    else:
        return None
    sets_a, sets_b = canonical_score(match.series_format, winner)
    return MatchResult(
        winner_slot=winner,
        series_format=match.series_format,
        sets_won_a=sets_a,
        sets_won_b=sets_b,
        outcome_kind=OutcomeKind.walkover,
    )


def find_link_cycle(matches: Iterable[MatchSnapshot]) -> Optional[List[int]]:
    """Find a match that feeds itself directly or transitively.

    Follows source_match_ids edges (and next/loser links, which point the
    other way). Returns the ids along the first cycle found, else None.
    """
    feeds: Dict[int, set] = {}
    for m in matches:
        feeds.setdefault(m.id, set()).update(m.source_match_ids)
        for successor in (m.next_match_id, m.loser_next_match_id):
            if successor is not None:
                feeds.setdefault(successor, set()).add(m.id)

    visiting: List[int] = []
    on_path = set()
    done = set()

    def visit(node: int) -> Optional[List[int]]:
        if node in on_path:
            return visiting[visiting.index(node):] + [node]
        if node in done:
            return None
        on_path.add(node)
        visiting.append(node)
        for upstream in sorted(feeds.get(node, ())):
            cycle = visit(upstream)
            if cycle:
                return cycle
        visiting.pop()
        on_path.discard(node)
        done.add(node)
        return None

    for node in sorted(feeds):
        cycle = visit(node)
        if cycle:
            return cycle
    return None
