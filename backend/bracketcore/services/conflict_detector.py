"""
Round double-booking detection.

A competitor should occupy at most one match per round. Warnings are
advisory: data-entry corrections can briefly put someone in two matches
before a compensating edit, so nothing here blocks a save.

Identity is the entrant id, never the display name. A match holding the
same entrant in both of its own slots is rejected upstream and is not
reported here.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from bracketcore.services.bracket_types import EntrantSlot, MatchSnapshot, SlotSide


@dataclass(frozen=True)
class RoundConflictWarning:
    entrant_id: int
    round_number: int
    match_id: int
    slot: SlotSide
    conflicting_match_id: int
    conflicting_slot: SlotSide
    details: str


def _occupied_slots(match: MatchSnapshot):
    for side in (SlotSide.A, SlotSide.B):
        occupant = match.slot(side)
        if isinstance(occupant, EntrantSlot):
            yield side, occupant.entrant_id


def _label(entrant_id: int, names: Optional[Mapping[int, str]]) -> str:
    if names and entrant_id in names:
        return f"{names[entrant_id]} (entrant {entrant_id})"
    return f"Entrant {entrant_id}"


def detect_conflicts(
    round_matches: Sequence[MatchSnapshot],
    candidate: MatchSnapshot,
    names: Optional[Mapping[int, str]] = None,
) -> List[RoundConflictWarning]:
    """Warnings for each entrant of *candidate* who also appears elsewhere in its round.

    Ordered by candidate slot, then conflicting match id.
    """
    warnings: List[RoundConflictWarning] = []
    others = sorted(
        (m for m in round_matches if m.id != candidate.id and m.round_number == candidate.round_number),
        key=lambda m: m.id,
    )
    for side, entrant_id in _occupied_slots(candidate):
        for other in others:
            for other_side, other_entrant in _occupied_slots(other):
                if other_entrant != entrant_id:
                    continue
                warnings.append(
                    RoundConflictWarning(
                        entrant_id=entrant_id,
                        round_number=candidate.round_number,
                        match_id=candidate.id,
                        slot=side,
                        conflicting_match_id=other.id,
                        conflicting_slot=other_side,
                        details=(
                            f"{_label(entrant_id, names)} is already playing match {other.id} "
                            f"in round {candidate.round_number}"
                        ),
                    )
                )
    return warnings


def detect_round_conflicts(
    round_matches: Sequence[MatchSnapshot],
    names: Optional[Mapping[int, str]] = None,
) -> List[RoundConflictWarning]:
    """Every double-booking in a round, one warning per pair of matches sharing an entrant.

    Deterministic: sorted by entrant id, then match ids.
    """
    seen: Dict[int, List[tuple]] = {}
    for match in sorted(round_matches, key=lambda m: m.id):
        for side, entrant_id in _occupied_slots(match):
            seen.setdefault(entrant_id, []).append((match, side))

    warnings: List[RoundConflictWarning] = []
    for entrant_id in sorted(seen):
        placements = seen[entrant_id]
        for i, (first, first_side) in enumerate(placements):
            for second, second_side in placements[i + 1:]:
                if first.id == second.id:
                    continue
                warnings.append(
                    RoundConflictWarning(
                        entrant_id=entrant_id,
                        round_number=first.round_number,
                        match_id=first.id,
                        slot=first_side,
                        conflicting_match_id=second.id,
                        conflicting_slot=second_side,
                        details=(
                            f"{_label(entrant_id, names)} appears in matches {first.id} and "
                            f"{second.id} of round {first.round_number}"
                        ),
                    )
                )
    return warnings
