"""
Final placings from a finished bracket: champion and runner-up from the
final, third place from the third-place playoff when one is wired.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from bracketcore.services.bracket_types import EntrantSlot, MatchSnapshot

ROLE_MAIN = "MAIN"
ROLE_THIRD_PLACE = "THIRD_PLACE"


@dataclass(frozen=True)
class Podium:
    champion_id: Optional[int] = None
    runner_up_id: Optional[int] = None
    third_place_id: Optional[int] = None
    final_match_id: Optional[int] = None
    third_place_match_id: Optional[int] = None


def _winner_and_loser(match: MatchSnapshot):
    if not match.is_finished or match.result is None:
        return None, None
    winner = match.slot(match.result.winner_slot)
    loser = match.slot(match.result.winner_slot.other)
    return (
        winner.entrant_id if isinstance(winner, EntrantSlot) else None,
        loser.entrant_id if isinstance(loser, EntrantSlot) else None,
    )


def find_final(matches: Sequence[MatchSnapshot]) -> Optional[MatchSnapshot]:
    """The main-bracket match with no successor in the deepest round."""
    finals = [m for m in matches if m.bracket_role == ROLE_MAIN and m.next_match_id is None]
    if not finals:
        return None
    return max(finals, key=lambda m: (m.round_number, -m.id))


def compute_podium(matches: Sequence[MatchSnapshot]) -> Podium:
    final = find_final(matches)
    third = next((m for m in sorted(matches, key=lambda m: m.id) if m.bracket_role == ROLE_THIRD_PLACE), None)

    champion = runner_up = third_place = None
    if final is not None:
        champion, runner_up = _winner_and_loser(final)
    if third is not None:
        third_place, _ = _winner_and_loser(third)

    return Podium(
        champion_id=champion,
        runner_up_id=runner_up,
        third_place_id=third_place,
        final_match_id=final.id if final else None,
        third_place_match_id=third.id if third else None,
    )
