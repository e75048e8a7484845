"""
Match repository: row/snapshot conversion and compare-and-set writes.
"""

import pytest
from sqlmodel import Session

from bracketcore.models.match import Match
from bracketcore.services import match_repository as repo
from bracketcore.services.bracket_types import (
    BYE,
    EntrantSlot,
    MatchResult,
    MatchStatus,
    PlaceholderSlot,
    SlotSide,
)
from bracketcore.services.match_repository import MatchUpdate, StaleWriteError
from tests.factories import build_four_draw, create_event, create_entrants, create_match


def test_snapshot_reflects_slots_and_links(session: Session):
    draw = build_four_draw(session)
    ana, bea = draw["entrant_ids"][:2]

    sf1 = repo.get_match(session, draw["sf1_id"])
    final = repo.get_match(session, draw["final_id"])

    assert sf1.slot_a == EntrantSlot(ana)
    assert sf1.slot_b == EntrantSlot(bea)
    assert sf1.next_match_id == draw["final_id"]
    assert sf1.status is MatchStatus.scheduled
    assert sf1.result is None
    assert final.slot_a == PlaceholderSlot(draw["sf1_id"])
    assert final.source_match_ids == (draw["sf1_id"], draw["sf2_id"])


def test_occupant_columns_roundtrip_bye():
    cols = repo.occupant_to_columns(SlotSide.B, BYE)
    assert cols == {"slot_b_kind": "BYE", "slot_b_entrant_id": None, "slot_b_source_match_id": None}
    assert repo.occupant_from_columns(cols["slot_b_kind"], None, None) == BYE


def test_update_bumps_version(session: Session):
    draw = build_four_draw(session)
    before = repo.get_match(session, draw["sf1_id"])

    new_version = repo.apply_match_update(session, before.id, before.version, {"status": "in_progress"})

    after = repo.get_match(session, before.id)
    assert new_version == before.version + 1
    assert after.version == new_version
    assert after.status is MatchStatus.in_progress


def test_stale_version_rejected(session: Session):
    draw = build_four_draw(session)
    sf1 = repo.get_match(session, draw["sf1_id"])
    repo.apply_match_update(session, sf1.id, sf1.version, {"status": "in_progress"})

    with pytest.raises(StaleWriteError) as exc_info:
        repo.apply_match_update(session, sf1.id, sf1.version, {"status": "scheduled"})

    assert exc_info.value.match_id == sf1.id
    assert repo.get_match(session, sf1.id).status is MatchStatus.in_progress


def test_batch_is_all_or_nothing(session: Session):
    """A stale second write rolls back the first one too."""
    draw = build_four_draw(session)
    sf1 = repo.get_match(session, draw["sf1_id"])
    final = repo.get_match(session, draw["final_id"])

    result = MatchResult(winner_slot=SlotSide.A, series_format=5, sets_won_a=3, sets_won_b=0)
    updates = [
        MatchUpdate(sf1.id, sf1.version, repo.result_to_columns(result)),
        MatchUpdate(final.id, final.version + 7, repo.occupant_to_columns(SlotSide.A, EntrantSlot(1, placed_from=sf1.id))),
    ]
    with pytest.raises(StaleWriteError):
        repo.apply_match_updates(session, updates)

    session.expire_all()
    assert repo.get_match(session, sf1.id).status is MatchStatus.scheduled
    assert repo.get_match(session, sf1.id).version == sf1.version
    assert repo.get_match(session, final.id).slot_a == PlaceholderSlot(sf1.id)


def test_result_columns_produce_finished_snapshot(session: Session):
    draw = build_four_draw(session)
    sf2 = repo.get_match(session, draw["sf2_id"])
    result = MatchResult(winner_slot=SlotSide.B, series_format=5, sets_won_a=2, sets_won_b=3)

    repo.apply_match_update(session, sf2.id, sf2.version, repo.result_to_columns(result))

    stored = repo.get_match(session, sf2.id)
    assert stored.is_finished
    assert stored.result == result
    row = session.get(Match, sf2.id)
    assert row.completed_at is not None


def test_round_reads_are_ordered_and_scoped(session: Session):
    draw = build_four_draw(session)
    round_one = repo.get_matches_by_round(session, draw["tournament_id"], 1)
    assert [m.id for m in round_one] == sorted([draw["sf1_id"], draw["sf2_id"]])
    assert repo.get_matches_by_round(session, draw["tournament_id"], 1, event_id=draw["event_id"] + 100) == []

    everything = repo.get_tournament_matches(session, draw["tournament_id"])
    assert [m.round_number for m in everything] == [1, 1, 2]


def test_eligible_entrants_sorted_by_name(session: Session):
    event = create_event(session, name="Mixed Doubles", roster_kind="pair")
    create_entrants(session, event, ["zoe", "Ana", "mia"])

    names = [e.display_name for e in repo.list_eligible_entrants(session, event.tournament_id, event.id)]
    assert names == ["Ana", "mia", "zoe"]


def test_entrant_names_lookup(session: Session):
    event = create_event(session)
    ana, bea = create_entrants(session, event, ["Ana", "Bea"])
    create_match(session, event, "R1", 1, ana.id, bea.id)

    assert repo.get_entrant_names(session, [bea.id, ana.id, ana.id]) == {ana.id: "Ana", bea.id: "Bea"}
    assert repo.get_entrant_names(session, []) == {}


def test_eligible_entrants_gender_filter(session: Session):
    event = create_event(session, name="Women's Doubles", roster_kind="pair", gender_constraint="female")
    create_entrants(session, event, ["Rui", "Ana", "Bea", "Kim"], genders=["male", "female", "female", None])

    filtered = repo.list_eligible_entrants(session, event.tournament_id, event.id, "female")
    assert [e.display_name for e in filtered] == ["Ana", "Bea"]
    everyone = repo.list_eligible_entrants(session, event.tournament_id, event.id, "mixed")
    assert [e.display_name for e in everyone] == ["Ana", "Bea", "Kim", "Rui"]
