"""Advancement through the API: reporting a result places the winner (and loser) downstream, atomically and idempotently."""
from fastapi.testclient import TestClient
from sqlmodel import Session

from bracketcore.models.match import Match
from bracketcore.services.match_events import match_events
from tests.factories import BYE, build_four_draw, create_entrants, create_event, create_match, link


def _report(client: TestClient, tid: int, mid: int, **body):
    return client.put(f"/api/tournaments/{tid}/runtime/matches/{mid}/result", json=body)


def test_reporting_result_advances_winner(client: TestClient, session: Session):
    draw = build_four_draw(session)
    tid = draw["tournament_id"]
    ana = draw["entrant_ids"][0]

    resp = _report(client, tid, draw["sf1_id"], sets_won_a=3, sets_won_b=1)
    assert resp.status_code == 200
    data = resp.json()
    assert data["match"]["status"] == "finished"
    assert data["match"]["winner_slot"] == "A"
    assert data["match"]["score_display"] == "3-1"
    assert data["warnings"] == []
    assert data["advanced"] == [
        {
            "match_id": draw["final_id"],
            "slot": "A",
            "role": "WINNER",
            "occupant": {"kind": "ENTRANT", "entrant_id": ana, "source_match_id": draw["sf1_id"]},
        }
    ]

    session.expire_all()
    final = session.get(Match, draw["final_id"])
    assert final.slot_a_kind == "ENTRANT"
    assert final.slot_a_entrant_id == ana
    assert final.version == 2


def test_advance_idempotent(client: TestClient, session: Session):
    """Second advance call writes nothing."""
    draw = build_four_draw(session)
    tid = draw["tournament_id"]
    _report(client, tid, draw["sf1_id"], sets_won_a=0, sets_won_b=3)

    r1 = client.post(f"/api/tournaments/{tid}/runtime/matches/{draw['sf1_id']}/advance")
    r2 = client.post(f"/api/tournaments/{tid}/runtime/matches/{draw['sf1_id']}/advance")
    assert r1.status_code == 200
    assert r2.status_code == 200
    assert r1.json()["writes"] == []
    assert r2.json()["writes"] == []
    assert r2.json()["noop_reason"]

    session.expire_all()
    final = session.get(Match, draw["final_id"])
    assert final.slot_a_entrant_id == draw["entrant_ids"][1]
    assert final.version == 2


def test_advance_on_unfinished_match_is_noop(client: TestClient, session: Session):
    draw = build_four_draw(session)
    resp = client.post(f"/api/tournaments/{draw['tournament_id']}/runtime/matches/{draw['sf2_id']}/advance")
    assert resp.status_code == 200
    assert resp.json()["writes"] == []


def test_semis_in_either_order_fill_the_same_final(client: TestClient, session: Session):
    draw = build_four_draw(session)
    tid = draw["tournament_id"]
    ana, bea, caro, dani = draw["entrant_ids"]

    assert _report(client, tid, draw["sf2_id"], sets_won_a=3, sets_won_b=2).status_code == 200
    assert _report(client, tid, draw["sf1_id"], sets_won_a=1, sets_won_b=3).status_code == 200

    session.expire_all()
    final = session.get(Match, draw["final_id"])
    assert (final.slot_a_entrant_id, final.slot_b_entrant_id) == (bea, caro)


def test_loser_routed_to_third_place(client: TestClient, session: Session):
    draw = build_four_draw(session, third_place=True)
    tid = draw["tournament_id"]
    ana, bea, caro, dani = draw["entrant_ids"]

    resp = _report(client, tid, draw["sf1_id"], sets_won_a=3, sets_won_b=0)
    assert resp.status_code == 200
    roles = {(w["match_id"], w["role"]) for w in resp.json()["advanced"]}
    assert roles == {(draw["final_id"], "WINNER"), (draw["third_id"], "LOSER")}

    session.expire_all()
    third = session.get(Match, draw["third_id"])
    assert third.slot_a_kind == "ENTRANT"
    assert third.slot_a_entrant_id == bea


def test_slot_conflict_writes_nothing(client: TestClient, session: Session):
    """A destination slot already holding someone else is never overwritten."""
    draw = build_four_draw(session)
    tid = draw["tournament_id"]
    caro = draw["entrant_ids"][2]

    final = session.get(Match, draw["final_id"])
    final.slot_a_kind = "ENTRANT"
    final.slot_a_entrant_id = caro
    final.slot_a_source_match_id = None
    session.add(final)
    session.commit()

    resp = _report(client, tid, draw["sf1_id"], sets_won_a=3, sets_won_b=1)
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["error"] == "SlotConflict"
    assert detail["destination_match_id"] == draw["final_id"]

    session.expire_all()
    sf1 = session.get(Match, draw["sf1_id"])
    assert sf1.status == "scheduled"
    assert sf1.winner_slot is None
    assert sf1.version == 1
    assert session.get(Match, draw["final_id"]).slot_a_entrant_id == caro


def test_corrected_result_moves_new_winner(client: TestClient, session: Session):
    draw = build_four_draw(session)
    tid = draw["tournament_id"]
    ana, bea = draw["entrant_ids"][:2]

    _report(client, tid, draw["sf1_id"], sets_won_a=3, sets_won_b=2)
    resp = _report(client, tid, draw["sf1_id"], sets_won_a=2, sets_won_b=3)
    assert resp.status_code == 200

    session.expire_all()
    final = session.get(Match, draw["final_id"])
    assert final.slot_a_entrant_id == bea


def test_bye_in_successor_auto_finishes(client: TestClient, session: Session):
    event = create_event(session)
    ana, bea = create_entrants(session, event, ["Ana", "Bea"])
    final = create_match(session, event, "F", 2, b=BYE)
    sf1 = create_match(session, event, "SF1", 1, ana.id, bea.id)
    link(session, final, sf1)

    resp = _report(client, event.tournament_id, sf1.id, sets_won_a=3, sets_won_b=0)
    assert resp.status_code == 200
    assert resp.json()["auto_finished"] == [final.id]

    session.expire_all()
    stored = session.get(Match, final.id)
    assert stored.status == "finished"
    assert stored.winner_slot == "A"
    assert stored.outcome_kind == "walkover"


def test_resolve_byes_cascades_and_is_idempotent(client: TestClient, session: Session):
    draw = build_four_draw(session, seeds=None)
    tid = draw["tournament_id"]
    ana = draw["entrant_ids"][0]

    sf1 = session.get(Match, draw["sf1_id"])
    sf1.slot_b_kind = "BYE"
    sf1.slot_b_entrant_id = None
    session.add(sf1)
    session.commit()

    r1 = client.post(f"/api/tournaments/{tid}/runtime/resolve-byes")
    assert r1.status_code == 200
    assert r1.json() == {"matches_processed": 1, "open_slots_before": 2, "open_slots_after": 1}

    r2 = client.post(f"/api/tournaments/{tid}/runtime/resolve-byes")
    assert r2.json()["matches_processed"] == 0

    session.expire_all()
    final = session.get(Match, draw["final_id"])
    assert final.slot_a_entrant_id == ana
    assert session.get(Match, draw["sf1_id"]).outcome_kind == "walkover"


def test_resolve_byes_rejects_cyclic_links(client: TestClient, session: Session):
    event = create_event(session)
    m1 = create_match(session, event, "M1", 1)
    m2 = create_match(session, event, "M2", 2)
    m1.next_match_id = m2.id
    m2.next_match_id = m1.id
    session.add(m1)
    session.add(m2)
    session.commit()

    resp = client.post(f"/api/tournaments/{event.tournament_id}/runtime/resolve-byes")
    assert resp.status_code == 409
    assert "cycle" in resp.json()["detail"]


def test_match_updated_events_published(client: TestClient, session: Session):
    draw = build_four_draw(session)
    received = []
    unsubscribe = match_events.subscribe(received.append)
    try:
        _report(client, draw["tournament_id"], draw["sf1_id"], sets_won_a=3, sets_won_b=0)
    finally:
        unsubscribe()

    assert [(e.match_id, e.reason) for e in received] == [
        (draw["sf1_id"], "result"),
        (draw["final_id"], "advancement"),
    ]


def test_podium_after_final_and_third_place(client: TestClient, session: Session):
    draw = build_four_draw(session, third_place=True)
    tid = draw["tournament_id"]
    ana, bea, caro, dani = draw["entrant_ids"]

    _report(client, tid, draw["sf1_id"], sets_won_a=3, sets_won_b=0)
    _report(client, tid, draw["sf2_id"], sets_won_a=0, sets_won_b=3)
    assert _report(client, tid, draw["final_id"], sets_won_a=3, sets_won_b=2).status_code == 200
    assert _report(client, tid, draw["third_id"], sets_won_a=1, sets_won_b=3).status_code == 200

    resp = client.get(f"/api/tournaments/{tid}/events/{draw['event_id']}/podium")
    assert resp.status_code == 200
    data = resp.json()
    assert data["final_match_id"] == draw["final_id"]
    assert data["placings"] == [
        {"place": 1, "entrant_id": ana, "display_name": "Ana"},
        {"place": 2, "entrant_id": dani, "display_name": "Dani"},
        {"place": 3, "entrant_id": caro, "display_name": "Caro"},
    ]


def test_podium_empty_before_final(client: TestClient, session: Session):
    draw = build_four_draw(session)
    resp = client.get(f"/api/tournaments/{draw['tournament_id']}/events/{draw['event_id']}/podium")
    assert resp.status_code == 200
    assert resp.json()["placings"] == []


def test_listed_feeder_from_later_round_takes_its_slot(client: TestClient, session: Session):
    """source_match_ids position decides the slot even when the feeders sit in different rounds."""
    event = create_event(session)
    ana, bea, caro, dani = create_entrants(session, event, ["Ana", "Bea", "Caro", "Dani"])
    final = create_match(session, event, "F", 3)
    early = create_match(session, event, "R1", 1, ana.id, bea.id)
    late = create_match(session, event, "R2", 2, caro.id, dani.id)
    link(session, final, early, late)

    resp = _report(client, event.tournament_id, late.id, sets_won_a=3, sets_won_b=0)
    assert resp.status_code == 200
    assert [(w["match_id"], w["slot"]) for w in resp.json()["advanced"]] == [(final.id, "B")]

    session.expire_all()
    stored = session.get(Match, final.id)
    assert stored.slot_b_entrant_id == caro.id
    assert stored.slot_a_kind == "PLACEHOLDER"


def test_result_without_opponent_is_rejected(client: TestClient, session: Session):
    """A final with only one finalist placed cannot be decided yet."""
    draw = build_four_draw(session, third_place=True)
    tid = draw["tournament_id"]
    _report(client, tid, draw["sf1_id"], sets_won_a=3, sets_won_b=0)

    resp = _report(client, tid, draw["final_id"], sets_won_a=3, sets_won_b=1)
    assert resp.status_code == 409
    assert resp.json()["detail"]["error"] == "SlotUnresolved"

    session.expire_all()
    final = session.get(Match, draw["final_id"])
    assert final.status == "scheduled"
    assert final.winner_slot is None


def test_resolve_byes_stale_write_body(client: TestClient, session: Session, monkeypatch):
    from bracketcore.services import bracket_service
    from bracketcore.services.match_repository import StaleWriteError

    draw = build_four_draw(session)

    def stale(*args, **kwargs):
        raise StaleWriteError(draw["final_id"], 1)

    monkeypatch.setattr(bracket_service, "resolve_byes", stale)
    resp = client.post(f"/api/tournaments/{draw['tournament_id']}/runtime/resolve-byes")
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["error"] == "StaleWrite"
    assert detail["match_id"] == draw["final_id"]
    assert detail["message"]
