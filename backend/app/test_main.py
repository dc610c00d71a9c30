from __future__ import annotations

from fastapi.testclient import TestClient

from app.cricket.ledger import LedgerEntry
from app.cricket.store import get_store
from app.main import _entry_to_dto, app

SINGLES = {
    "variant": "singles",
    "players": [
        {"player_id": "p1", "display_name": "Ann"},
        {"player_id": "p2", "display_name": "Bob"},
    ],
}


def _client() -> TestClient:
    get_store().clear()
    return TestClient(app)


def test_root_redirects_browsers_to_docs() -> None:
    client = _client()
    r = client.get("/", headers={"accept": "text/html"}, follow_redirects=False)
    assert r.status_code in {302, 307}, r.text
    assert r.headers["location"] == "/docs"

    r = client.get("/health")
    assert r.json() == {"status": "ok"}


def test_no_active_match() -> None:
    client = _client()
    r = client.get("/match")
    assert r.status_code == 404, r.text


def test_start_match_and_score() -> None:
    client = _client()
    r = client.post("/match", json=SINGLES)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["current_player_id"] == "p1"
    assert body["rules"]["points_rule"] == "swamp"
    assert [e["participant_id"] for e in body["ledger"]] == ["p1", "p2"]

    r = client.post("/match/multiplier", json={"multiplier": 3})
    assert r.json()["selected_multiplier"] == 3

    r = client.post("/match/score", json={"target": "20"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ledger"][0]["marks"]["20"] == 3
    assert body["dart_index"] == 1
    assert body["darts"][0]["kind"] == "score"
    assert body["selected_multiplier"] == 1


def test_rejections_map_to_409() -> None:
    client = _client()
    client.post("/match", json=SINGLES)

    r = client.post("/match/undo")
    assert r.status_code == 409
    assert r.json()["detail"]["reason"] == "NothingToUndo"

    r = client.post("/match/skip", json={"target_id": "p1"})
    assert r.status_code == 409
    assert r.json()["detail"]["reason"] == "ParticipantIneligible"

    r = client.post("/match/pin")
    assert r.json()["detail"]["reason"] == "PhaseInactive"


def test_bad_initialization_is_422() -> None:
    client = _client()
    r = client.post(
        "/match",
        json={
            "variant": "tag-team",
            "players": [
                {"player_id": "a", "display_name": "A"},
                {"player_id": "b", "display_name": "B"},
                {"player_id": "c", "display_name": "C"},
            ],
        },
    )
    assert r.status_code == 422, r.text


def test_skip_and_undo_over_http() -> None:
    client = _client()
    client.post("/match", json=SINGLES)

    client.post("/match/skip", json={"target_id": "p2"})
    client.post("/match/miss")
    r = client.post("/match/miss")
    body = r.json()
    # p2 served the skip, p1 is up again
    assert body["current_player_id"] == "p1"
    assert body["served_skip"] == ["p2"]

    r = client.post("/match/undo")
    body = r.json()
    assert body["dart_index"] == 2
    assert body["skipped"] == ["p2"]


def test_summary_and_tally_after_win() -> None:
    client = _client()
    client.post("/match", json={**SINGLES, "points_rule": "no-point"})
    assert client.get("/match/summary").status_code == 409

    for target in ("20", "19", "18", "17", "16", "15", "B", "T", "D"):
        r = client.post("/match/score", json={"target": target, "multiplier": 3})
        assert r.status_code == 200, r.text
    for _ in range(3):
        r = client.post("/match/pin")
    assert r.json()["winner_id"] == "p1"

    r = client.get("/match/summary")
    assert r.status_code == 200, r.text
    summary = r.json()
    assert summary["winner_id"] == "p1"
    assert summary["total_turns"] == 4
    assert get_store().archived(summary["match_id"]) is not None

    r = client.get("/match/tally")
    p1 = r.json()[0]
    assert p1["marks"] == 27
    assert p1["pin_pushes"] == 3


def test_ko_points_are_served_capped() -> None:
    dto = _entry_to_dto(LedgerEntry("p1", "Ann", ko_points=5, is_eliminated=True))
    assert dto.ko_points == 3
