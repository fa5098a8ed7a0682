"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from podium.engine.debates import DebateStatus
from podium.engine.web import create_app

TOPIC = "Public transport should be free at the point of use"


@pytest.fixture
def app(engine):
    return create_app(engine=engine)


@pytest.mark.integration
def test_debate_lifecycle_over_http(app, engine, fake_judge) -> None:
    fake_judge.scores = {"alice": 80, "bob": 60}

    with TestClient(app) as client:
        created = client.post(
            "/debates", json={"challenger_id": "alice", "topic": TOPIC, "total_rounds": 1}
        )
        assert created.status_code == 200
        debate_id = created.json()["data"]["id"]
        assert created.json()["data"]["status"] == "WAITING"

        own = client.post(f"/debates/{debate_id}/accept", json={"user_id": "alice"})
        assert own.status_code == 403
        assert own.json()["detail"]["error"] == "wrong_actor"

        accepted = client.post(f"/debates/{debate_id}/accept", json={"user_id": "bob"})
        assert accepted.json()["data"]["status"] == "ACTIVE"

        first = client.post(
            f"/debates/{debate_id}/statements",
            json={"user_id": "alice", "content": "Free fares cut congestion."},
        )
        assert first.json()["data"]["outcome"] == "pending"
        repeat = client.post(
            f"/debates/{debate_id}/statements",
            json={"user_id": "alice", "content": "And emissions."},
        )
        assert repeat.status_code == 409
        assert repeat.json()["detail"]["error"] == "already_submitted"

        last = client.post(
            f"/debates/{debate_id}/statements",
            json={"user_id": "bob", "content": "Someone still pays for it."},
        )
        assert last.json()["data"]["outcome"] == "completed"

    # leaving the client runs shutdown, which waits for judging
    assert engine.debate_store.get_debate(debate_id).status == DebateStatus.VERDICT_READY

    with TestClient(app) as client:
        view = client.get(f"/debates/{debate_id}")
        assert view.status_code == 200
        body = view.json()["data"]
        assert body["debate"]["winner_id"] == "alice"
        assert [s["author_id"] for s in body["statements"]] == ["alice", "bob"]

        rematch = client.post(
            f"/debates/{debate_id}/rematch", json={"user_id": "bob", "action": "request"}
        )
        assert rematch.json()["data"]["rematch_status"] == "PENDING"
        declined = client.post(
            f"/debates/{debate_id}/rematch", json={"user_id": "alice", "action": "decline"}
        )
        assert declined.json()["data"]["rematch_status"] == "DECLINED"

        appeal = client.post(
            f"/debates/{debate_id}/appeal",
            json={"user_id": "bob", "reason": "short", "verdict_ids": [1]},
        )
        assert appeal.status_code == 400
        assert appeal.json()["detail"]["error"] == "reason_too_short"

        cancel = client.post(f"/debates/{debate_id}/cancel")
        assert cancel.status_code == 409


@pytest.mark.unit
def test_unknown_debate_and_invalid_body(app) -> None:
    with TestClient(app) as client:
        missing = client.get("/debates/does-not-exist")
        assert missing.status_code == 404
        assert missing.json()["detail"] == {"error": "not_found", "message": "Debate not found"}

        invalid = client.post("/debates", json={"challenger_id": "alice", "topic": "   "})
        assert invalid.status_code == 422


@pytest.mark.integration
def test_tournament_endpoints(app) -> None:
    with TestClient(app) as client:
        created = client.post("/tournaments", json={"name": "Autumn Cup", "topic": TOPIC})
        tournament_id = created.json()["data"]["id"]
        assert created.json()["data"]["status"] == "REGISTRATION_OPEN"

        for user_id in ("ann", "ben"):
            registered = client.post(
                f"/tournaments/{tournament_id}/participants", json={"user_id": user_id}
            )
            assert registered.status_code == 200
        again = client.post(
            f"/tournaments/{tournament_id}/participants", json={"user_id": "ann"}
        )
        assert again.status_code == 409

        started = client.post(f"/tournaments/{tournament_id}/start")
        assert started.json()["data"]["round_number"] == 1
        assert len(started.json()["data"]["debates"]) == 1

        early = client.post(f"/tournaments/{tournament_id}/advance")
        assert early.status_code == 409
        assert early.json()["detail"]["error"] == "round_not_complete"

        bracket = client.get(f"/tournaments/{tournament_id}/bracket").json()["data"]
        assert bracket["tournament"]["status"] == "IN_PROGRESS"
        assert len(bracket["matches"]) == 1

        assert client.post("/tournaments/999/start").status_code == 404
