"""Tests for the appeal flow."""

import asyncio

import pytest

from podium.engine.debates import AppealStatus, DebateStatus, RematchStatus
from podium.engine.errors import ErrorKind
from podium.engine.notifications import NotificationType
from podium.engine.verdicts import VerdictPass

REASON = (
    "The judges ignored my rebuttal of the congestion figures in round one "
    "and credited claims that were never supported."
)


@pytest.fixture
def decided(engine, open_debate, play_out, fake_judge):
    """Coroutine returning a debate alice won 80 to 60 on every judge."""

    async def _decided():
        fake_judge.scores = {"alice": 80, "bob": 60}
        debate = await open_debate()
        await play_out(debate)
        verdict_ids = [
            v.id for v in engine.verdict_store.get_verdicts(debate.id, VerdictPass.INITIAL)
        ]
        return debate, verdict_ids

    return _decided


@pytest.mark.integration
def test_appeal_validation_order(engine, decided) -> None:
    async def scenario():
        debate, verdict_ids = await decided()
        appeal = engine.appeals.request_appeal
        return [
            await appeal(debate.id, "bob", "too short", verdict_ids),
            await appeal(debate.id, "bob", "x" * 1001, verdict_ids),
            await appeal(debate.id, "bob", REASON, []),
            await appeal("missing", "bob", REASON, verdict_ids),
            await appeal(debate.id, "bob", REASON, [9999]),
            await appeal(debate.id, "mallory", REASON, verdict_ids),
            await appeal(debate.id, "alice", REASON, verdict_ids),
        ]

    results = asyncio.run(scenario())

    assert [r.error for r in results] == [
        ErrorKind.REASON_TOO_SHORT,
        ErrorKind.REASON_TOO_LONG,
        ErrorKind.NO_VERDICTS_SELECTED,
        ErrorKind.NOT_FOUND,
        ErrorKind.INVALID_VERDICTS,
        ErrorKind.NOT_PARTICIPANT,
        ErrorKind.WRONG_ACTOR,
    ]


@pytest.mark.integration
def test_tied_debates_cannot_be_appealed(engine, open_debate, play_out, fake_judge) -> None:
    fake_judge.scores = {"alice": 65, "bob": 65}

    async def scenario():
        debate = await open_debate()
        await play_out(debate)
        verdict_ids = [v.id for v in engine.verdict_store.get_verdicts(debate.id)]
        return await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)

    result = asyncio.run(scenario())

    assert result.error == ErrorKind.TIE_NOT_APPEALABLE


@pytest.mark.integration
def test_appeal_window_closes(engine, decided) -> None:
    engine.config.appeals.window_hours = 0

    async def scenario():
        debate, verdict_ids = await decided()
        return await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)

    result = asyncio.run(scenario())

    assert result.error == ErrorKind.APPEAL_WINDOW_EXPIRED


@pytest.mark.integration
def test_overturned_appeal_reverses_ratings(engine, decided, fake_judge, ratings) -> None:
    async def scenario():
        debate, verdict_ids = await decided()
        filed = await engine.appeals.request_appeal(
            debate.id, "bob", REASON, verdict_ids[:1]
        )
        duplicate = await engine.appeals.request_appeal(
            debate.id, "bob", REASON, verdict_ids
        )
        fake_judge.scores = {"alice": 50, "bob": 90}
        await engine.drain_background_tasks()
        return debate, filed, duplicate

    debate, filed, duplicate = asyncio.run(scenario())

    assert filed.ok
    assert filed.value.status == DebateStatus.APPEALED
    assert filed.value.original_winner_id == "alice"
    assert duplicate.error == ErrorKind.ALREADY_APPEALED

    stored = engine.debate_store.get_debate(debate.id)
    assert stored.status == DebateStatus.VERDICT_READY
    assert stored.winner_id == "bob"
    assert stored.appeal_status == AppealStatus.OVERTURNED
    assert stored.appeal_count == 1
    assert stored.challenger_rating_change == -16
    assert stored.opponent_rating_change == 16

    initial = engine.verdict_store.get_verdicts(debate.id, VerdictPass.INITIAL)
    appeal = engine.verdict_store.get_verdicts(debate.id, VerdictPass.APPEAL)
    assert len(appeal) == 3
    assert not {v.judge_id for v in initial} & {v.judge_id for v in appeal}

    assert ratings.reverted == [("alice", "bob", {"alice": 16, "bob": -16})]
    assert ratings.applied == [("alice", "bob", False), ("bob", "alice", False)]
    kinds = [n.type for n in engine.notification_sink.list_for_user("alice")]
    assert NotificationType.APPEAL_RESOLVED in kinds


@pytest.mark.integration
def test_upheld_appeal_keeps_result_and_cannot_repeat(engine, decided, ratings) -> None:
    async def scenario():
        debate, verdict_ids = await decided()
        await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)
        await engine.drain_background_tasks()
        again = await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)
        return debate, again

    debate, again = asyncio.run(scenario())

    stored = engine.debate_store.get_debate(debate.id)
    assert stored.winner_id == "alice"
    assert stored.appeal_status == AppealStatus.UPHELD
    assert ratings.applied == [("alice", "bob", False)]
    assert ratings.reverted == []
    assert again.error == ErrorKind.ALREADY_APPEALED


@pytest.mark.integration
def test_pending_rematch_blocks_appeal(engine, decided, fake_judge) -> None:
    async def scenario():
        debate, verdict_ids = await decided()
        await engine.rematches.request_rematch(debate.id, "bob")
        fake_judge.scores = {"alice": 50, "bob": 90}
        blocked = await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)
        await engine.drain_background_tasks()
        declined = await engine.rematches.respond_to_rematch(debate.id, "alice", False)
        reopened = await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)
        await engine.drain_background_tasks()
        return debate, blocked, declined, reopened

    debate, blocked, declined, reopened = asyncio.run(scenario())

    assert blocked.error == ErrorKind.REMATCH_IN_PROGRESS
    assert declined.ok
    assert reopened.ok
    stored = engine.debate_store.get_debate(debate.id)
    assert stored.winner_id == "bob"
    assert stored.rematch_status == RematchStatus.DECLINED


def _race_appeal_with(engine, monkeypatch, **interference) -> None:
    """Make another writer touch the debate just before the appeal's swap."""
    store = engine.debate_store
    original = store.compare_and_set
    raced = []

    def racing_compare_and_set(conn, debate_id, expected, **changes):
        if "appeal_reason" in changes and not raced:
            raced.append(debate_id)
            original(conn, debate_id, {}, **interference)
        return original(conn, debate_id, expected, **changes)

    monkeypatch.setattr(store, "compare_and_set", racing_compare_and_set)


@pytest.mark.integration
def test_unrelated_write_does_not_reject_appeal(engine, decided, monkeypatch) -> None:
    async def scenario():
        debate, verdict_ids = await decided()
        _race_appeal_with(engine, monkeypatch, challenger_rating_change=16)
        result = await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)
        await engine.drain_background_tasks()
        return result

    result = asyncio.run(scenario())

    assert result.ok
    assert result.value.status == DebateStatus.APPEALED


@pytest.mark.integration
def test_racing_rematch_request_reports_real_reason(engine, decided, monkeypatch) -> None:
    async def scenario():
        debate, verdict_ids = await decided()
        _race_appeal_with(
            engine, monkeypatch, rematch_status=RematchStatus.PENDING, rematch_requested_by="bob"
        )
        return await engine.appeals.request_appeal(debate.id, "bob", REASON, verdict_ids)

    result = asyncio.run(scenario())

    assert result.error == ErrorKind.REMATCH_IN_PROGRESS
