"""Tests for verdict aggregation, ratings and belts."""

import asyncio

import pytest

from podium.engine.debates import ChallengeType, CreateChallengeRequest, DebateStatus
from podium.engine.errors import ErrorKind, JudgingServiceError
from podium.engine.judges import JudgeScore
from podium.engine.notifications import NotificationType
from podium.engine.verdicts import VerdictDecision, VerdictPass
from podium.engine.verdicts.decision import decide_pass


def scores(judge_id: int, **by_user: float) -> JudgeScore:
    return JudgeScore(judge_id=judge_id, scores=by_user)


@pytest.mark.unit
def test_higher_total_wins_even_against_judge_majority() -> None:
    results = [
        scores(1, alice=55, bob=50),
        scores(2, alice=55, bob=50),
        scores(3, alice=20, bob=90),
    ]

    decision, winner_id, totals = decide_pass(results, "alice", "bob")

    assert decision == VerdictDecision.OPPONENT_WINS
    assert winner_id == "bob"
    assert totals == {"alice": 130.0, "bob": 190.0}


@pytest.mark.unit
def test_equal_totals_are_a_tie() -> None:
    decision, winner_id, _ = decide_pass(
        [scores(1, alice=70, bob=60), scores(2, alice=60, bob=70)], "alice", "bob"
    )

    assert decision == VerdictDecision.TIE
    assert winner_id is None


@pytest.mark.integration
def test_clear_winner_updates_ratings_and_notifies(
    engine, open_debate, play_out, fake_judge, ratings
) -> None:
    fake_judge.scores = {"alice": 80, "bob": 60}

    async def scenario():
        debate = await open_debate()
        await play_out(debate)
        return debate

    debate = asyncio.run(scenario())

    stored = engine.debate_store.get_debate(debate.id)
    assert stored.status == DebateStatus.VERDICT_READY
    assert stored.winner_id == "alice"
    assert stored.verdict_date is not None
    assert stored.challenger_rating_change == 16
    assert stored.opponent_rating_change == -16

    verdicts = engine.verdict_store.get_verdicts(debate.id, VerdictPass.INITIAL)
    assert len(verdicts) == 3
    assert len({v.judge_id for v in verdicts}) == 3
    assert all(v.decision == VerdictDecision.CHALLENGER_WINS for v in verdicts)
    assert ratings.applied == [("alice", "bob", False)]

    alice_kinds = [n.type for n in engine.notification_sink.list_for_user("alice")]
    bob_kinds = [n.type for n in engine.notification_sink.list_for_user("bob")]
    assert NotificationType.DEBATE_WON in alice_kinds
    assert NotificationType.DEBATE_LOST in bob_kinds


@pytest.mark.integration
def test_tied_debate_has_no_winner(engine, open_debate, play_out, fake_judge, ratings) -> None:
    fake_judge.scores = {"alice": 70, "bob": 70}

    async def scenario():
        debate = await open_debate()
        await play_out(debate)
        return debate

    debate = asyncio.run(scenario())

    stored = engine.debate_store.get_debate(debate.id)
    assert stored.status == DebateStatus.VERDICT_READY
    assert stored.winner_id is None
    assert ratings.applied == [("alice", "bob", True)]
    kinds = [n.type for n in engine.notification_sink.list_for_user("bob")]
    assert NotificationType.DEBATE_TIED in kinds


@pytest.mark.integration
def test_aggregating_twice_is_a_no_op(engine, open_debate, play_out, fake_judge, ratings) -> None:
    fake_judge.scores = {"alice": 40, "bob": 90}

    async def scenario():
        debate = await open_debate()
        await play_out(debate)
        return debate, await engine.aggregator.aggregate(debate.id)

    debate, again = asyncio.run(scenario())

    assert again.ok
    assert again.already_processed
    assert again.value.winner_id == "bob"
    assert again.value.totals == {"alice": 120.0, "bob": 270.0}
    assert len(fake_judge.requests) == 1
    assert len(ratings.applied) == 1
    assert len(engine.verdict_store.get_verdicts(debate.id)) == 3


@pytest.mark.integration
def test_judging_failure_leaves_debate_retryable(
    engine, open_debate, play_out, fake_judge
) -> None:
    fake_judge.fail_with = JudgingServiceError("model overloaded")

    async def scenario():
        debate = await open_debate()
        await play_out(debate)
        failed = await engine.aggregator.aggregate(debate.id)
        fake_judge.fail_with = None
        retried = await engine.aggregator.retry_pending_verdicts()
        return debate, failed, retried

    debate, failed, retried = asyncio.run(scenario())

    assert failed.error == ErrorKind.JUDGING_UNAVAILABLE
    assert len(retried) == 1 and retried[0].ok
    stored = engine.debate_store.get_debate(debate.id)
    assert stored.status == DebateStatus.VERDICT_READY
    assert stored.judging_claimed_at is None
    assert len(fake_judge.requests) == 3


@pytest.mark.integration
def test_out_of_range_scores_are_rejected(engine, open_debate, play_out, fake_judge) -> None:
    fake_judge.scores = {"alice": 120, "bob": 60}

    async def scenario():
        debate = await open_debate()
        await play_out(debate)
        return debate, await engine.aggregator.aggregate(debate.id)

    debate, result = asyncio.run(scenario())

    assert result.error == ErrorKind.JUDGING_UNAVAILABLE
    assert engine.debate_store.get_debate(debate.id).status == DebateStatus.COMPLETED
    assert engine.verdict_store.get_verdicts(debate.id) == []


@pytest.mark.integration
def test_small_judge_pool_reports_no_judges(engine, open_debate, play_out, fake_judge) -> None:
    engine.config.judging.judges_per_pass = 7

    async def scenario():
        debate = await open_debate()
        await play_out(debate)
        return debate, await engine.aggregator.aggregate(debate.id)

    debate, result = asyncio.run(scenario())

    assert result.error == ErrorKind.NO_JUDGES
    assert fake_judge.requests == []
    stored = engine.debate_store.get_debate(debate.id)
    assert stored.status == DebateStatus.COMPLETED
    assert stored.judging_claimed_at is None


@pytest.mark.integration
def test_group_debate_accumulates_scores(engine, fake_judge, ratings) -> None:
    fake_judge.scores = {"alice": 70, "bob": 55, "carol": 90}

    async def scenario():
        created = await engine.debates.create_challenge(
            CreateChallengeRequest(
                challenger_id="alice",
                topic="Homework should be abolished",
                challenge_type=ChallengeType.GROUP,
                invited_user_ids=["bob", "carol"],
                total_rounds=1,
            )
        )
        debate_id = created.value.id
        for user_id in ("bob", "carol"):
            await engine.debates.accept_challenge(debate_id, user_id)
        for user_id in ("carol", "alice", "bob"):
            result = await engine.debates.submit_statement(debate_id, user_id, "My view")
            assert result.ok, result.message
        await engine.drain_background_tasks()
        return debate_id

    debate_id = asyncio.run(scenario())

    stored = engine.debate_store.get_debate(debate_id)
    assert stored.status == DebateStatus.VERDICT_READY
    assert stored.winner_id is None
    participants = engine.debate_store.get_participants(debate_id)
    cumulative = {p.user_id: p.cumulative_score for p in participants}
    assert cumulative == {"alice": 210.0, "bob": 165.0, "carol": 270.0}
    assert ratings.applied == []


@pytest.mark.integration
def test_belt_moves_to_challenger_who_beats_holder(
    engine, open_debate, play_out, fake_judge
) -> None:
    engine.belts.create_belt("OTHER", "Open Champion", holder_id="bob")
    fake_judge.scores = {"alice": 85, "bob": 60}

    async def scenario():
        debate = await open_debate(belt_at_stake=True)
        await play_out(debate)
        return debate

    debate = asyncio.run(scenario())

    belt = engine.belts.get_belt("OTHER")
    assert belt.holder_id == "alice"
    assert belt.times_defended == 1
    history = engine.belts.get_history("OTHER")
    assert [(h.from_user_id, h.to_user_id, h.debate_id) for h in history] == [
        ("bob", "alice", debate.id)
    ]
    kinds = [n.type for n in engine.notification_sink.list_for_user("bob")]
    assert NotificationType.BELT_TRANSFERRED in kinds


@pytest.mark.integration
def test_holder_who_wins_defends_the_belt(engine, open_debate, play_out, fake_judge) -> None:
    engine.belts.create_belt("OTHER", "Open Champion", holder_id="alice")
    fake_judge.scores = {"alice": 85, "bob": 60}

    async def scenario():
        debate = await open_debate(belt_at_stake=True)
        await play_out(debate)

    asyncio.run(scenario())

    belt = engine.belts.get_belt("OTHER")
    assert belt.holder_id == "alice"
    assert belt.successful_defenses == 1
    assert engine.belts.get_history("OTHER") == []
