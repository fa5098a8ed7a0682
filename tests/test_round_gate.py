"""Tests for turn legality and round completion detection."""

from datetime import datetime, timedelta, timezone

import pytest

from podium.engine.debates import (
    ChallengeType,
    Debate,
    DebateKind,
    DebateParticipant,
    DebateStatus,
    ParticipantStatus,
    RoundOutcome,
    Statement,
    can_submit,
    check_submission,
    detect_round_completion,
)
from podium.engine.errors import ErrorKind

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_debate(**overrides) -> Debate:
    data = dict(
        id="debate-1",
        topic="Remote work improves productivity",
        status=DebateStatus.ACTIVE,
        challenge_type=ChallengeType.ONE_ON_ONE,
        kind=DebateKind.TWO_PARTY,
        current_round=1,
        total_rounds=3,
        round_duration_hours=24.0,
        challenger_id="alice",
        opponent_id="bob",
        created_at=NOW,
    )
    data.update(overrides)
    return Debate(**data)


def make_group(statuses: dict[str, ParticipantStatus], **overrides) -> tuple:
    debate = make_debate(
        kind=DebateKind.GROUP,
        challenge_type=ChallengeType.GROUP,
        opponent_id=None,
        **overrides,
    )
    participants = [
        DebateParticipant(debate_id=debate.id, user_id=user_id, status=status)
        for user_id, status in statuses.items()
    ]
    return debate, participants


def statement(author: str, round_number: int = 1) -> Statement:
    return Statement(
        id=f"{author}-{round_number}",
        debate_id="debate-1",
        author_id=author,
        round=round_number,
        content=f"{author} argues",
        created_at=NOW,
    )


@pytest.mark.unit
def test_either_side_may_open_an_empty_round() -> None:
    debate = make_debate()

    assert can_submit(debate, "alice")
    assert can_submit(debate, "bob")


@pytest.mark.unit
def test_second_statement_must_come_from_the_other_side() -> None:
    debate = make_debate()
    statements = [statement("alice")]

    assert can_submit(debate, "bob", statements=statements)
    decision = check_submission(debate, "alice", [], statements)
    assert not decision
    assert decision.error == ErrorKind.ALREADY_SUBMITTED


@pytest.mark.unit
def test_statements_from_earlier_rounds_do_not_block() -> None:
    debate = make_debate(current_round=2)
    statements = [statement("alice", 1), statement("bob", 1)]

    assert can_submit(debate, "alice", statements=statements)


@pytest.mark.unit
@pytest.mark.parametrize(
    "status",
    [
        DebateStatus.WAITING,
        DebateStatus.COMPLETED,
        DebateStatus.VERDICT_READY,
        DebateStatus.CANCELLED,
    ],
)
def test_only_active_debates_accept_statements(status: DebateStatus) -> None:
    decision = check_submission(make_debate(status=status), "alice", [], [])

    assert decision.error == ErrorKind.INVALID_STATUS
    assert decision.message == "Debate is not active"


@pytest.mark.unit
def test_outsiders_are_rejected() -> None:
    decision = check_submission(make_debate(), "mallory", [], [])

    assert decision.error == ErrorKind.NOT_PARTICIPANT
    assert decision.message == "You are not a participant in this debate"


@pytest.mark.unit
def test_group_debates_take_parallel_turns() -> None:
    debate, participants = make_group(
        {
            "alice": ParticipantStatus.ACCEPTED,
            "bob": ParticipantStatus.ACTIVE,
            "carol": ParticipantStatus.ACTIVE,
        }
    )
    statements = [statement("carol")]

    assert can_submit(debate, "alice", participants, statements)
    assert can_submit(debate, "bob", participants, statements)
    assert not can_submit(debate, "carol", participants, statements)


@pytest.mark.unit
def test_eliminated_and_invited_group_members_cannot_submit() -> None:
    debate, participants = make_group(
        {
            "alice": ParticipantStatus.ACTIVE,
            "bob": ParticipantStatus.ELIMINATED,
            "carol": ParticipantStatus.INVITED,
        }
    )

    assert check_submission(debate, "bob", participants, []).error == ErrorKind.NOT_PARTICIPANT
    assert not can_submit(debate, "carol", participants, [])


@pytest.mark.unit
def test_round_with_one_statement_is_pending() -> None:
    debate = make_debate()

    progress = detect_round_completion(debate, [], [statement("alice")], NOW)

    assert progress.outcome == RoundOutcome.PENDING
    assert progress.current_round == 1


@pytest.mark.unit
def test_complete_round_advances_and_sets_deadline() -> None:
    debate = make_debate(round_duration_hours=12.0)

    progress = detect_round_completion(
        debate, [], [statement("alice"), statement("bob")], NOW
    )

    assert progress.outcome == RoundOutcome.ADVANCED
    assert progress.current_round == 2
    assert progress.round_deadline == NOW + timedelta(hours=12)


@pytest.mark.unit
def test_final_round_completes_the_debate() -> None:
    debate = make_debate(current_round=3)

    progress = detect_round_completion(
        debate, [], [statement("alice", 3), statement("bob", 3)], NOW
    )

    assert progress.outcome == RoundOutcome.COMPLETED
    assert progress.round_deadline is None


@pytest.mark.unit
def test_group_round_waits_for_every_eligible_participant() -> None:
    debate, participants = make_group(
        {
            "alice": ParticipantStatus.ACTIVE,
            "bob": ParticipantStatus.ACTIVE,
            "carol": ParticipantStatus.ELIMINATED,
        },
        total_rounds=1,
    )

    pending = detect_round_completion(debate, participants, [statement("alice")], NOW)
    done = detect_round_completion(
        debate, participants, [statement("alice"), statement("bob")], NOW
    )

    assert pending.outcome == RoundOutcome.PENDING
    assert done.outcome == RoundOutcome.COMPLETED


@pytest.mark.unit
def test_group_without_eligible_participants_never_completes() -> None:
    debate, participants = make_group({"alice": ParticipantStatus.ELIMINATED})

    progress = detect_round_completion(debate, participants, [], NOW)

    assert progress.outcome == RoundOutcome.PENDING
