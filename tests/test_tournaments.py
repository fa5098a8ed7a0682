"""Tests for tournament registration, pairing, elimination and progression."""

import asyncio

import pytest

from podium.engine.debates import DebateStatus
from podium.engine.errors import ErrorKind
from podium.engine.notifications import NotificationType
from podium.engine.tournaments import (
    MatchStatus,
    RoundStatus,
    TournamentCreateRequest,
    TournamentFormat,
    TournamentParticipant,
    TournamentParticipantStatus,
    TournamentStatus,
    bracket_total_rounds,
    elimination_count,
    pair_first_round,
    pair_winners,
    projected_rounds,
    select_eliminated,
)


def standing(user_id: str, seed: int, score: float) -> TournamentParticipant:
    return TournamentParticipant(
        tournament_id=1,
        user_id=user_id,
        seed=seed,
        status=TournamentParticipantStatus.ACTIVE,
        cumulative_score=score,
    )


# =============================================================================
# PAIRING AND ELIMINATION RULES
# =============================================================================


@pytest.mark.unit
@pytest.mark.parametrize(
    "active, fraction, expected",
    [(1, 0.25, 0), (2, 0.25, 1), (4, 0.25, 1), (7, 0.25, 1), (8, 0.25, 2), (2, 0.5, 1)],
)
def test_elimination_count(active: int, fraction: float, expected: int) -> None:
    assert elimination_count(active, fraction) == expected


@pytest.mark.unit
def test_lowest_cumulative_score_is_cut() -> None:
    field = [standing("a", 1, 10), standing("b", 2, 20), standing("c", 3, 20), standing("d", 4, 30)]

    assert [p.user_id for p in select_eliminated(field, 0.25)] == ["a"]


@pytest.mark.unit
def test_tie_at_cut_line_eliminates_everyone_tied() -> None:
    field = [standing("a", 1, 30), standing("b", 2, 20), standing("c", 3, 10), standing("d", 4, 10)]

    assert {p.user_id for p in select_eliminated(field, 0.25)} == {"c", "d"}


@pytest.mark.unit
def test_tie_across_whole_field_cuts_worst_seed() -> None:
    field = [standing(uid, seed, 15) for seed, uid in enumerate("abcd", start=1)]

    assert [p.user_id for p in select_eliminated(field, 0.25)] == ["d"]


@pytest.mark.unit
def test_projected_rounds() -> None:
    assert projected_rounds(7, 0.25) == 6
    assert projected_rounds(16, 0.25) == 9
    assert projected_rounds(3, 0.25, head_to_head_final=True) == 2
    assert projected_rounds(1, 0.25) == 0


@pytest.mark.unit
def test_bracket_pairings() -> None:
    assert bracket_total_rounds(2) == 1
    assert bracket_total_rounds(5) == 3
    assert bracket_total_rounds(8) == 3
    assert pair_first_round(["s1", "s2", "s3", "s4"]) == [("s1", "s4"), ("s2", "s3")]
    assert pair_first_round(["s1", "s2", "s3", "s4", "s5"]) == [
        ("s1", None),
        ("s2", "s5"),
        ("s3", "s4"),
    ]
    assert pair_winners(["a", "b", "c"], {"a": 3, "b": 1, "c": 2}) == [("b", None), ("a", "c")]


# =============================================================================
# TOURNAMENT LIFECYCLE
# =============================================================================


async def create_tournament(engine, users, **overrides):
    request = dict(name="Spring Open", topic="Space exploration is worth the cost")
    request.update(overrides)
    created = await engine.tournaments.create_tournament(TournamentCreateRequest(**request))
    assert created.ok, created.message
    for user_id in users:
        registered = await engine.tournaments.register_participant(created.value.id, user_id)
        assert registered.ok, registered.message
    return created.value.id


def round_debate(engine, tournament_id: int, round_number: int):
    for match in engine.tournament_store.get_matches(tournament_id, round_number):
        if match.debate_id:
            return engine.debate_store.get_debate(match.debate_id)
    return None


@pytest.mark.integration
def test_registration_rules(engine) -> None:
    async def scenario():
        tid = await create_tournament(engine, ["ann", "ben"], max_participants=2)
        full = await engine.tournaments.register_participant(tid, "cat")
        duplicate = await engine.tournaments.register_participant(tid, "ann")
        closed_id = await create_tournament(engine, [], open_registration=False)
        closed = await engine.tournaments.register_participant(closed_id, "ann")
        opened = await engine.tournaments.open_registration(closed_id)
        joined = await engine.tournaments.register_participant(closed_id, "ann")
        lonely = await engine.tournaments.start_tournament(closed_id)
        missing = await engine.tournaments.register_participant(999, "ann")
        return full, duplicate, closed, opened, joined, lonely, missing

    full, duplicate, closed, opened, joined, lonely, missing = asyncio.run(scenario())

    assert full.error == ErrorKind.TOURNAMENT_FULL
    assert duplicate.error == ErrorKind.ALREADY_REGISTERED
    assert closed.error == ErrorKind.INVALID_STATUS
    assert opened.value.status == TournamentStatus.REGISTRATION_OPEN
    assert joined.ok
    assert lonely.error == ErrorKind.NOT_ENOUGH_PARTICIPANTS
    assert missing.error == ErrorKind.NOT_FOUND


@pytest.mark.integration
def test_bracket_with_bye_runs_to_champion(engine, ratings, fake_judge, play_out) -> None:
    ratings.ratings = {"ann": 1500, "ben": 1400, "cat": 1300}
    fake_judge.scores = {"ann": 90, "ben": 60, "cat": 80}

    async def scenario():
        tid = await create_tournament(engine, ["cat", "ben", "ann"], match_rounds=1)
        started = await engine.tournaments.start_tournament(tid)
        early = await engine.tournaments.advance_tournament_round(tid)
        await play_out(started.value.debates[0])
        await play_out(round_debate(engine, tid, 2))
        return tid, started, early

    tid, started, early = asyncio.run(scenario())

    assert early.error == ErrorKind.ROUND_NOT_COMPLETE
    first_round = started.value.debates
    assert [(d.challenger_id, d.opponent_id) for d in first_round] == [("ben", "cat")]

    tournament = engine.tournament_store.get_tournament(tid)
    assert tournament.status == TournamentStatus.COMPLETED
    assert tournament.winner_user_id == "ann"
    assert tournament.total_rounds == 2

    bracket = engine.tournaments.get_bracket_view(tid).value
    seeds = {p.user_id: p.seed for p in bracket.participants}
    assert seeds == {"ann": 1, "ben": 2, "cat": 3}
    round_one = [m for m in bracket.matches if m.round_number == 1]
    assert [(m.status, m.winner_user_id) for m in round_one] == [
        (MatchStatus.BYE, "ann"),
        (MatchStatus.COMPLETED, "cat"),
    ]
    assert [r.status for r in bracket.rounds] == [RoundStatus.COMPLETED] * 2
    eliminated = {p.user_id: p.elimination_round for p in bracket.participants}
    assert eliminated == {"ann": None, "ben": 1, "cat": 2}
    assert engine.tournaments.remaining_participants(tid)[0].user_id == "ann"

    kinds = [n.type for n in engine.notification_sink.list_for_user("ann")]
    assert NotificationType.TOURNAMENT_WON in kinds


@pytest.mark.integration
def test_tied_bracket_match_goes_to_better_seed(engine, ratings, play_out) -> None:
    ratings.ratings = {"dan": 1250, "eve": 1300}

    async def scenario():
        tid = await create_tournament(engine, ["dan", "eve"], match_rounds=1)
        started = await engine.tournaments.start_tournament(tid)
        match_debate = started.value.debates[0]
        await play_out(match_debate)
        match_id = match_debate.tournament_match_id
        replay = await engine.tournaments.record_match_result(match_id, match_debate, "dan")
        return tid, replay

    tid, replay = asyncio.run(scenario())

    tournament = engine.tournament_store.get_tournament(tid)
    assert tournament.winner_user_id == "eve"
    assert replay.error == ErrorKind.ALREADY_PROCESSED


@pytest.mark.integration
def test_rounds_are_generated_once(engine) -> None:
    async def scenario():
        tid = await create_tournament(engine, ["ann", "ben", "cat", "dan"])
        await engine.tournaments.start_tournament(tid)
        again = await engine.match_generator.generate_next_round(tid, 1)
        skipped = await engine.match_generator.generate_next_round(tid, 2)
        restart = await engine.tournaments.start_tournament(tid)
        return tid, again, skipped, restart

    tid, again, skipped, restart = asyncio.run(scenario())

    assert again.error == ErrorKind.ALREADY_PROCESSED
    assert skipped.error == ErrorKind.ROUND_NOT_COMPLETE
    assert restart.error == ErrorKind.INVALID_STATUS
    assert len(engine.tournament_store.get_matches(tid, 1)) == 2


@pytest.mark.integration
def test_cancelling_tournament_cancels_open_debates(engine) -> None:
    async def scenario():
        tid = await create_tournament(engine, ["ann", "ben"])
        started = await engine.tournaments.start_tournament(tid)
        cancelled = await engine.tournaments.cancel_tournament(tid)
        again = await engine.tournaments.cancel_tournament(tid)
        return started, cancelled, again

    started, cancelled, again = asyncio.run(scenario())

    assert cancelled.value.status == TournamentStatus.CANCELLED
    assert again.error == ErrorKind.INVALID_STATUS
    debate = engine.debate_store.get_debate(started.value.debates[0].id)
    assert debate.status == DebateStatus.CANCELLED


@pytest.mark.integration
def test_king_of_the_hill_runs_until_one_remains(engine, fake_judge) -> None:
    players = [f"p{n}" for n in range(1, 8)]
    fake_judge.scores = {uid: 100 - 10 * n for n, uid in enumerate(players, start=1)}

    async def play_round(tid: int, round_number: int) -> None:
        debate = round_debate(engine, tid, round_number)
        for participant in engine.debate_store.get_participants(debate.id):
            if participant.status.value == "ACTIVE":
                result = await engine.debates.submit_statement(
                    debate.id, participant.user_id, "The stars are our future"
                )
                assert result.ok, result.message
        await engine.drain_background_tasks()

    async def scenario():
        tid = await create_tournament(
            engine, players, format=TournamentFormat.KING_OF_THE_HILL
        )
        started = await engine.tournaments.start_tournament(tid)
        for round_number in range(1, 10):
            tournament = engine.tournament_store.get_tournament(tid)
            if tournament.status != TournamentStatus.IN_PROGRESS:
                break
            await play_round(tid, round_number)
        return tid, started

    tid, started = asyncio.run(scenario())

    first_round = started.value.debates
    assert len(first_round) == 1
    assert len(engine.debate_store.get_participants(first_round[0].id)) == 7

    tournament = engine.tournament_store.get_tournament(tid)
    assert tournament.status == TournamentStatus.COMPLETED
    assert tournament.winner_user_id == "p1"
    assert tournament.current_round == 6
    assert tournament.total_rounds == 6

    participants = {p.user_id: p for p in engine.tournament_store.get_participants(tid)}
    assert {uid: p.elimination_round for uid, p in participants.items()} == {
        "p1": None,
        "p2": 6,
        "p3": 5,
        "p4": 4,
        "p5": 3,
        "p6": 2,
        "p7": 1,
    }
    assert participants["p7"].elimination_reason.startswith("Ranked 7 of 7")
    assert participants["p1"].cumulative_score == 6 * 3 * 90

    first_debate = engine.debate_store.get_participants(first_round[0].id)
    statuses = {p.user_id: p.status.value for p in first_debate}
    assert statuses["p7"] == "ELIMINATED"
    assert statuses["p1"] == "ACTIVE"

    kinds = [n.type for n in engine.notification_sink.list_for_user("p7")]
    assert NotificationType.TOURNAMENT_ELIMINATED in kinds
