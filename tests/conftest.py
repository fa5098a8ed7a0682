"""Pytest configuration and shared fixtures.

Every test gets its own SQLite file under ``tmp_path`` and an engine whose
judging and rating services are in-memory fakes.
"""

import random

import pytest

from podium.engine.config import AppConfig, JudgeProfile, JudgingConfig
from podium.engine.core import DebateEngine
from podium.engine.debates.models import ChallengeType, CreateChallengeRequest, Debate
from podium.engine.judges import JudgeScore, JudgingRequest, JudgingService
from podium.engine.ratings import RatingService


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class FakeJudgingService(JudgingService):
    """Every judge gives each user the score in ``scores`` (50 when unset).

    ``per_judge`` overrides the table for individual judge ids, and
    ``fail_with`` makes the next calls raise.
    """

    def __init__(self, scores: dict[str, float] | None = None):
        self.scores: dict[str, float] = dict(scores or {})
        self.per_judge: dict[int, dict[str, float]] = {}
        self.fail_with: Exception | None = None
        self.requests: list[JudgingRequest] = []

    async def judge(self, request: JudgingRequest) -> list[JudgeScore]:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        results = []
        for judge in request.judges:
            table = self.per_judge.get(judge.id, self.scores)
            results.append(
                JudgeScore(
                    judge_id=judge.id,
                    scores={uid: table.get(uid, 50.0) for uid in request.participant_ids},
                    reasoning=f"{judge.name} scored the debate",
                )
            )
        return results


class RecordingRatingService(RatingService):
    """Fixed +/-16 deltas; remembers every call."""

    def __init__(self, ratings: dict[str, int] | None = None):
        self.ratings: dict[str, int] = dict(ratings or {})
        self.applied: list[tuple[str, str, bool]] = []
        self.reverted: list[tuple[str, str, dict[str, int]]] = []

    def apply_outcome(self, winner_id, loser_id, is_tie=False):
        self.applied.append((winner_id, loser_id, is_tie))
        if is_tie:
            return {}
        self.ratings[winner_id] = self.get_rating(winner_id) + 16
        self.ratings[loser_id] = self.get_rating(loser_id) - 16
        return {winner_id: 16, loser_id: -16}

    def revert_outcome(self, winner_id, loser_id, changes):
        self.reverted.append((winner_id, loser_id, dict(changes)))
        for user_id, delta in changes.items():
            self.ratings[user_id] = self.get_rating(user_id) - delta

    def get_rating(self, user_id):
        return self.ratings.get(user_id, 1200)


# =============================================================================
# SHARED FIXTURES - Available to all test modules
# =============================================================================


@pytest.fixture
def app_config() -> AppConfig:
    """Six judges, three per pass, so an appeal can use a fresh panel."""
    return AppConfig(
        judging=JudgingConfig(
            judges_per_pass=3,
            judges=[JudgeProfile(name=f"Judge {n}") for n in range(1, 7)],
        )
    )


@pytest.fixture
def fake_judge() -> FakeJudgingService:
    return FakeJudgingService()


@pytest.fixture
def ratings() -> RecordingRatingService:
    return RecordingRatingService()


@pytest.fixture
def engine(tmp_path, app_config, fake_judge, ratings) -> DebateEngine:
    """Engine on a fresh database file."""
    return DebateEngine(
        app_config,
        judging_service=fake_judge,
        rating_service=ratings,
        db_path=str(tmp_path / "podium.db"),
        rng=random.Random(7),
    )


@pytest.fixture
def open_debate(engine):
    """Coroutine creating a challenge and having the opponent accept it."""

    async def _open(
        challenger: str = "alice",
        opponent: str = "bob",
        total_rounds: int = 1,
        **kwargs,
    ) -> Debate:
        created = await engine.debates.create_challenge(
            CreateChallengeRequest(
                challenger_id=challenger,
                topic="Cities should ban private cars from their centres",
                challenge_type=ChallengeType.ONE_ON_ONE,
                total_rounds=total_rounds,
                **kwargs,
            )
        )
        assert created.ok, created.message
        accepted = await engine.debates.accept_challenge(created.value.id, opponent)
        assert accepted.ok, accepted.message
        return accepted.value

    return _open


@pytest.fixture
def play_out(engine):
    """Coroutine submitting every remaining statement, then waiting for judging."""

    async def _play(debate: Debate) -> None:
        for round_number in range(debate.current_round, debate.total_rounds + 1):
            for user_id in (debate.challenger_id, debate.opponent_id):
                result = await engine.debates.submit_statement(
                    debate.id, user_id, f"{user_id} makes the case in round {round_number}"
                )
                assert result.ok, result.message
        await engine.drain_background_tasks()

    return _play


# =============================================================================
# PYTEST CONFIGURATION HOOKS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
