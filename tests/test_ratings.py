"""Tests for the SQLite-backed Elo rating service."""

import pytest

from podium.engine.database import DatabaseManager
from podium.engine.ratings import EloRatingService
from podium.engine.ratings.elo import calculate_elo_change


@pytest.fixture
def elo(tmp_path) -> EloRatingService:
    return EloRatingService(DatabaseManager(tmp_path / "ratings.db"))


@pytest.mark.unit
def test_equal_ratings_move_by_half_k() -> None:
    assert calculate_elo_change(1200, 1200, 1.0) == 16
    assert calculate_elo_change(1200, 1200, 0.0) == -16
    assert calculate_elo_change(1600, 1200, 1.0) < 16


@pytest.mark.integration
def test_decided_outcome_updates_both_users(elo) -> None:
    changes = elo.apply_outcome("alice", "bob")

    assert changes == {"alice": 16, "bob": -16}
    alice = elo.get_user_rating("alice")
    assert alice.rating == 1216
    assert alice.debates_won == 1
    assert elo.get_user_rating("bob").debates_lost == 1


@pytest.mark.integration
def test_tie_only_counts(elo) -> None:
    assert elo.apply_outcome("alice", "bob", is_tie=True) == {}

    assert elo.get_rating("alice") == 1200
    assert elo.get_user_rating("bob").debates_tied == 1


@pytest.mark.integration
def test_revert_restores_ratings(elo) -> None:
    changes = elo.apply_outcome("alice", "bob")

    elo.revert_outcome("alice", "bob", changes)

    alice = elo.get_user_rating("alice")
    assert alice.rating == 1200
    assert alice.debates_won == 0
    assert elo.get_rating("bob") == 1200


@pytest.mark.unit
def test_unknown_user_has_initial_rating(elo) -> None:
    assert elo.get_rating("newcomer") == 1200
