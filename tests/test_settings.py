"""Tests for configuration loading and validation."""

import json

import pytest
from pydantic import ValidationError

from podium.engine.config import AppConfig, JudgingConfig, TournamentConfig, get_template_config
from podium.engine.tournaments import TournamentCreateRequest


def test_defaults() -> None:
    config = AppConfig()

    assert config.debate.default_total_rounds == 3
    assert config.debate.max_statement_length == 10000
    assert config.appeals.window_hours == 48.0
    assert config.appeals.min_reason_length == 50
    assert config.judging.judges_per_pass == 3
    assert config.tournaments.elimination_fraction == 0.25
    assert config.tournaments.koth_head_to_head_final is False


def test_load_from_file(tmp_path) -> None:
    path = tmp_path / "podium_config.json"
    path.write_text(
        json.dumps(
            {
                "debate": {"default_total_rounds": 5},
                "judging": {"judges_per_pass": 1, "judges": [{"name": "Solo"}]},
                "system": {"db_path": "custom.db", "log_level": "DEBUG"},
            }
        ),
        encoding="utf-8",
    )

    config = AppConfig.load_from_file(path)

    assert config.debate.default_total_rounds == 5
    assert [j.name for j in config.judging.judges] == ["Solo"]
    assert config.system.db_path == "custom.db"
    assert config.tournaments.match_rounds == 3


def test_missing_sections_are_rejected(tmp_path) -> None:
    path = tmp_path / "podium_config.json"
    path.write_text(json.dumps({"debate": {}}), encoding="utf-8")

    with pytest.raises(ValueError, match="Missing required config sections"):
        AppConfig.load_from_file(path)

    with pytest.raises(FileNotFoundError):
        AppConfig.load_from_file(tmp_path / "absent.json")


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        TournamentConfig(elimination_fraction=1.5)
    with pytest.raises(ValidationError):
        JudgingConfig(judges_per_pass=0)
    with pytest.raises(ValidationError):
        TournamentCreateRequest(name="Tiny", topic="Anything", max_participants=1)


def test_api_key_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PODIUM_JUDGE_API_KEY", "from-env")

    assert JudgingConfig().resolve_api_key() == "from-env"
    assert JudgingConfig(api_key="explicit").resolve_api_key() == "explicit"


def test_template_round_trips_through_yaml(tmp_path) -> None:
    path = tmp_path / "out" / "config.yaml"

    get_template_config().save_to_file(path)

    text = path.read_text(encoding="utf-8")
    assert "The Logician" in text
    assert "judges_per_pass: 3" in text
