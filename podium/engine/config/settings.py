"""Configuration settings and data models."""

import json
import os
import shutil
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator


class JudgeProfile(BaseModel):
    """A judge persona seeded into the judge pool."""

    name: str = Field(..., description="Display name of the judge")
    personality: str = Field(default="balanced", description="Judging style")
    system_prompt: str = Field(
        default="", description="Extra instructions appended to the judge prompt"
    )


class DebateRulesConfig(BaseModel):
    """Rules applied to every debate."""

    default_total_rounds: int = Field(default=3, description="Argument rounds per debate")
    max_total_rounds: int = Field(default=10, description="Upper bound for argument rounds")
    round_duration_hours: float = Field(
        default=24.0, description="Hours allowed per round (advisory deadline)"
    )
    max_statement_length: int = Field(
        default=10000, description="Maximum characters per statement"
    )

    @field_validator("default_total_rounds", "max_total_rounds")
    @classmethod
    def validate_rounds(cls, v):
        if v < 1:
            raise ValueError("Round counts must be positive")
        return v


class AppealConfig(BaseModel):
    """Appeal window and justification requirements."""

    window_hours: float = Field(default=48.0, description="Hours after the verdict")
    min_reason_length: int = Field(default=50, description="Minimum reason length")
    max_reason_length: int = Field(default=1000, description="Maximum reason length")


class JudgingConfig(BaseModel):
    """Judging service and judge pool configuration."""

    judges_per_pass: int = Field(default=3, description="Judges used per verdict pass")
    claim_timeout_seconds: int = Field(
        default=600, description="Seconds before an unfinished judging claim is stale"
    )
    base_url: str = Field(
        default="https://api.deepseek.com/v1",
        description="OpenAI-compatible endpoint for the judging model",
    )
    api_key: str | None = Field(
        default=None,
        description="API key (can also be set via PODIUM_JUDGE_API_KEY env var)",
    )
    model: str = Field(default="deepseek-chat", description="Judging model name")
    temperature: float = Field(default=0.3, description="Sampling temperature")
    max_tokens: int = Field(default=1500, description="Maximum tokens per evaluation")
    timeout: float = Field(default=60.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Retries on transient API errors")
    retry_base_delay: float = Field(
        default=1.0, description="Initial backoff delay in seconds"
    )
    judges: list[JudgeProfile] = Field(
        default_factory=list, description="Judges seeded into an empty pool"
    )

    @field_validator("judges_per_pass")
    @classmethod
    def validate_judges_per_pass(cls, v):
        if v < 1:
            raise ValueError("judges_per_pass must be at least 1")
        return v

    def resolve_api_key(self) -> str | None:
        return self.api_key or os.getenv("PODIUM_JUDGE_API_KEY")


class RatingConfig(BaseModel):
    """Elo rating parameters."""

    k_factor: int = Field(default=32, description="Elo K-factor")
    initial_rating: int = Field(default=1200, description="Rating for new users")


class TournamentConfig(BaseModel):
    """Tournament progression parameters."""

    elimination_fraction: float = Field(
        default=0.25, description="Share of the field cut after each KOTH round"
    )
    match_rounds: int = Field(default=3, description="Argument rounds per bracket match")
    final_rounds: int = Field(default=3, description="Argument rounds in a KOTH final")
    koth_head_to_head_final: bool = Field(
        default=False,
        description="Play the last two KOTH participants in a two-party final",
    )
    round_duration_hours: float = Field(
        default=24.0, description="Hours per tournament debate round"
    )
    category: str = Field(default="OTHER", description="Category of tournament debates")

    @field_validator("elimination_fraction")
    @classmethod
    def validate_fraction(cls, v):
        if not 0 < v < 1:
            raise ValueError("elimination_fraction must be between 0 and 1")
        return v


class SystemConfig(BaseModel):
    """System-wide configuration."""

    db_path: str = Field(default="podium.db", description="SQLite database file")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


class AppConfig(BaseModel):
    """Complete application configuration."""

    debate: DebateRulesConfig = Field(default_factory=DebateRulesConfig)
    appeals: AppealConfig = Field(default_factory=AppealConfig)
    judging: JudgingConfig = Field(default_factory=JudgingConfig)
    ratings: RatingConfig = Field(default_factory=RatingConfig)
    tournaments: TournamentConfig = Field(default_factory=TournamentConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        required_sections = ["debate", "judging", "system"]
        missing_sections = [
            section for section in required_sections if section not in data
        ]
        if missing_sections:
            raise ValueError(f"Missing required config sections: {missing_sections}")

        return cls(**data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_unset=True),
                f,
                default_flow_style=False,
                indent=2,
            )


def get_default_config() -> AppConfig:
    """Load default configuration from podium_config.json, creating it if needed."""
    config_path = Path("podium_config.json")
    if not config_path.exists():
        example_path = Path("podium_config.example.json")
        if example_path.exists():
            shutil.copy2(example_path, config_path)
        else:
            template_config = get_template_config()
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(template_config.model_dump(), f, indent=2)
    return AppConfig.load_from_file(config_path)


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        debate=DebateRulesConfig(
            default_total_rounds=3,
            round_duration_hours=24.0,
            max_statement_length=10000,
        ),
        judging=JudgingConfig(
            judges_per_pass=3,
            base_url="https://api.deepseek.com/v1",
            api_key=None,  # Set here or use PODIUM_JUDGE_API_KEY
            model="deepseek-chat",
            judges=[
                JudgeProfile(
                    name="The Logician",
                    personality="analytical",
                    system_prompt="Reward tight reasoning and penalise fallacies.",
                ),
                JudgeProfile(
                    name="The Empiricist",
                    personality="evidence-driven",
                    system_prompt="Reward concrete evidence and sourced claims.",
                ),
                JudgeProfile(
                    name="The Rhetorician",
                    personality="persuasive",
                    system_prompt="Reward clarity, structure and persuasive impact.",
                ),
                JudgeProfile(
                    name="The Skeptic",
                    personality="critical",
                    system_prompt="Reward rebuttals that expose weak assumptions.",
                ),
                JudgeProfile(
                    name="The Pragmatist",
                    personality="practical",
                    system_prompt="Reward arguments grounded in real-world consequences.",
                ),
                JudgeProfile(
                    name="The Historian",
                    personality="contextual",
                    system_prompt="Reward historical and contextual awareness.",
                ),
            ],
        ),
        system=SystemConfig(db_path="podium.db", log_level="INFO"),
    )
