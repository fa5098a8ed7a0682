"""Engine configuration."""

from .settings import (
    AppConfig,
    AppealConfig,
    DebateRulesConfig,
    JudgeProfile,
    JudgingConfig,
    RatingConfig,
    SystemConfig,
    TournamentConfig,
    get_default_config,
    get_template_config,
)

__all__ = [
    "AppConfig",
    "AppealConfig",
    "DebateRulesConfig",
    "JudgeProfile",
    "JudgingConfig",
    "RatingConfig",
    "SystemConfig",
    "TournamentConfig",
    "get_default_config",
    "get_template_config",
]
