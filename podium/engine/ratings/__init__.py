"""Rating services."""

from .elo import EloRatingService, RatingService, UserRating, calculate_elo_change

__all__ = ["EloRatingService", "RatingService", "UserRating", "calculate_elo_change"]
