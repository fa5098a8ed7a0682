"""Engine assembly: every component wired to one SQLite database."""

import logging
import random

from .belts import BeltKeeper
from .config import AppConfig
from .database import DatabaseManager
from .debates.database import DebateStore
from .debates.manager import DebateManager
from .debates.rematch import RematchNegotiator
from .judges import JudgePool, JudgingService, OpenAIJudgingService
from .notifications import NotificationDispatcher, SQLiteNotificationSink
from .ratings import EloRatingService, RatingService
from .tournaments import (
    EliminationEngine,
    MatchGenerator,
    TournamentManager,
    TournamentStore,
    register_tournament_callbacks,
)
from .utils import BackgroundTasks
from .verdicts import AppealHandler, VerdictAggregator, VerdictStore

logger = logging.getLogger(__name__)


class DebateEngine:
    """Owns the stores and managers and connects their callbacks.

    Statement submissions that finish a debate hand it to the verdict
    aggregator in the background; committed verdicts flow on to tournaments.
    """

    def __init__(
        self,
        config: AppConfig,
        judging_service: JudgingService | None = None,
        rating_service: RatingService | None = None,
        db_path: str | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config
        self.database = DatabaseManager(db_path or config.system.db_path)
        self.tasks = BackgroundTasks()

        self.notifier = NotificationDispatcher()
        self.notification_sink = SQLiteNotificationSink(self.database)
        self.notifier.add_listener(self.notification_sink)

        self.debate_store = DebateStore(self.database)
        self.verdict_store = VerdictStore(self.database)
        self.tournament_store = TournamentStore(self.database)
        self.judge_pool = JudgePool(self.database)
        self.judge_pool.seed(config.judging.judges)
        self.belts = BeltKeeper(self.database)

        self.judging_service = judging_service or OpenAIJudgingService.from_config(
            config.judging
        )
        self.rating_service = rating_service or EloRatingService(
            self.database,
            k_factor=config.ratings.k_factor,
            initial_rating=config.ratings.initial_rating,
        )

        self.debates = DebateManager(
            self.debate_store, self.notifier, config.debate, self.tasks
        )
        self.rematches = RematchNegotiator(self.debate_store, self.notifier)
        self.aggregator = VerdictAggregator(
            self.debate_store,
            self.verdict_store,
            self.judge_pool,
            self.judging_service,
            self.rating_service,
            self.notifier,
            config.judging,
            belts=self.belts,
            rng=rng,
        )
        self.debates.set_completion_handler(self.aggregator.aggregate)
        self.appeals = AppealHandler(
            self.debate_store,
            self.verdict_store,
            self.aggregator,
            self.notifier,
            config.appeals,
            self.tasks,
        )

        self.match_generator = MatchGenerator(
            self.tournament_store,
            self.debate_store,
            self.debates,
            self.notifier,
            config.tournaments,
        )
        self.elimination = EliminationEngine(
            self.tournament_store,
            self.debate_store,
            self.verdict_store,
            self.notifier,
            config.tournaments,
        )
        self.tournaments = TournamentManager(
            self.tournament_store,
            self.match_generator,
            self.elimination,
            self.debates,
            self.rating_service,
            self.notifier,
            config.tournaments,
        )
        register_tournament_callbacks(self.aggregator, self.tournaments)
        logger.info(f"Debate engine ready on {self.database.db_path}")

    async def drain_background_tasks(self) -> None:
        """Wait for background judging (and anything it spawns) to finish."""
        await self.tasks.drain()
