"""
GamificationEngine - engine context object

Composes the progression calculator, multiplier resolver, XP engine,
achievement engine, challenge manager and streak tracker around one shared
event emitter. The host constructs one instance and owns its lifetime;
nothing here is a module-level singleton.

Data flow for one activity:
    calculate XP -> xp:gain (+ level:up) -> evaluate achievements
    -> record challenge progress
"""

import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from devxp import events
from devxp.config import EngineSettings, load_settings, validate_config
from devxp.events import EventEmitter, EventHandler
from devxp.gamification.achievement_system import AchievementEngine
from devxp.gamification.challenges import ChallengeManager
from devxp.gamification.multipliers import MultiplierResolver
from devxp.gamification.progression import ProgressionCalculator
from devxp.gamification.streak_system import StreakTracker
from devxp.gamification.xp_system import XPCalculationEngine
from devxp.models.achievement import AchievementContext, AchievementDefinition, AchievementNotification
from devxp.models.activity import ActivityOccurrence
from devxp.models.challenge import Challenge, ChallengeKind
from devxp.models.xp import Multiplier, XPComputationResult, XPEvent
from devxp.observability import metrics

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class ActivityOutcome(BaseModel):
    """Everything one processed activity produced"""
    xp: XPComputationResult
    event: XPEvent
    achievements_unlocked: List[AchievementNotification] = Field(default_factory=list)
    challenges_completed: List[Challenge] = Field(default_factory=list)
    completion_bonus_xp: int = 0  # daily/weekly all-complete bonuses earned by this activity


class GamificationEngine:
    """
    Engine context object for the developer gamification core.

    Responsibilities:
    - XP calculation and level-up prediction
    - Achievement evaluation and notifications
    - Challenge progress and completion bonuses
    - Streak milestones and per-user multipliers
    - Snapshot/restore of all per-user state
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        catalog: Optional[Mapping[str, AchievementDefinition]] = None,
        rng: Optional[random.Random] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        self.settings = settings or EngineSettings()
        validate_config(self.settings)

        self.emitter = emitter or EventEmitter()
        self.progression = ProgressionCalculator(self.settings.progression)
        self.multipliers = MultiplierResolver(self.settings.multiplier_caps, self.settings.streak)
        self.xp = XPCalculationEngine(self.settings, self.progression, self.multipliers)
        self.achievements = AchievementEngine(
            catalog=catalog,
            emitter=self.emitter,
            notification_capacity=self.settings.notification_capacity,
        )
        self.challenges = ChallengeManager(self.settings.challenges, self.emitter, rng)
        self.streaks = StreakTracker(self.settings.streak, self.emitter)
        logger.debug("GamificationEngine initialized")

    @classmethod
    def from_env(cls, **kwargs) -> "GamificationEngine":
        """Engine configured from DEVXP_* environment variables"""
        return cls(settings=load_settings(), **kwargs)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_type: str, handler: EventHandler, once: bool = False) -> None:
        self.emitter.on(event_type, handler, once=once)

    def off(self, event_type: str, handler: EventHandler) -> None:
        self.emitter.off(event_type, handler)

    # ------------------------------------------------------------------
    # Activity processing
    # ------------------------------------------------------------------

    def process_activity(
        self,
        occurrence: ActivityOccurrence,
        achievement_context: Optional[AchievementContext] = None,
    ) -> ActivityOutcome:
        """
        Run the full pipeline for one activity occurrence

        Args:
            occurrence: Activity, user snapshot and bonus context
            achievement_context: Counters for achievement evaluation; skipped when None

        Returns:
            ActivityOutcome with the XP result, XP event, unlocks and challenge completions

        Raises:
            ConfigurationError: If a custom formula or achievement predicate fails
        """
        user_id = occurrence.user.user_id
        activity = occurrence.activity_key
        moment = occurrence.timestamp

        result = self.xp.calculate(occurrence)
        xp_event = self.xp.build_event(occurrence, result)

        metrics.xp_awarded_total.labels(activity_type=activity).inc(result.final_xp)
        logger.info(
            f"Awarded {result.final_xp} XP to user {user_id} for {activity} "
            f"(x{result.total_multiplier:.2f})"
        )
        self.emitter.emit(events.XP_GAIN, {
            "user_id": user_id,
            "activity_type": activity,
            "xp": result.final_xp,
            "base_xp": result.base_xp,
            "total_multiplier": result.total_multiplier,
            "warnings": list(result.warnings),
            "event_id": xp_event.id,
        })

        if result.would_level_up:
            metrics.level_ups_total.inc()
            logger.info(
                f"User {user_id} leveled up: {xp_event.previous_level} -> {result.predicted_new_level}"
            )
            self.emitter.emit(events.LEVEL_UP, {
                "user_id": user_id,
                "previous_level": xp_event.previous_level,
                "new_level": result.predicted_new_level,
                "title": self.progression.level_title(result.predicted_new_level),
            })

        unlocked: List[AchievementNotification] = []
        if achievement_context is not None:
            unlocked = self.achievements.evaluate(user_id, achievement_context, now=moment)

        completed = self.challenges.record_activity(user_id, activity, now=moment)

        bonus = 0
        completed_kinds = {c.kind for c in completed}
        if ChallengeKind.DAILY in completed_kinds:
            bonus += self.challenges.daily_completion_bonus(user_id)
        if ChallengeKind.WEEKLY in completed_kinds:
            bonus += self.challenges.weekly_completion_bonus(user_id)
        if bonus:
            logger.info(f"User {user_id} completed all challenges of a cycle (+{bonus} XP bonus)")

        return ActivityOutcome(
            xp=result,
            event=xp_event,
            achievements_unlocked=unlocked,
            challenges_completed=[c.model_copy() for c in completed],
            completion_bonus_xp=bonus,
        )

    def calculate_xp(self, occurrence: ActivityOccurrence) -> XPComputationResult:
        """XP for an occurrence without emitting or recording anything"""
        return self.xp.calculate(occurrence)

    # ------------------------------------------------------------------
    # Streaks & multipliers
    # ------------------------------------------------------------------

    def update_streak(self, user_id: str, streak_days: int) -> int:
        return self.streaks.update_streak(user_id, streak_days)

    def add_user_multiplier(self, user_id: str, multiplier: Multiplier) -> None:
        """Register a long-lived multiplier and announce it"""
        self.multipliers.add_user_multiplier(user_id, multiplier)
        self.emitter.emit(events.MULTIPLIER_APPLIED, {
            "user_id": user_id,
            "multiplier": multiplier.model_dump(mode="json"),
        })

    def cleanup_expired_multipliers(self, user_id: str, now: Optional[datetime] = None) -> int:
        return self.multipliers.cleanup_expired(user_id, now=now)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reconfigure(self, settings: EngineSettings) -> None:
        """Apply new settings to every component; per-user state is kept"""
        validate_config(settings)
        self.settings = settings
        self.xp.configure(settings)
        self.challenges.configure(settings.challenges)
        self.streaks.configure(settings.streak)
        self.achievements.notification_capacity = settings.notification_capacity
        logger.info("GamificationEngine reconfigured")

    def snapshot(self) -> Dict[str, Any]:
        """All per-user state as JSON-compatible data"""
        return {
            "version": SNAPSHOT_VERSION,
            "multipliers": self.multipliers.snapshot(),
            "achievements": self.achievements.snapshot(),
            "challenges": self.challenges.snapshot(),
            "streaks": self.streaks.snapshot(),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """Replace all per-user state with a snapshot() result"""
        version = snapshot.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            logger.warning(f"Restoring snapshot version {version} (expected {SNAPSHOT_VERSION})")
        self.multipliers.restore(snapshot.get("multipliers", {}))
        self.achievements.restore(snapshot.get("achievements", {}))
        self.challenges.restore(snapshot.get("challenges", {}))
        self.streaks.restore(snapshot.get("streaks", {}))
        logger.info("GamificationEngine state restored from snapshot")

    def reset_user(self, user_id: str) -> None:
        """Drop every piece of state held for the user"""
        self.achievements.reset_user(user_id)
        self.challenges.clear_user(user_id)
        self.multipliers.clear_user(user_id)
        self.streaks.clear_user(user_id)

    def teardown(self) -> None:
        """Release handlers and all per-user state"""
        self.emitter.clear()
        self.restore({})
        logger.debug("GamificationEngine torn down")
