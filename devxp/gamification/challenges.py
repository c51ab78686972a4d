"""
Challenge System

Time-boxed per-user tasks: daily challenges on a random activity type,
weekly challenges from a fixed template library, and caller-defined special
challenges.

Lifecycle per challenge:
    active -> completed (progress reached required_count)
    active -> expired (past expires_at, excluded from listings)

Expired and completed challenges stay tracked until the next reset of their
kind, so the all-complete bonuses still see the finished cycle.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from devxp import events
from devxp.config import ChallengeConfig
from devxp.events import EventEmitter
from devxp.models.activity import ActivityType
from devxp.models.challenge import Challenge, ChallengeKind
from devxp.observability import metrics
from devxp.utils.datetime_helpers import end_of_day, end_of_week, now_local, to_naive_local

logger = logging.getLogger(__name__)

DAILY_MIN_COUNT = 3
DAILY_MAX_COUNT = 7


@dataclass(frozen=True)
class WeeklyTemplate:
    """Weekly challenge definition"""
    name: str
    description: str
    required_count: int


# ============================================
# Weekly Challenge Library
# ============================================

WEEKLY_TEMPLATES: List[WeeklyTemplate] = [
    WeeklyTemplate("Code Warrior", "Complete 50 development activities", 50),
    WeeklyTemplate("Git Master", "Make 20 git commits", 20),
    WeeklyTemplate("Test Champion", "Run 30 tests", 30),
    WeeklyTemplate("Documentation Hero", "Write 10 documentation entries", 10),
    WeeklyTemplate("Deployment Expert", "Complete 5 deployments", 5),
]


class ChallengeManager:
    """Creates, tracks and completes challenges for each user"""

    def __init__(
        self,
        config: Optional[ChallengeConfig] = None,
        emitter: Optional[EventEmitter] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or ChallengeConfig()
        self.emitter = emitter or EventEmitter()
        self.rng = rng or random.Random()
        self._challenges: Dict[str, List[Challenge]] = {}

    def configure(self, config: ChallengeConfig) -> None:
        self.config = config

    def _track(self, user_id: str, challenge: Challenge) -> Challenge:
        self._challenges.setdefault(user_id, []).append(challenge)
        logger.info(
            f"Created {challenge.kind.value} challenge for user {user_id}: "
            f"{challenge.name} ({challenge.required_count} required, {challenge.reward_xp} XP)"
        )
        return challenge

    # ============================================
    # Creation
    # ============================================

    def create_daily(self, user_id: str, now: Optional[datetime] = None) -> Challenge:
        """Random activity type, 3-7 occurrences, expires at the end of today"""
        moment = now or now_local()
        activity = self.rng.choice(list(ActivityType)).value
        required_count = self.rng.randint(DAILY_MIN_COUNT, DAILY_MAX_COUNT)
        label = activity.replace("_", " ")

        return self._track(user_id, Challenge(
            id=f"daily_{uuid4().hex[:12]}_{user_id}",
            kind=ChallengeKind.DAILY,
            name=f"Daily {label} Challenge",
            description=f"Complete {required_count} {label.lower()} activities",
            required_activity=activity,
            required_count=required_count,
            reward_xp=self.config.daily_reward,
            expires_at=end_of_day(moment),
        ))

    def create_weekly(self, user_id: str, now: Optional[datetime] = None) -> Challenge:
        """Random template from WEEKLY_TEMPLATES, any activity counts, expires end of Sunday"""
        moment = now or now_local()
        template = self.rng.choice(WEEKLY_TEMPLATES)

        return self._track(user_id, Challenge(
            id=f"weekly_{uuid4().hex[:12]}_{user_id}",
            kind=ChallengeKind.WEEKLY,
            name=template.name,
            description=template.description,
            required_activity=None,
            required_count=template.required_count,
            reward_xp=self.config.weekly_reward,
            expires_at=end_of_week(moment),
        ))

    def create_special(
        self,
        user_id: str,
        name: str,
        description: str,
        required_count: int,
        expires_at: datetime,
        required_activity: Optional[str] = None,
        reward_xp: Optional[int] = None,
    ) -> Challenge:
        """Caller-defined event challenge"""
        if isinstance(required_activity, ActivityType):
            required_activity = required_activity.value

        return self._track(user_id, Challenge(
            id=f"special_{uuid4().hex[:12]}_{user_id}",
            kind=ChallengeKind.SPECIAL,
            name=name,
            description=description,
            required_activity=required_activity,
            required_count=required_count,
            reward_xp=self.config.special_reward if reward_xp is None else reward_xp,
            expires_at=expires_at,
        ))

    # ============================================
    # Progress
    # ============================================

    def record_activity(
        self,
        user_id: str,
        activity_type: str,
        now: Optional[datetime] = None,
    ) -> List[Challenge]:
        """
        Count one activity toward every matching open challenge

        Args:
            user_id: Acting user
            activity_type: ActivityType or its string value
            now: Time of the activity (defaults to local now)

        Returns:
            Challenges completed by this activity
        """
        moment = now or now_local()
        if isinstance(activity_type, ActivityType):
            activity_type = activity_type.value

        completed: List[Challenge] = []
        for challenge in self._challenges.get(user_id, []):
            if challenge.is_completed or challenge.is_expired(moment):
                continue
            if not challenge.accepts(activity_type):
                continue

            challenge.current_progress = min(challenge.current_progress + 1, challenge.required_count)

            if challenge.current_progress >= challenge.required_count:
                challenge.is_completed = True
                challenge.completed_at = moment
                completed.append(challenge)

                metrics.challenges_completed_total.labels(kind=challenge.kind.value).inc()
                logger.info(
                    f"User {user_id} completed challenge: {challenge.name} (+{challenge.reward_xp} XP)"
                )
                self.emitter.emit(events.CHALLENGE_COMPLETED, {
                    "user_id": user_id,
                    "challenge": challenge.model_dump(mode="json"),
                    "xp_earned": challenge.reward_xp,
                })

        return completed

    def get_active(self, user_id: str, now: Optional[datetime] = None) -> List[Challenge]:
        """Unexpired challenges, completed ones included"""
        moment = now or now_local()
        return [c for c in self._challenges.get(user_id, []) if c.expires_at > to_naive_local(moment)]

    def get_all(self, user_id: str) -> List[Challenge]:
        """Every tracked challenge, expired ones included"""
        return list(self._challenges.get(user_id, []))

    # ============================================
    # Completion bonuses
    # ============================================

    def _all_completed(self, user_id: str, kind: ChallengeKind) -> bool:
        tracked = [c for c in self._challenges.get(user_id, []) if c.kind == kind]
        return bool(tracked) and all(c.is_completed for c in tracked)

    def daily_completion_bonus(self, user_id: str) -> int:
        """Flat bonus when every tracked daily challenge is complete, else 0"""
        if self._all_completed(user_id, ChallengeKind.DAILY):
            return self.config.daily_completion_bonus
        return 0

    def weekly_completion_bonus(self, user_id: str) -> int:
        """Flat bonus when every tracked weekly challenge is complete, else 0"""
        if self._all_completed(user_id, ChallengeKind.WEEKLY):
            return self.config.weekly_completion_bonus
        return 0

    # ============================================
    # Resets
    # ============================================

    def _drop_kind(self, user_id: str, kind: ChallengeKind) -> None:
        self._challenges[user_id] = [
            c for c in self._challenges.get(user_id, []) if c.kind != kind
        ]

    def reset_daily(self, user_id: str, count: int = 3, now: Optional[datetime] = None) -> List[Challenge]:
        """Replace the user's daily challenges with `count` fresh ones"""
        self._drop_kind(user_id, ChallengeKind.DAILY)
        return [self.create_daily(user_id, now=now) for _ in range(count)]

    def reset_weekly(self, user_id: str, count: int = 2, now: Optional[datetime] = None) -> List[Challenge]:
        """Replace the user's weekly challenges with `count` fresh ones"""
        self._drop_kind(user_id, ChallengeKind.WEEKLY)
        return [self.create_weekly(user_id, now=now) for _ in range(count)]

    def clear_user(self, user_id: str) -> None:
        self._challenges.pop(user_id, None)

    def snapshot(self) -> Dict[str, List[dict]]:
        return {
            user_id: [c.model_dump(mode="json") for c in challenges]
            for user_id, challenges in self._challenges.items()
        }

    def restore(self, data: Dict[str, List[dict]]) -> None:
        self._challenges = {
            user_id: [Challenge.model_validate(c) for c in challenges]
            for user_id, challenges in data.items()
        }
