"""
Streak Tracking

Keeps the consecutive-day count per user and announces milestone days.

Logic for a newly active day:
- First activity: streak starts at 1
- Same day as the last active day: unchanged
- The day after the last active day: +1
- Any larger gap: reset to 1

Milestone bonuses (default 7, 30, 100, 365 days) fire on the exact day only.
"""

from datetime import date, timedelta
from typing import Dict, Optional
import logging

from devxp import events
from devxp.config import StreakConfig
from devxp.events import EventEmitter
from devxp.models.streak import StreakState

logger = logging.getLogger(__name__)


class StreakTracker:
    """Per-user streak cache with milestone notifications"""

    def __init__(self, config: Optional[StreakConfig] = None, emitter: Optional[EventEmitter] = None):
        self.config = config or StreakConfig()
        self.emitter = emitter or EventEmitter()
        self._streaks: Dict[str, StreakState] = {}

    def configure(self, config: StreakConfig) -> None:
        self.config = config

    def _state(self, user_id: str) -> StreakState:
        state = self._streaks.get(user_id)
        if state is None:
            state = StreakState(user_id=user_id)
            self._streaks[user_id] = state
        return state

    def update_streak(self, user_id: str, streak_days: int) -> int:
        """
        Store the user's current streak length

        Args:
            user_id: User's ID
            streak_days: Consecutive active days

        Returns:
            Milestone XP bonus for this exact day count, 0 otherwise
        """
        state = self._state(user_id)
        state.consecutive_days = max(0, streak_days)
        if state.consecutive_days > state.best_streak:
            state.best_streak = state.consecutive_days

        bonus = self.config.milestones.get(state.consecutive_days, 0)
        if bonus > 0:
            logger.info(f"User {user_id} reached {streak_days}-day streak milestone (+{bonus} XP)")
            self.emitter.emit(events.STREAK_MILESTONE, {
                "user_id": user_id,
                "milestone": f"{streak_days} day streak",
                "streak_days": streak_days,
                "xp_bonus": bonus,
            })
        return bonus

    def record_active_day(self, user_id: str, day: Optional[date] = None) -> int:
        """
        Register activity on a calendar day and update the streak from it

        Returns:
            Milestone XP bonus (see update_streak)
        """
        if day is None:
            day = date.today()

        state = self._state(user_id)
        last_day = state.last_active_day

        if last_day is None:
            streak_days = 1
        elif day <= last_day:
            # Already counted (or out of order)
            return 0
        elif last_day == day - timedelta(days=1):
            streak_days = state.consecutive_days + 1
        else:
            gap_days = (day - last_day).days
            logger.info(
                f"User {user_id} streak broken. Was {state.consecutive_days}, gap was {gap_days} days"
            )
            streak_days = 1

        state.last_active_day = day
        return self.update_streak(user_id, streak_days)

    def get_streak(self, user_id: str) -> int:
        """Cached streak length, 0 for unknown users"""
        state = self._streaks.get(user_id)
        return state.consecutive_days if state else 0

    def get_state(self, user_id: str) -> Optional[StreakState]:
        state = self._streaks.get(user_id)
        return state.model_copy() if state else None

    def clear_user(self, user_id: str) -> None:
        self._streaks.pop(user_id, None)

    def snapshot(self) -> Dict[str, dict]:
        return {user_id: s.model_dump(mode="json") for user_id, s in self._streaks.items()}

    def restore(self, data: Dict[str, dict]) -> None:
        self._streaks = {user_id: StreakState.model_validate(s) for user_id, s in data.items()}
