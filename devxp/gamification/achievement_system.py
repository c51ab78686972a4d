"""
Achievement System

Evaluates the achievement catalog against a context snapshot of activity
counters and keeps per-user unlock/progress state.

Per (user, achievement) lifecycle:
    locked (progress 0) -> locked (0 < progress < goal) -> unlocked (terminal)

Features:
- Progress tracking for locked achievements, driven by the context counter
  each achievement tracks
- Automatic detection and unlocking, with notifications
- Category completion ("combo") notifications
- Statistics and recent-unlock history for listing views
"""

from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Mapping, Optional, Set
import logging

from devxp import events
from devxp.events import EventEmitter
from devxp.exceptions import ConfigurationError
from devxp.gamification.achievement_catalog import CATALOG, progress_field_for
from devxp.models.achievement import (
    AchievementCategory,
    AchievementContext,
    AchievementDefinition,
    AchievementNotification,
    AchievementRarity,
    AchievementUserState,
)
from devxp.observability import metrics
from devxp.utils.datetime_helpers import now_local

logger = logging.getLogger(__name__)

PROGRESS_THRESHOLDS = (25, 50, 75, 90)
DEFAULT_NOTIFICATION_CAPACITY = 50


def rarity(definition: AchievementDefinition) -> AchievementRarity:
    """Display rarity: hidden ones are legendary, otherwise by goal size"""
    if definition.hidden:
        return AchievementRarity.LEGENDARY
    if definition.goal >= 1000:
        return AchievementRarity.EPIC
    if definition.goal >= 100:
        return AchievementRarity.RARE
    if definition.goal >= 10:
        return AchievementRarity.UNCOMMON
    return AchievementRarity.COMMON


class AchievementEngine:
    """Rule engine over an immutable catalog with per-user state"""

    def __init__(
        self,
        catalog: Optional[Mapping[str, AchievementDefinition]] = None,
        emitter: Optional[EventEmitter] = None,
        notification_capacity: int = DEFAULT_NOTIFICATION_CAPACITY,
    ):
        self.catalog = CATALOG if catalog is None else catalog
        self.emitter = emitter or EventEmitter()
        self.notification_capacity = notification_capacity
        self._states: Dict[str, Dict[str, AchievementUserState]] = {}
        self._notifications: Dict[str, Deque[AchievementNotification]] = {}

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def _user_states(self, user_id: str) -> Dict[str, AchievementUserState]:
        states = self._states.get(user_id)
        if states is None:
            states = {
                achievement_id: AchievementUserState(achievement_id=achievement_id)
                for achievement_id in self.catalog
            }
            self._states[user_id] = states
        return states

    def _user_notifications(self, user_id: str) -> Deque[AchievementNotification]:
        buffer = self._notifications.get(user_id)
        if buffer is None:
            buffer = deque(maxlen=self.notification_capacity)
            self._notifications[user_id] = buffer
        return buffer

    def get_state(self, user_id: str, achievement_id: str) -> Optional[AchievementUserState]:
        """Copy of one achievement's state for the user, None for unknown ids"""
        state = self._user_states(user_id).get(achievement_id)
        return state.model_copy() if state else None

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(
        self,
        user_id: str,
        context: AchievementContext,
        now: Optional[datetime] = None,
    ) -> List[AchievementNotification]:
        """
        Check every locked achievement against the context snapshot

        Args:
            user_id: User whose state is evaluated
            context: Activity counters from the persistence layer
            now: Unlock timestamp (defaults to local now)

        Returns:
            Newly unlocked achievements, in catalog order

        Raises:
            ConfigurationError: If an achievement predicate raises
        """
        moment = now or now_local()
        states = self._user_states(user_id)
        completed_before = self._completed_categories(states)
        newly_unlocked: List[AchievementNotification] = []

        try:
            for definition in self.catalog.values():
                state = states[definition.id]
                if state.unlocked:
                    continue

                observed = self._observed_progress(definition, context)

                if self._check_predicate(user_id, definition, context):
                    state.unlocked = True
                    state.unlocked_at = moment
                    state.current_progress = definition.goal
                    newly_unlocked.append(self._record_unlock(user_id, definition, moment))
                elif observed is not None:
                    # Locked achievements stay below goal until the predicate holds
                    self._advance_progress(user_id, definition, state, min(observed, definition.goal - 1))
        finally:
            # unlocks made before a failing predicate still count toward combos
            if newly_unlocked:
                self._emit_combos(user_id, self._completed_categories(states) - completed_before)

        return newly_unlocked

    def _emit_combos(self, user_id: str, categories: Set[AchievementCategory]) -> None:
        for category in categories:
            logger.info(f"User {user_id} completed every {category.value} achievement")
            self.emitter.emit(events.ACHIEVEMENT_COMBO, {
                "user_id": user_id,
                "category": category.value,
            })

    def _observed_progress(self, definition: AchievementDefinition, context: AchievementContext) -> Optional[int]:
        field_name = definition.progress_field or progress_field_for(definition.id)
        if field_name is None:
            return None
        if field_name.startswith("custom_metrics."):
            value = context.custom_metrics.get(field_name.split(".", 1)[1])
        else:
            value = getattr(context, field_name, None)
        if value is None or isinstance(value, bool):
            return None
        return max(0, int(value))

    def _advance_progress(
        self,
        user_id: str,
        definition: AchievementDefinition,
        state: AchievementUserState,
        progress: int,
    ) -> None:
        old_progress = state.current_progress
        if progress <= old_progress:
            return

        state.current_progress = progress
        logger.debug(
            f"Achievement progress for user {user_id} '{definition.name}': {progress}/{definition.goal}"
        )

        old_percent = old_progress / definition.goal * 100
        new_percent = progress / definition.goal * 100
        crossed = [t for t in PROGRESS_THRESHOLDS if old_percent < t <= new_percent]
        if crossed:
            self.emitter.emit(events.ACHIEVEMENT_PROGRESS, {
                "user_id": user_id,
                "achievement_id": definition.id,
                "name": definition.name,
                "percent": crossed[0],
                "progress": progress,
                "goal": definition.goal,
            })

    def _check_predicate(self, user_id: str, definition: AchievementDefinition, context: AchievementContext) -> bool:
        try:
            return bool(definition.predicate(context))
        except Exception as e:
            raise ConfigurationError(
                message=f"Achievement predicate for '{definition.id}' raised: {e}",
                config_key=f"achievements.{definition.id}",
                user_id=user_id,
                operation="evaluate_achievements",
                cause=e,
            ) from e

    def _record_unlock(
        self,
        user_id: str,
        definition: AchievementDefinition,
        moment: datetime,
    ) -> AchievementNotification:
        notification = AchievementNotification(
            achievement_id=definition.id,
            name=definition.name,
            description=definition.description,
            category=definition.category,
            rarity=rarity(definition),
            hidden=definition.hidden,
            unlocked_at=moment,
        )
        self._user_notifications(user_id).append(notification)
        metrics.achievements_unlocked_total.labels(category=definition.category.value).inc()

        logger.info(
            f"User {user_id} unlocked achievement: {definition.id} "
            f"({definition.name}) [{notification.rarity.value}]"
        )
        self.emitter.emit(events.ACHIEVEMENT_UNLOCK, {
            "user_id": user_id,
            **notification.model_dump(mode="json"),
        })
        return notification

    def _completed_categories(self, states: Dict[str, AchievementUserState]) -> Set[AchievementCategory]:
        by_category: Dict[AchievementCategory, List[bool]] = {}
        for definition in self.catalog.values():
            by_category.setdefault(definition.category, []).append(states[definition.id].unlocked)
        return {category for category, flags in by_category.items() if flags and all(flags)}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_achievements(self, user_id: str, include_hidden: bool = False) -> List[Dict[str, Any]]:
        """
        Catalog entries merged with the user's state

        Hidden achievements are left out unless include_hidden is set.
        """
        states = self._user_states(user_id)
        listing = []
        for definition in self.catalog.values():
            if definition.hidden and not include_hidden:
                continue
            state = states[definition.id]
            listing.append({
                "achievement_id": definition.id,
                "name": definition.name,
                "description": definition.description,
                "category": definition.category.value,
                "rarity": rarity(definition).value,
                "hidden": definition.hidden,
                "goal": definition.goal,
                "progress": state.current_progress,
                "unlocked": state.unlocked,
                "unlocked_at": state.unlocked_at,
            })
        return listing

    def get_statistics(self, user_id: str, next_count: int = 3, recent_count: int = 5) -> Dict[str, Any]:
        """
        Unlock statistics for listing views

        Returns:
            {
                'total': int,
                'unlocked': int,
                'percentage': int,
                'by_category': {category: unlocked count},
                'total_by_category': {category: achievement count},
                'next_to_unlock': [{'achievement_id', 'name', 'progress', 'goal'}],
                'recent_unlocks': [{'achievement_id', 'name', 'unlocked_at'}]
            }
        """
        states = self._user_states(user_id)
        by_category: Dict[str, int] = {}
        total_by_category: Dict[str, int] = {}
        unlocked = 0

        for definition in self.catalog.values():
            category = definition.category.value
            total_by_category[category] = total_by_category.get(category, 0) + 1
            if states[definition.id].unlocked:
                unlocked += 1
                by_category[category] = by_category.get(category, 0) + 1

        total = len(self.catalog)
        percentage = round(unlocked / total * 100) if total else 0

        return {
            "total": total,
            "unlocked": unlocked,
            "percentage": percentage,
            "by_category": by_category,
            "total_by_category": total_by_category,
            "next_to_unlock": self.next_to_unlock(user_id, next_count),
            "recent_unlocks": [
                {"achievement_id": n.achievement_id, "name": n.name, "unlocked_at": n.unlocked_at}
                for n in self.recent_notifications(user_id, recent_count)
            ],
        }

    def next_to_unlock(self, user_id: str, count: int = 3) -> List[Dict[str, Any]]:
        """Locked, non-hidden achievements with progress, closest to completion first"""
        states = self._user_states(user_id)
        candidates = [
            (definition, states[definition.id])
            for definition in self.catalog.values()
            if not definition.hidden
            and not states[definition.id].unlocked
            and states[definition.id].current_progress > 0
        ]
        candidates.sort(key=lambda pair: pair[1].current_progress / pair[0].goal, reverse=True)
        return [
            {
                "achievement_id": definition.id,
                "name": definition.name,
                "progress": state.current_progress,
                "goal": definition.goal,
            }
            for definition, state in candidates[:count]
        ]

    def recent_notifications(self, user_id: str, count: int = 10) -> List[AchievementNotification]:
        """Last `count` unlock notifications, oldest first"""
        buffer = self._notifications.get(user_id)
        if not buffer or count <= 0:
            return []
        return list(buffer)[-count:]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset_user(self, user_id: str) -> None:
        """Forget all unlocks, progress and notifications for the user"""
        self._states.pop(user_id, None)
        self._notifications.pop(user_id, None)
        logger.info(f"All achievements have been reset for user {user_id}")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "states": {
                user_id: {aid: s.model_dump(mode="json") for aid, s in states.items()}
                for user_id, states in self._states.items()
            },
            "notifications": {
                user_id: [n.model_dump(mode="json") for n in buffer]
                for user_id, buffer in self._notifications.items()
            },
        }

    def restore(self, data: Dict[str, Any]) -> None:
        self._states = {}
        for user_id, states in data.get("states", {}).items():
            restored = self._user_states(user_id)
            for achievement_id, state in states.items():
                if achievement_id in restored:
                    restored[achievement_id] = AchievementUserState.model_validate(state)
                else:
                    logger.warning(f"Dropping state for unknown achievement {achievement_id}")

        self._notifications = {}
        for user_id, notifications in data.get("notifications", {}).items():
            buffer = self._user_notifications(user_id)
            buffer.extend(AchievementNotification.model_validate(n) for n in notifications)
