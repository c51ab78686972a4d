"""
Multiplier Resolver

Works out which bonus factors apply to one activity occurrence and folds
them into a single capped factor.

Bonus rules:
- Difficulty: easy 0.75, medium 1.0, hard 1.5, expert 2.0
- Streak: 1 + days * daily_rate, capped (default 2.0)
- First time: 1.5
- Happy hour: 1.3 from 05:00 to 09:00, 1.2 from 22:00 to 02:00
- Weekend (Sat/Sun): 1.25
- Premium: 1.2
- Quality score: 0.5 + quality / 100
- Custom: any active, unexpired multiplier registered for the user

Streak milestones (exact day only) award flat XP, not a multiplier.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from functools import reduce
from typing import Dict, List, Optional

from devxp.config import MultiplierCaps, StreakConfig
from devxp.models.activity import ActivityOccurrence, Difficulty
from devxp.models.xp import Multiplier, MultiplierKind
from devxp.observability import metrics
from devxp.utils.datetime_helpers import is_weekend, now_local

logger = logging.getLogger(__name__)

DIFFICULTY_FACTORS: Dict[Difficulty, float] = {
    Difficulty.EASY: 0.75,
    Difficulty.MEDIUM: 1.0,
    Difficulty.HARD: 1.5,
    Difficulty.EXPERT: 2.0,
}

FIRST_TIME_FACTOR = 1.5
WEEKEND_FACTOR = 1.25
PREMIUM_FACTOR = 1.2
EARLY_BIRD_FACTOR = 1.3
NIGHT_OWL_FACTOR = 1.2


def format_number(value: float) -> str:
    """Shortest plain decimal text for a number: 5.0 -> '5', 1e-05 -> '0.00001'"""
    if float(value).is_integer():
        return str(int(value))
    return format(Decimal(repr(float(value))), "f")


@dataclass(frozen=True)
class ResolvedMultipliers:
    """Applicable multipliers for one occurrence and their capped product"""
    multipliers: List[Multiplier]
    raw_product: float
    total: float
    warnings: List[str] = field(default_factory=list)


class MultiplierResolver:
    """Computes per-occurrence bonuses and keeps long-lived custom multipliers per user"""

    def __init__(
        self,
        caps: Optional[MultiplierCaps] = None,
        streak_config: Optional[StreakConfig] = None,
    ):
        self.caps = caps or MultiplierCaps()
        self.streak_config = streak_config or StreakConfig()
        self._user_multipliers: Dict[str, List[Multiplier]] = {}

    def configure(self, caps: MultiplierCaps, streak_config: StreakConfig) -> None:
        self.caps = caps
        self.streak_config = streak_config

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, occurrence: ActivityOccurrence, now: Optional[datetime] = None) -> ResolvedMultipliers:
        """
        Collect applicable multipliers in a fixed order and clamp their product

        Never raises for out-of-range products: the total is clamped and a
        warning is attached instead.
        """
        moment = occurrence.effective_time
        context = occurrence.context
        user = occurrence.user
        applied: List[Multiplier] = []

        if context.difficulty is not None:
            difficulty = Difficulty(context.difficulty)
            applied.append(Multiplier(
                kind=MultiplierKind.DIFFICULTY,
                factor=DIFFICULTY_FACTORS[difficulty],
                description=f"{difficulty.value} difficulty",
            ))

        if user.streak_days > 0:
            applied.append(Multiplier(
                kind=MultiplierKind.STREAK,
                factor=self.streak_multiplier(user.streak_days),
                description=f"{user.streak_days} day streak",
            ))

        if context.is_first_time:
            applied.append(Multiplier(
                kind=MultiplierKind.FIRST_TIME,
                factor=FIRST_TIME_FACTOR,
                description="First time bonus",
            ))

        happy_hour = self.happy_hour_multiplier(moment)
        if happy_hour is not None:
            applied.append(happy_hour)

        if is_weekend(moment):
            applied.append(Multiplier(
                kind=MultiplierKind.WEEKEND,
                factor=WEEKEND_FACTOR,
                description="Weekend bonus",
            ))

        if user.is_premium:
            applied.append(Multiplier(
                kind=MultiplierKind.PREMIUM,
                factor=PREMIUM_FACTOR,
                description="Premium user bonus",
            ))

        if context.quality is not None:
            quality = context.quality
            applied.append(Multiplier(
                kind=MultiplierKind.QUALITY_SCORE,
                factor=0.5 + quality / 100,
                description=f"Quality score: {format_number(quality)}%",
            ))

        applied.extend(m for m in occurrence.override_multipliers if m.is_active)
        applied.extend(self.get_user_multipliers(user.user_id, now=now or moment))

        raw_product = reduce(lambda acc, m: acc * m.factor, applied, 1.0)
        total, warnings = self.clamp(raw_product)

        return ResolvedMultipliers(
            multipliers=applied,
            raw_product=raw_product,
            total=total,
            warnings=warnings,
        )

    def clamp(self, product: float) -> tuple[float, List[str]]:
        """Clamp a raw product to the configured bounds"""
        warnings: List[str] = []
        maximum = self.caps.maximum
        minimum = self.caps.minimum

        if product > maximum:
            warnings.append(f"Multiplier capped at maximum {format_number(maximum)}x")
            metrics.multiplier_clamped_total.labels(bound="maximum").inc()
            logger.warning(f"Multiplier {product:.3f} capped at {maximum}")
            return maximum, warnings
        if product < minimum:
            warnings.append(f"Multiplier raised to minimum {format_number(minimum)}x")
            metrics.multiplier_clamped_total.labels(bound="minimum").inc()
            logger.warning(f"Multiplier {product:.3f} raised to {minimum}")
            return minimum, warnings
        return product, warnings

    # ------------------------------------------------------------------
    # Individual bonuses
    # ------------------------------------------------------------------

    def streak_multiplier(self, streak_days: int) -> float:
        multiplier = 1 + streak_days * self.streak_config.daily_rate
        return min(multiplier, self.streak_config.max_multiplier)

    def streak_milestone_bonus(self, streak_days: int) -> int:
        """Flat XP bonus when streak_days is exactly a milestone, else 0"""
        return self.streak_config.milestones.get(streak_days, 0)

    @staticmethod
    def happy_hour_multiplier(moment: datetime) -> Optional[Multiplier]:
        hour = moment.hour
        if 5 <= hour < 9:
            return Multiplier(
                kind=MultiplierKind.HAPPY_HOUR,
                factor=EARLY_BIRD_FACTOR,
                description="Early bird bonus",
            )
        if hour >= 22 or hour < 2:
            return Multiplier(
                kind=MultiplierKind.HAPPY_HOUR,
                factor=NIGHT_OWL_FACTOR,
                description="Night owl bonus",
            )
        return None

    # ------------------------------------------------------------------
    # Long-lived per-user multipliers
    # ------------------------------------------------------------------

    def add_user_multiplier(self, user_id: str, multiplier: Multiplier) -> None:
        self._user_multipliers.setdefault(user_id, []).append(multiplier)
        logger.info(
            f"Registered {multiplier.kind.value} multiplier x{multiplier.factor} for user {user_id}"
        )

    def get_user_multipliers(self, user_id: str, now: Optional[datetime] = None) -> List[Multiplier]:
        """Active, unexpired multipliers registered for the user"""
        moment = now or now_local()
        return [
            m for m in self._user_multipliers.get(user_id, [])
            if m.is_active and not m.is_expired(moment)
        ]

    def cleanup_expired(self, user_id: str, now: Optional[datetime] = None) -> int:
        """
        Prune expired or deactivated multipliers

        Returns:
            Number of multipliers removed
        """
        stored = self._user_multipliers.get(user_id, [])
        kept = self.get_user_multipliers(user_id, now=now)
        removed = len(stored) - len(kept)
        if kept:
            self._user_multipliers[user_id] = kept
        else:
            self._user_multipliers.pop(user_id, None)
        if removed:
            logger.debug(f"Pruned {removed} multipliers for user {user_id}")
        return removed

    def clear_user(self, user_id: str) -> None:
        self._user_multipliers.pop(user_id, None)

    def snapshot(self) -> Dict[str, List[dict]]:
        return {
            user_id: [m.model_dump(mode="json") for m in multipliers]
            for user_id, multipliers in self._user_multipliers.items()
        }

    def restore(self, data: Dict[str, List[dict]]) -> None:
        self._user_multipliers = {
            user_id: [Multiplier.model_validate(m) for m in multipliers]
            for user_id, multipliers in data.items()
        }
