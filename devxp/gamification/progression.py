"""
Level Progression Calculator

Converts between levels and XP thresholds under a selectable formula.

Formulas (XP required to complete level n):
- linear: base * n
- exponential (default): round(base * multiplier ^ (n - 1))
- fibonacci: f(1) = base, f(2) = 2 * base, f(n) = f(n-1) + f(n-2)
- custom: caller-supplied function of n

Levels past max_level are unreachable: their requirement is UNREACHABLE.
"""

import logging
import math
from numbers import Real
from typing import Any, Dict, Optional, Union

from devxp.config import ProgressionConfig, ProgressionFormula
from devxp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

UNREACHABLE = math.inf

XPAmount = Union[int, float]

LEVEL_TITLES = [
    (1, 10, "Novice Developer"),
    (11, 20, "Junior Developer"),
    (21, 30, "Developer"),
    (31, 40, "Senior Developer"),
    (41, 50, "Lead Developer"),
    (51, 60, "Principal Developer"),
    (61, 70, "Architect"),
    (71, 80, "Senior Architect"),
    (81, 90, "Master Developer"),
    (91, 100, "Legendary Developer"),
]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero"""
    if value < 0:
        return -round_half_up(-value)
    return int(math.floor(value + 0.5))


class ProgressionCalculator:
    """Pure level/XP arithmetic for one ProgressionConfig"""

    def __init__(self, config: Optional[ProgressionConfig] = None):
        self.config = config or ProgressionConfig()

    def configure(self, config: ProgressionConfig) -> None:
        """Swap the active progression settings"""
        logger.info(
            f"Progression reconfigured: {self.config.formula.value} -> {config.formula.value}, "
            f"max level {config.max_level}"
        )
        self.config = config

    # ------------------------------------------------------------------
    # Per-level requirements
    # ------------------------------------------------------------------

    def xp_for_level(self, level: int) -> XPAmount:
        """XP required to complete a single level"""
        if level <= 0:
            return 0
        if level > self.config.max_level:
            return UNREACHABLE

        formula = self.config.formula
        base = self.config.base_xp_requirement

        if formula == ProgressionFormula.LINEAR:
            return base * level
        if formula == ProgressionFormula.FIBONACCI:
            return self._fibonacci_xp(level)
        if formula == ProgressionFormula.CUSTOM and self.config.custom_formula is not None:
            return self._custom_xp(level)
        # exponential, and custom without a formula
        try:
            return round_half_up(base * math.pow(self.config.level_multiplier, level - 1))
        except OverflowError as e:
            raise ConfigurationError(
                message=f"Exponential progression overflows at level {level}",
                config_key="progression.max_level",
                operation="xp_for_level",
                context={"level": level, "level_multiplier": self.config.level_multiplier},
                cause=e,
            ) from e

    def _fibonacci_xp(self, level: int) -> int:
        base = self.config.base_xp_requirement
        if level <= 1:
            return base
        prev, current = base, base * 2
        for _ in range(3, level + 1):
            prev, current = current, prev + current
        return current

    def _custom_xp(self, level: int) -> XPAmount:
        value = self._call_custom(level)
        if level > 1:
            previous = self._call_custom(level - 1)
            if value < previous:
                raise ConfigurationError(
                    message=(
                        f"Custom progression formula decreases at level {level} "
                        f"({previous} -> {value})"
                    ),
                    config_key="progression.custom_formula",
                    operation="xp_for_level",
                    context={"level": level},
                )
        return value

    def _call_custom(self, level: int) -> XPAmount:
        try:
            value = self.config.custom_formula(level)
        except Exception as e:
            raise ConfigurationError(
                message=f"Custom progression formula failed for level {level}: {e}",
                config_key="progression.custom_formula",
                operation="xp_for_level",
                context={"level": level},
                cause=e,
            ) from e

        if isinstance(value, bool) or not isinstance(value, Real) or value < 0 or math.isnan(value):
            raise ConfigurationError(
                message=f"Custom progression formula returned invalid value {value!r} for level {level}",
                config_key="progression.custom_formula",
                operation="xp_for_level",
                context={"level": level},
            )
        return value

    # ------------------------------------------------------------------
    # Cumulative thresholds
    # ------------------------------------------------------------------

    def total_xp_for_level(self, level: int) -> XPAmount:
        """Total XP needed to complete levels 1..level"""
        total: XPAmount = 0
        for n in range(1, level + 1):
            total += self.xp_for_level(n)
            if total == UNREACHABLE:
                break
        return total

    def level_from_xp(self, total_xp: XPAmount) -> int:
        """
        Largest level whose cumulative requirement is covered by total_xp

        Floors at 1 and caps at max_level. A total exactly equal to a level's
        cumulative requirement maps to that level.
        """
        level = 1
        cumulative: XPAmount = 0
        for n in range(1, self.config.max_level + 1):
            cumulative += self.xp_for_level(n)
            if cumulative > total_xp:
                break
            level = n
        return level

    def xp_to_next_level(self, level: int, current_total_xp: XPAmount) -> XPAmount:
        """XP still missing before level + 1; UNREACHABLE at the cap"""
        current_level_total = self.total_xp_for_level(level)
        next_level_total = self.total_xp_for_level(level + 1)
        if next_level_total == UNREACHABLE:
            return UNREACHABLE

        xp_into_level = current_total_xp - current_level_total
        xp_needed_for_level = next_level_total - current_level_total
        return max(0, xp_needed_for_level - xp_into_level)

    def progress_percent(self, level: int, current_total_xp: XPAmount) -> float:
        """Percent of the way from level to level + 1, in [0, 100]"""
        if level >= self.config.max_level:
            return 100.0

        current_level_total = self.total_xp_for_level(level)
        next_level_total = self.total_xp_for_level(level + 1)
        xp_needed_for_level = next_level_total - current_level_total
        if xp_needed_for_level <= 0:
            return 100.0

        xp_into_level = current_total_xp - current_level_total
        return min(100.0, max(0.0, xp_into_level / xp_needed_for_level * 100))

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    @staticmethod
    def level_title(level: int) -> str:
        for low, high, title in LEVEL_TITLES:
            if low <= level <= high:
                return title
        return "Developer"

    def describe_level(self, total_xp: XPAmount) -> Dict[str, Any]:
        """
        Level summary for a running XP total

        Returns:
            {
                'current_level': int,
                'title': str,
                'xp_in_current_level': int,
                'xp_to_next_level': int or UNREACHABLE,
                'total_xp_for_next_level': int or UNREACHABLE,
                'progress_percent': float
            }
        """
        level = self.level_from_xp(total_xp)
        return {
            "current_level": level,
            "title": self.level_title(level),
            "xp_in_current_level": max(0, total_xp - self.total_xp_for_level(level)),
            "xp_to_next_level": self.xp_to_next_level(level, total_xp),
            "total_xp_for_next_level": self.total_xp_for_level(level + 1),
            "progress_percent": self.progress_percent(level, total_xp),
        }
