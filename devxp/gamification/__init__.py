"""
Gamification core for developer activity

This package implements:
- Level progression under selectable formulas
- XP calculation with stacked, capped multipliers
- Achievement catalog and rule engine
- Daily, weekly and special challenges
- Streak tracking with milestone bonuses
"""

from devxp.gamification.progression import ProgressionCalculator, UNREACHABLE, round_half_up
from devxp.gamification.multipliers import MultiplierResolver, ResolvedMultipliers
from devxp.gamification.xp_system import XPCalculationEngine, get_xp_for_activity
from devxp.gamification.achievement_catalog import CATALOG, build_catalog
from devxp.gamification.achievement_system import AchievementEngine, rarity
from devxp.gamification.challenges import ChallengeManager, WEEKLY_TEMPLATES
from devxp.gamification.streak_system import StreakTracker

__all__ = [
    "ProgressionCalculator",
    "UNREACHABLE",
    "round_half_up",
    "MultiplierResolver",
    "ResolvedMultipliers",
    "XPCalculationEngine",
    "get_xp_for_activity",
    "CATALOG",
    "build_catalog",
    "AchievementEngine",
    "rarity",
    "ChallengeManager",
    "WEEKLY_TEMPLATES",
    "StreakTracker",
]
