"""
XP Calculation Engine

Turns one activity occurrence into an XP amount with a step-by-step
breakdown and a level-up prediction.

Calculation steps:
1. Base XP from the per-activity table (explicit override wins, unknown
   activity types fall back to the configured default)
2. Flat streak milestone bonus on exact milestone days (7, 30, 100, 365)
3. Multipliers resolved and clamped (see multipliers.py)
4. final XP = round(base XP * total multiplier)
5. Level-up prediction from the user's known XP total

Pure computation: nothing is persisted or emitted here.
"""

from typing import Dict, List, Optional
import logging

from devxp.config import DEFAULT_BASE_XP_VALUES, EngineSettings
from devxp.gamification.multipliers import MultiplierResolver
from devxp.gamification.progression import ProgressionCalculator, round_half_up
from devxp.models.activity import ActivityOccurrence, ActivityType
from devxp.models.xp import BreakdownStep, XPComputationResult, XPEvent, XPEventType

logger = logging.getLogger(__name__)


class XPCalculationEngine:
    """Combines base XP, streak milestones and multipliers into final XP"""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        progression: Optional[ProgressionCalculator] = None,
        resolver: Optional[MultiplierResolver] = None,
    ):
        self.settings = settings or EngineSettings()
        self.progression = progression or ProgressionCalculator(self.settings.progression)
        self.resolver = resolver or MultiplierResolver(
            self.settings.multiplier_caps, self.settings.streak
        )

    def configure(self, settings: EngineSettings) -> None:
        self.settings = settings
        self.progression.configure(settings.progression)
        self.resolver.configure(settings.multiplier_caps, settings.streak)

    def base_xp_for(self, activity_type: str) -> int:
        """Table value for an activity type, or the configured fallback"""
        return self.settings.base_xp_values.get(activity_type, self.settings.default_base_xp)

    def calculate(self, occurrence: ActivityOccurrence) -> XPComputationResult:
        """
        Calculate XP for one activity occurrence

        Args:
            occurrence: Activity, acting user snapshot and bonus context

        Returns:
            XPComputationResult with breakdown, warnings and level-up prediction
        """
        activity = occurrence.activity_key
        user = occurrence.user
        breakdown: List[BreakdownStep] = []

        # Step 1: base XP
        if occurrence.base_xp is not None:
            base_xp = occurrence.base_xp
            source = "Override base XP"
        else:
            base_xp = self.base_xp_for(activity)
            if activity in self.settings.base_xp_values:
                source = f"Base XP for {activity}"
            else:
                source = f"Default base XP ({activity} not in table)"
        breakdown.append(BreakdownStep(step="Base XP", value=base_xp, description=source))

        # Step 2: streak milestone
        if user.streak_days > 0:
            milestone_bonus = self.resolver.streak_milestone_bonus(user.streak_days)
            if milestone_bonus > 0:
                breakdown.append(BreakdownStep(
                    step="Streak Milestone",
                    value=milestone_bonus,
                    description=f"{user.streak_days} day milestone bonus",
                ))
                base_xp += milestone_bonus

        # Step 3: multipliers
        resolved = self.resolver.resolve(occurrence)
        for multiplier in resolved.multipliers:
            breakdown.append(BreakdownStep(
                step=f"Multiplier: {multiplier.kind.value}",
                value=multiplier.factor,
                description=multiplier.description,
            ))
        breakdown.append(BreakdownStep(
            step="Total Multiplier",
            value=resolved.total,
            description="Combined multiplier effect",
        ))

        # Step 4: final XP
        final_xp = max(0, round_half_up(base_xp * resolved.total))
        breakdown.append(BreakdownStep(step="Final XP", value=final_xp, description="Final calculated XP"))

        # Step 5: level-up prediction
        known_total = self.known_total_xp(occurrence)
        current_level = self.progression.level_from_xp(known_total)
        new_level = self.progression.level_from_xp(known_total + final_xp)
        would_level_up = new_level > current_level

        logger.debug(
            f"Calculated {final_xp} XP for {activity} (user {user.user_id}): "
            f"base {base_xp} x {resolved.total:.3f}"
        )

        return XPComputationResult(
            base_xp=base_xp,
            applied_multipliers=resolved.multipliers,
            total_multiplier=resolved.total,
            final_xp=final_xp,
            breakdown_steps=breakdown,
            would_level_up=would_level_up,
            predicted_new_level=new_level if would_level_up else None,
            warnings=resolved.warnings,
        )

    def known_total_xp(self, occurrence: ActivityOccurrence) -> int:
        """User's XP total; estimated from level when the caller did not supply one"""
        user = occurrence.user
        if user.total_xp is not None:
            return user.total_xp
        return self.progression.total_xp_for_level(user.level)

    def build_event(
        self,
        occurrence: ActivityOccurrence,
        result: XPComputationResult,
        reason: Optional[str] = None,
    ) -> XPEvent:
        """XP event for the persistence collaborator"""
        previous_level = self.progression.level_from_xp(self.known_total_xp(occurrence))
        return XPEvent(
            user_id=occurrence.user.user_id,
            event_type=XPEventType.ACTIVITY,
            points=result.final_xp,
            base_points=result.base_xp,
            activity_type=occurrence.activity_key,
            reason=reason or f"Completed {occurrence.activity_key.replace('_', ' ')}",
            multipliers=result.applied_multipliers,
            total_multiplier=result.total_multiplier,
            triggered_level_up=result.would_level_up,
            previous_level=previous_level if result.would_level_up else None,
            new_level=result.predicted_new_level,
            timestamp=occurrence.timestamp,
        )


def get_xp_for_activity(activity_type: str, base_xp_values: Optional[Dict[str, int]] = None, default: int = 10) -> int:
    """
    Base XP for an activity type, without bonuses

    Args:
        activity_type: ActivityType or its string value
        base_xp_values: Table to consult (defaults to the built-in table)
        default: Fallback for unknown activity types

    Returns:
        Base XP amount
    """
    if isinstance(activity_type, ActivityType):
        activity_type = activity_type.value
    table = DEFAULT_BASE_XP_VALUES if base_xp_values is None else base_xp_values
    return table.get(activity_type, default)
