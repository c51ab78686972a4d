"""Configuration management"""
import math
import os
from enum import Enum
from typing import Callable, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from devxp.exceptions import ConfigurationError
from devxp.models.activity import ActivityType

load_dotenv()

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


class ProgressionFormula(str, Enum):
    """Level progression formula kinds"""
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    FIBONACCI = "fibonacci"
    CUSTOM = "custom"


DEFAULT_BASE_XP_VALUES: dict[str, int] = {
    # Git
    ActivityType.GIT_COMMIT.value: 50,
    ActivityType.GIT_PUSH.value: 30,
    ActivityType.GIT_PULL.value: 20,
    ActivityType.GIT_MERGE.value: 75,
    ActivityType.GIT_BRANCH_CREATE.value: 25,
    ActivityType.GIT_BRANCH_DELETE.value: 15,
    ActivityType.GIT_STASH.value: 10,
    ActivityType.GIT_TAG.value: 40,
    ActivityType.GIT_REBASE.value: 100,
    # Terminal
    ActivityType.TERMINAL_COMMAND.value: 5,
    ActivityType.TERMINAL_PIPE.value: 15,
    ActivityType.TERMINAL_SCRIPT.value: 50,
    ActivityType.TERMINAL_ALIAS.value: 30,
    # Files
    ActivityType.FILE_CREATE.value: 20,
    ActivityType.FILE_EDIT.value: 15,
    ActivityType.FILE_DELETE.value: 10,
    ActivityType.FILE_RENAME.value: 10,
    ActivityType.DIRECTORY_CREATE.value: 15,
    # Development
    ActivityType.CODE_COMPILE.value: 25,
    ActivityType.CODE_BUILD.value: 40,
    ActivityType.CODE_TEST.value: 60,
    ActivityType.CODE_LINT.value: 20,
    ActivityType.CODE_FORMAT.value: 15,
    ActivityType.CODE_DEBUG.value: 80,
    # Packages
    ActivityType.PACKAGE_INSTALL.value: 20,
    ActivityType.PACKAGE_UPDATE.value: 30,
    ActivityType.PACKAGE_PUBLISH.value: 200,
    # Docker
    ActivityType.DOCKER_BUILD.value: 50,
    ActivityType.DOCKER_RUN.value: 30,
    ActivityType.DOCKER_COMPOSE.value: 40,
    # Database
    ActivityType.DATABASE_QUERY.value: 15,
    ActivityType.DATABASE_MIGRATION.value: 100,
    ActivityType.DATABASE_BACKUP.value: 75,
    # Deployment
    ActivityType.DEPLOY_STAGING.value: 150,
    ActivityType.DEPLOY_PRODUCTION.value: 300,
    ActivityType.DEPLOY_ROLLBACK.value: 200,
    # Learning
    ActivityType.DOCUMENTATION_READ.value: 25,
    ActivityType.DOCUMENTATION_WRITE.value: 100,
    ActivityType.TUTORIAL_COMPLETE.value: 150,
    # Collaboration
    ActivityType.PR_CREATE.value: 100,
    ActivityType.PR_REVIEW.value: 75,
    ActivityType.PR_MERGE.value: 125,
    ActivityType.ISSUE_CREATE.value: 50,
    ActivityType.ISSUE_CLOSE.value: 60,
    ActivityType.CUSTOM.value: 10,
}


class ProgressionConfig(BaseModel):
    """Level curve settings"""
    formula: ProgressionFormula = ProgressionFormula.EXPONENTIAL
    base_xp_requirement: int = 100
    level_multiplier: float = 1.5
    max_level: int = 100
    custom_formula: Optional[Callable[[int], float]] = Field(default=None, exclude=True)


class MultiplierCaps(BaseModel):
    """Bounds applied to the combined multiplier"""
    minimum: float = 0.1
    maximum: float = 5.0


class StreakConfig(BaseModel):
    """Streak multiplier and milestone settings"""
    daily_rate: float = 0.1
    max_multiplier: float = 2.0
    milestones: dict[int, int] = Field(
        default_factory=lambda: {7: 500, 30: 2000, 100: 10000, 365: 50000}
    )


class ChallengeConfig(BaseModel):
    """Challenge rewards and completion bonuses"""
    daily_reward: int = 100
    weekly_reward: int = 500
    special_reward: int = 1000
    daily_completion_bonus: int = 200
    weekly_completion_bonus: int = 1000


class EngineSettings(BaseModel):
    """Everything the engine exposes for configuration"""
    base_xp_values: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_BASE_XP_VALUES))
    default_base_xp: int = 10
    progression: ProgressionConfig = Field(default_factory=ProgressionConfig)
    multiplier_caps: MultiplierCaps = Field(default_factory=MultiplierCaps)
    streak: StreakConfig = Field(default_factory=StreakConfig)
    challenges: ChallengeConfig = Field(default_factory=ChallengeConfig)
    notification_capacity: int = 50


def _env(environ: Mapping[str, str], key: str, cast, default):
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(
            message=f"Invalid value for {key}: {raw!r}",
            config_key=key,
            cause=e,
        )


def load_settings(environ: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """
    Build EngineSettings from DEVXP_* environment variables

    Unset variables keep their defaults.

    Raises:
        ConfigurationError: If a variable cannot be parsed or the result is invalid
    """
    env = os.environ if environ is None else environ

    formula_raw = _env(env, "DEVXP_PROGRESSION_FORMULA", str, ProgressionFormula.EXPONENTIAL.value)
    try:
        formula = ProgressionFormula(formula_raw.lower())
    except ValueError as e:
        raise ConfigurationError(
            message=f"Unknown progression formula: {formula_raw!r}",
            config_key="DEVXP_PROGRESSION_FORMULA",
            cause=e,
        )

    settings = EngineSettings(
        default_base_xp=_env(env, "DEVXP_DEFAULT_BASE_XP", int, 10),
        progression=ProgressionConfig(
            formula=formula,
            base_xp_requirement=_env(env, "DEVXP_BASE_XP_REQUIREMENT", int, 100),
            level_multiplier=_env(env, "DEVXP_LEVEL_MULTIPLIER", float, 1.5),
            max_level=_env(env, "DEVXP_MAX_LEVEL", int, 100),
        ),
        multiplier_caps=MultiplierCaps(
            minimum=_env(env, "DEVXP_MULTIPLIER_MIN", float, 0.1),
            maximum=_env(env, "DEVXP_MULTIPLIER_MAX", float, 5.0),
        ),
        streak=StreakConfig(
            daily_rate=_env(env, "DEVXP_STREAK_DAILY_RATE", float, 0.1),
            max_multiplier=_env(env, "DEVXP_STREAK_MAX", float, 2.0),
        ),
        notification_capacity=_env(env, "DEVXP_NOTIFICATION_CAPACITY", int, 50),
    )
    validate_config(settings)
    return settings


# Validation
def validate_config(settings: EngineSettings) -> None:
    """Validate engine settings"""
    progression = settings.progression
    caps = settings.multiplier_caps

    if progression.base_xp_requirement <= 0:
        raise ConfigurationError(
            message="base_xp_requirement must be positive",
            config_key="progression.base_xp_requirement",
        )
    if progression.max_level < 1:
        raise ConfigurationError(
            message="max_level must be at least 1",
            config_key="progression.max_level",
        )
    if progression.level_multiplier < 1.0:
        raise ConfigurationError(
            message="level_multiplier must be >= 1.0 so level requirements never shrink",
            config_key="progression.level_multiplier",
        )
    if _exponential_curve(progression) and not _exponential_peak_is_finite(progression):
        raise ConfigurationError(
            message=(
                f"Exponential curve overflows before max_level {progression.max_level} "
                f"(multiplier {progression.level_multiplier})"
            ),
            config_key="progression.max_level",
        )
    if caps.minimum <= 0 or caps.minimum > caps.maximum:
        raise ConfigurationError(
            message=f"Invalid multiplier caps: minimum={caps.minimum}, maximum={caps.maximum}",
            config_key="multiplier_caps",
        )
    if settings.streak.max_multiplier < 1.0:
        raise ConfigurationError(
            message="streak max_multiplier must be >= 1.0",
            config_key="streak.max_multiplier",
        )
    if settings.default_base_xp < 0:
        raise ConfigurationError(
            message="default_base_xp must not be negative",
            config_key="default_base_xp",
        )
    if settings.notification_capacity < 1:
        raise ConfigurationError(
            message="notification_capacity must be at least 1",
            config_key="notification_capacity",
        )


def _exponential_curve(progression: ProgressionConfig) -> bool:
    # custom without a callable falls back to the exponential curve
    if progression.formula == ProgressionFormula.EXPONENTIAL:
        return True
    return progression.formula == ProgressionFormula.CUSTOM and progression.custom_formula is None


def _exponential_peak_is_finite(progression: ProgressionConfig) -> bool:
    try:
        peak = progression.base_xp_requirement * math.pow(
            progression.level_multiplier, progression.max_level - 1
        )
    except OverflowError:
        return False
    return math.isfinite(peak)
