"""XP computation and event models"""
from enum import Enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from devxp.utils.datetime_helpers import to_naive_local


class MultiplierKind(str, Enum):
    """Bonus factor categories"""
    DIFFICULTY = "difficulty"
    STREAK = "streak"
    FIRST_TIME = "first_time"
    WEEKEND = "weekend"
    HAPPY_HOUR = "happy_hour"
    PREMIUM = "premium"
    QUALITY_SCORE = "quality_score"
    CUSTOM = "custom"


class Multiplier(BaseModel):
    """A named bonus factor applied multiplicatively to base XP"""
    kind: MultiplierKind
    factor: float = Field(gt=0)
    description: str
    is_active: bool = True
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(value)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < to_naive_local(now)


class BreakdownStep(BaseModel):
    """One logged step of an XP computation"""
    model_config = ConfigDict(frozen=True)

    step: str
    value: float
    description: str


class XPComputationResult(BaseModel):
    """Outcome of calculating XP for a single activity occurrence"""
    model_config = ConfigDict(frozen=True)

    base_xp: int
    applied_multipliers: list[Multiplier]
    total_multiplier: float
    final_xp: int = Field(ge=0)
    breakdown_steps: list[BreakdownStep]
    would_level_up: bool
    predicted_new_level: Optional[int] = None
    warnings: list[str] = Field(default_factory=list)


class XPEventType(str, Enum):
    """Why XP was awarded"""
    ACTIVITY = "activity"
    ACHIEVEMENT = "achievement"
    CHALLENGE = "challenge"
    MILESTONE = "milestone"
    BONUS = "bonus"


class XPEvent(BaseModel):
    """XP award record handed to the persistence collaborator"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    event_type: XPEventType = XPEventType.ACTIVITY
    points: int
    base_points: int
    activity_type: Optional[str] = None
    reason: str
    multipliers: list[Multiplier] = Field(default_factory=list)
    total_multiplier: float = 1.0
    triggered_level_up: bool = False
    previous_level: Optional[int] = None
    new_level: Optional[int] = None
    timestamp: datetime = Field(default_factory=datetime.now)
