"""Challenge models"""
from enum import Enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from devxp.utils.datetime_helpers import to_naive_local


class ChallengeKind(str, Enum):
    """Challenge cadence"""
    DAILY = "daily"
    WEEKLY = "weekly"
    SPECIAL = "special"


class Challenge(BaseModel):
    """A time-boxed, per-user task"""
    id: str
    kind: ChallengeKind
    name: str
    description: str
    required_activity: Optional[str] = None  # None: any activity counts
    required_count: int = Field(ge=1)
    current_progress: int = 0
    reward_xp: int = Field(ge=0)
    expires_at: datetime
    is_completed: bool = False
    completed_at: Optional[datetime] = None

    @field_validator("expires_at", "completed_at")
    @classmethod
    def normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(value)

    def is_expired(self, now: datetime) -> bool:
        return to_naive_local(now) > self.expires_at

    def accepts(self, activity_type: str) -> bool:
        return self.required_activity is None or self.required_activity == activity_type
