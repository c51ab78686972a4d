"""Achievement models for gamification"""
from dataclasses import dataclass
from enum import Enum
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field


class AchievementCategory(str, Enum):
    """Achievement categories"""
    GIT_MASTER = "Git Master"
    TERMINAL_NINJA = "Terminal Ninja"
    MILESTONE = "Milestone"
    HIDDEN = "Hidden"
    PRODUCTIVITY = "Productivity"
    EXPLORER = "Explorer"
    SPEEDRUNNER = "Speedrunner"


class AchievementRarity(str, Enum):
    """Display rarity derived from goal size and hidden flag"""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class AchievementContext(BaseModel):
    """Snapshot of activity counters supplied by the persistence layer"""
    git_commit_count: Optional[int] = None
    git_branch_count: Optional[int] = None
    git_merge_count: Optional[int] = None
    daily_streak: Optional[int] = None
    total_commands: Optional[int] = None
    unique_commands: Optional[int] = None
    command_history: list[str] = Field(default_factory=list)
    session_duration: Optional[int] = None  # minutes
    files_created: Optional[int] = None
    files_modified: Optional[int] = None
    lines_of_code: Optional[int] = None
    tests_run: Optional[int] = None
    tests_passed: Optional[int] = None
    build_count: Optional[int] = None
    debug_sessions: Optional[int] = None
    custom_metrics: dict[str, Any] = Field(default_factory=dict)
    current_hour: Optional[int] = Field(default=None, ge=0, le=23)


AchievementPredicate = Callable[[AchievementContext], bool]


@dataclass(frozen=True)
class AchievementDefinition:
    """Catalog entry; never holds per-user state"""
    id: str
    name: str
    description: str
    category: AchievementCategory
    goal: int
    predicate: AchievementPredicate
    hidden: bool = False
    progress_field: Optional[str] = None  # AchievementContext counter tracked for progress

    def __post_init__(self):
        if self.goal < 1:
            raise ValueError(f"Achievement {self.id} goal must be >= 1, got {self.goal}")


class AchievementUserState(BaseModel):
    """One user's state for one achievement"""
    achievement_id: str
    unlocked: bool = False
    unlocked_at: Optional[datetime] = None
    current_progress: int = 0


class AchievementNotification(BaseModel):
    """Record of an unlock, kept in the per-user ring buffer"""
    achievement_id: str
    name: str
    description: str
    category: AchievementCategory
    rarity: AchievementRarity
    hidden: bool = False
    unlocked_at: datetime
