"""Activity models: what the caller hands the engine for one occurrence"""
from enum import Enum
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from devxp.models.xp import Multiplier
from devxp.utils.datetime_helpers import to_naive_local


class ActivityType(str, Enum):
    """Developer activity kinds eligible for XP"""
    # Git
    GIT_COMMIT = "git_commit"
    GIT_PUSH = "git_push"
    GIT_PULL = "git_pull"
    GIT_MERGE = "git_merge"
    GIT_BRANCH_CREATE = "git_branch_create"
    GIT_BRANCH_DELETE = "git_branch_delete"
    GIT_STASH = "git_stash"
    GIT_TAG = "git_tag"
    GIT_REBASE = "git_rebase"

    # Terminal
    TERMINAL_COMMAND = "terminal_command"
    TERMINAL_PIPE = "terminal_pipe"
    TERMINAL_SCRIPT = "terminal_script"
    TERMINAL_ALIAS = "terminal_alias"

    # Files
    FILE_CREATE = "file_create"
    FILE_EDIT = "file_edit"
    FILE_DELETE = "file_delete"
    FILE_RENAME = "file_rename"
    DIRECTORY_CREATE = "directory_create"

    # Development
    CODE_COMPILE = "code_compile"
    CODE_BUILD = "code_build"
    CODE_TEST = "code_test"
    CODE_LINT = "code_lint"
    CODE_FORMAT = "code_format"
    CODE_DEBUG = "code_debug"

    # Packages
    PACKAGE_INSTALL = "package_install"
    PACKAGE_UPDATE = "package_update"
    PACKAGE_PUBLISH = "package_publish"

    # Docker
    DOCKER_BUILD = "docker_build"
    DOCKER_RUN = "docker_run"
    DOCKER_COMPOSE = "docker_compose"

    # Database
    DATABASE_QUERY = "database_query"
    DATABASE_MIGRATION = "database_migration"
    DATABASE_BACKUP = "database_backup"

    # Deployment
    DEPLOY_STAGING = "deploy_staging"
    DEPLOY_PRODUCTION = "deploy_production"
    DEPLOY_ROLLBACK = "deploy_rollback"

    # Learning
    DOCUMENTATION_READ = "documentation_read"
    DOCUMENTATION_WRITE = "documentation_write"
    TUTORIAL_COMPLETE = "tutorial_complete"

    # Collaboration
    PR_CREATE = "pr_create"
    PR_REVIEW = "pr_review"
    PR_MERGE = "pr_merge"
    ISSUE_CREATE = "issue_create"
    ISSUE_CLOSE = "issue_close"

    CUSTOM = "custom"


class Difficulty(str, Enum):
    """Activity difficulty levels"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class UserSnapshot(BaseModel):
    """Acting user's progression state at the time of the activity"""
    user_id: str
    level: int = 1
    total_xp: Optional[int] = None  # None: derive from level
    streak_days: int = 0
    is_premium: bool = False


class ActivityContext(BaseModel):
    """Per-occurrence attributes that drive the bonus multipliers"""
    difficulty: Optional[Difficulty] = None
    is_first_time: bool = False
    quality: Optional[float] = Field(default=None, ge=0, le=100)
    time_of_day: Optional[datetime] = None

    @field_validator("time_of_day")
    @classmethod
    def normalize_time_of_day(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(value)


class ActivityOccurrence(BaseModel):
    """One timestamped developer action eligible for XP"""
    activity_type: Union[ActivityType, str]
    user: UserSnapshot
    timestamp: datetime = Field(default_factory=datetime.now)
    context: ActivityContext = Field(default_factory=ActivityContext)
    base_xp: Optional[int] = Field(default=None, ge=0)  # explicit override
    override_multipliers: list[Multiplier] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        """Aware timestamps are stored as naive local time"""
        return to_naive_local(value)

    @property
    def activity_key(self) -> str:
        """Activity type as a plain string"""
        if isinstance(self.activity_type, ActivityType):
            return self.activity_type.value
        return str(self.activity_type)

    @property
    def effective_time(self) -> datetime:
        """Time used for time-of-day and weekend bonuses"""
        return self.context.time_of_day or self.timestamp
