"""
Achievement catalog

Built once at import and exposed read-only as CATALOG (id -> definition).
Per-user state never lives here.
"""

from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from devxp.models.achievement import (
    AchievementCategory,
    AchievementContext,
    AchievementDefinition,
    AchievementPredicate,
)

# Id prefix -> AchievementContext counter used for progress
PROGRESS_FIELDS_BY_PREFIX = (
    ("git_commit_", "git_commit_count"),
    ("git_branch_", "git_branch_count"),
    ("git_merge_", "git_merge_count"),
    ("milestone_streak_", "daily_streak"),
    ("productivity_files_", "files_created"),
    ("productivity_loc_", "lines_of_code"),
    ("productivity_tests_", "tests_run"),
    ("speed_", "session_duration"),
)

EXPLORER_TOOLS = ["npm", "yarn", "git", "docker", "kubectl", "aws", "terraform", "vim", "nano", "code"]


def progress_field_for(achievement_id: str) -> Optional[str]:
    """Context counter an achievement tracks, derived from its id"""
    for prefix, field_name in PROGRESS_FIELDS_BY_PREFIX:
        if achievement_id.startswith(prefix):
            return field_name
    if achievement_id.startswith("terminal_") and "commands" in achievement_id:
        return "total_commands"
    return None


def _history(ctx: AchievementContext) -> List[str]:
    return ctx.command_history or []


def _at_least(field_name: str, threshold: int) -> AchievementPredicate:
    def check(ctx: AchievementContext) -> bool:
        return (getattr(ctx, field_name) or 0) >= threshold
    return check


def _perfect_tests(ctx: AchievementContext) -> bool:
    if not ctx.tests_run or not ctx.tests_passed:
        return False
    return ctx.tests_passed >= 10 and ctx.tests_passed == ctx.tests_run


def _explored_tools(ctx: AchievementContext) -> bool:
    used = [tool for tool in EXPLORER_TOOLS if any(cmd.startswith(tool) for cmd in _history(ctx))]
    return len(used) >= 10


def _quick_session(ctx: AchievementContext) -> bool:
    return (ctx.session_duration or 0) < 30 and (ctx.git_commit_count or 0) >= 1


def _hello_world(ctx: AchievementContext) -> bool:
    return any(
        'echo "Hello, World!"' in cmd or "echo 'Hello, World!'" in cmd
        for cmd in _history(ctx)
    )


def _hour_between(start: int, end: int) -> AchievementPredicate:
    def check(ctx: AchievementContext) -> bool:
        return ctx.current_hour is not None and start <= ctx.current_hour < end
    return check


_definitions: Dict[str, AchievementDefinition] = {}


def _define(
    id: str,
    name: str,
    description: str,
    category: AchievementCategory,
    goal: int,
    predicate: AchievementPredicate,
    hidden: bool = False,
) -> None:
    _definitions[id] = AchievementDefinition(
        id=id,
        name=name,
        description=description,
        category=category,
        goal=goal,
        predicate=predicate,
        hidden=hidden,
        progress_field=progress_field_for(id),
    )


# ========== GIT MASTER ==========
_define("git_commit_1", "First Commit", "Make your first commit.",
        AchievementCategory.GIT_MASTER, 1, _at_least("git_commit_count", 1))
_define("git_commit_10", "Commit Apprentice", "Make 10 commits.",
        AchievementCategory.GIT_MASTER, 10, _at_least("git_commit_count", 10))
_define("git_commit_100", "Commit Centurion", "Make 100 commits.",
        AchievementCategory.GIT_MASTER, 100, _at_least("git_commit_count", 100))
_define("git_commit_1000", "Commit Legend", "Make 1000 commits. You are a true Git master!",
        AchievementCategory.GIT_MASTER, 1000, _at_least("git_commit_count", 1000))
_define("git_branch_master", "Branch Manager", "Create and manage 10 different branches.",
        AchievementCategory.GIT_MASTER, 10, _at_least("git_branch_count", 10))
_define("git_merge_expert", "Merge Expert", "Successfully complete 50 merges.",
        AchievementCategory.GIT_MASTER, 50, _at_least("git_merge_count", 50))

# ========== TERMINAL NINJA ==========
_define("terminal_100_commands", "Command Runner", "Execute 100 terminal commands.",
        AchievementCategory.TERMINAL_NINJA, 100, _at_least("total_commands", 100))
_define("terminal_1000_commands", "Command Master", "Execute 1000 terminal commands.",
        AchievementCategory.TERMINAL_NINJA, 1000, _at_least("total_commands", 1000))
_define("terminal_diverse", "Command Diversity", "Use 50 different unique commands.",
        AchievementCategory.TERMINAL_NINJA, 50, _at_least("unique_commands", 50))
_define("terminal_pipe_master", "Pipe Master", "Use pipes in 20 commands.",
        AchievementCategory.TERMINAL_NINJA, 20,
        lambda ctx: len([cmd for cmd in _history(ctx) if "|" in cmd]) >= 20)

# ========== MILESTONES ==========
_define("milestone_streak_7", "Week Warrior", "Maintain a 7-day usage streak.",
        AchievementCategory.MILESTONE, 7, _at_least("daily_streak", 7))
_define("milestone_streak_30", "Monthly Master", "Maintain a 30-day usage streak.",
        AchievementCategory.MILESTONE, 30, _at_least("daily_streak", 30))
_define("milestone_streak_100", "Century Streak", "Maintain a 100-day usage streak. Incredible dedication!",
        AchievementCategory.MILESTONE, 100, _at_least("daily_streak", 100))
_define("milestone_streak_365", "Year of Code", "Maintain a 365-day usage streak. A full year of coding!",
        AchievementCategory.MILESTONE, 365, _at_least("daily_streak", 365))

# ========== PRODUCTIVITY ==========
_define("productivity_files_100", "File Creator", "Create 100 files.",
        AchievementCategory.PRODUCTIVITY, 100, _at_least("files_created", 100))
_define("productivity_loc_10000", "Code Writer", "Write 10,000 lines of code.",
        AchievementCategory.PRODUCTIVITY, 10000, _at_least("lines_of_code", 10000))
_define("productivity_tests_100", "Test Runner", "Run 100 tests.",
        AchievementCategory.PRODUCTIVITY, 100, _at_least("tests_run", 100))
_define("productivity_perfect_tests", "Perfect Tester", "Have all tests pass in 10 consecutive test runs.",
        AchievementCategory.PRODUCTIVITY, 10, _perfect_tests)

# ========== EXPLORER ==========
_define("explorer_new_tools", "Tool Explorer", "Try 10 different CLI tools.",
        AchievementCategory.EXPLORER, 10, _explored_tools)

# ========== SPEEDRUNNER ==========
_define("speed_quick_session", "Quick Session", "Complete a productive session in under 30 minutes.",
        AchievementCategory.SPEEDRUNNER, 1, _quick_session)
_define("speed_marathon", "Marathon Coder", "Code for 8 hours straight in a single session.",
        AchievementCategory.SPEEDRUNNER, 480, _at_least("session_duration", 480))

# ========== HIDDEN ==========
_define("hidden_sudo_sandwich", "Make me a sandwich", "What? Make it yourself! (Try with sudo)",
        AchievementCategory.HIDDEN, 1,
        lambda ctx: "sudo make me a sandwich" in _history(ctx), hidden=True)
_define("hidden_rm_rf", "Living Dangerously", "You tried the forbidden command... thankfully we caught it!",
        AchievementCategory.HIDDEN, 1,
        lambda ctx: any("rm -rf /" in cmd for cmd in _history(ctx)), hidden=True)
_define("hidden_vim_exit", "Vim Escape Artist", "Successfully exit Vim (the eternal struggle).",
        AchievementCategory.HIDDEN, 1,
        lambda ctx: any(cmd in (":q", ":wq", ":q!") for cmd in _history(ctx)), hidden=True)
_define("hidden_hello_world", "Hello, World!", "Echo the classic programmer greeting.",
        AchievementCategory.HIDDEN, 1, _hello_world, hidden=True)
_define("hidden_konami", "Konami Code", "Up, Up, Down, Down, Left, Right, Left, Right, B, A.",
        AchievementCategory.HIDDEN, 1,
        lambda ctx: ctx.custom_metrics.get("konami_code") is True, hidden=True)
_define("hidden_night_owl", "Night Owl", "Code between 2 AM and 5 AM.",
        AchievementCategory.HIDDEN, 1, _hour_between(2, 5), hidden=True)
_define("hidden_early_bird", "Early Bird", "Start coding before 6 AM.",
        AchievementCategory.HIDDEN, 1, _hour_between(0, 6), hidden=True)


CATALOG: Mapping[str, AchievementDefinition] = MappingProxyType(dict(_definitions))


def build_catalog(definitions: List[AchievementDefinition]) -> Mapping[str, AchievementDefinition]:
    """Read-only catalog from an explicit list (ids must be unique)"""
    catalog: Dict[str, AchievementDefinition] = {}
    for definition in definitions:
        if definition.id in catalog:
            raise ValueError(f"Duplicate achievement id: {definition.id}")
        catalog[definition.id] = definition
    return MappingProxyType(catalog)
