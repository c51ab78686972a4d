"""Unit tests for the achievement catalog and rule engine"""
from datetime import datetime
from unittest.mock import Mock

import pytest

from devxp import events
from devxp.events import EventEmitter
from devxp.exceptions import ConfigurationError
from devxp.gamification.achievement_catalog import CATALOG, build_catalog, progress_field_for
from devxp.gamification.achievement_system import AchievementEngine, rarity
from devxp.models.achievement import (
    AchievementCategory,
    AchievementContext,
    AchievementDefinition,
    AchievementRarity,
)


NOW = datetime(2024, 1, 10, 12, 0)


@pytest.fixture
def achievements(emitter):
    return AchievementEngine(emitter=emitter)


def _definition(id, category=AchievementCategory.EXPLORER, goal=1, predicate=None, **kwargs):
    return AchievementDefinition(
        id=id,
        name=id.replace("_", " ").title(),
        description=f"Test achievement {id}",
        category=category,
        goal=goal,
        predicate=predicate or (lambda ctx: True),
        **kwargs,
    )


# ============================================================================
# Catalog
# ============================================================================

def test_catalog_size_and_categories():
    assert len(CATALOG) == 28
    assert {d.category for d in CATALOG.values()} == set(AchievementCategory)
    assert sum(1 for d in CATALOG.values() if d.hidden) == 7


def test_catalog_is_read_only():
    with pytest.raises(TypeError):
        CATALOG["new"] = _definition("new")


@pytest.mark.parametrize("achievement_id,field_name", [
    ("git_commit_100", "git_commit_count"),
    ("git_branch_master", "git_branch_count"),
    ("git_merge_expert", "git_merge_count"),
    ("milestone_streak_30", "daily_streak"),
    ("terminal_1000_commands", "total_commands"),
    ("productivity_loc_10000", "lines_of_code"),
    ("speed_marathon", "session_duration"),
    ("terminal_diverse", None),
    ("hidden_konami", None),
])
def test_progress_field_by_prefix(achievement_id, field_name):
    assert progress_field_for(achievement_id) == field_name


def test_build_catalog_rejects_duplicates():
    with pytest.raises(ValueError):
        build_catalog([_definition("dup"), _definition("dup")])


def test_definition_goal_must_be_positive():
    with pytest.raises(ValueError):
        _definition("zero", goal=0)


@pytest.mark.parametrize("achievement_id,expected", [
    ("git_commit_1", AchievementRarity.COMMON),
    ("git_commit_10", AchievementRarity.UNCOMMON),
    ("git_commit_100", AchievementRarity.RARE),
    ("git_commit_1000", AchievementRarity.EPIC),
    ("hidden_vim_exit", AchievementRarity.LEGENDARY),
])
def test_rarity(achievement_id, expected):
    assert rarity(CATALOG[achievement_id]) == expected


# ============================================================================
# Evaluation
# ============================================================================

def test_commit_counter_unlocks_and_caps_progress(achievements, test_user_id):
    """Counter 15 unlocks the goal-10 achievement with progress exactly 10"""
    context = AchievementContext(git_commit_count=15, session_duration=60)
    unlocked = achievements.evaluate(test_user_id, context, now=NOW)

    ids = [n.achievement_id for n in unlocked]
    assert ids == ["git_commit_1", "git_commit_10"]

    state = achievements.get_state(test_user_id, "git_commit_10")
    assert state.unlocked is True
    assert state.unlocked_at == NOW
    assert state.current_progress == 10

    assert achievements.get_state(test_user_id, "git_commit_100").current_progress == 15
    assert achievements.get_state(test_user_id, "git_commit_1000").current_progress == 15


def test_evaluation_is_idempotent(achievements, emitter, test_user_id):
    handler = Mock()
    emitter.on(events.ACHIEVEMENT_UNLOCK, handler)
    context = AchievementContext(git_commit_count=15, session_duration=60)

    first = achievements.evaluate(test_user_id, context, now=NOW)
    second = achievements.evaluate(test_user_id, context, now=NOW)

    assert len(first) == 2
    assert second == []
    assert handler.call_count == 2
    assert len(achievements.recent_notifications(test_user_id)) == 2


def test_progress_never_decreases(achievements, test_user_id):
    achievements.evaluate(test_user_id, AchievementContext(git_commit_count=40, session_duration=60), now=NOW)
    achievements.evaluate(test_user_id, AchievementContext(git_commit_count=5, session_duration=60), now=NOW)

    assert achievements.get_state(test_user_id, "git_commit_100").current_progress == 40


def test_locked_progress_stays_below_goal(emitter, test_user_id):
    catalog = build_catalog([
        _definition("gated", goal=10, predicate=lambda ctx: False, progress_field="tests_run"),
    ])
    engine = AchievementEngine(catalog=catalog, emitter=emitter)

    engine.evaluate(test_user_id, AchievementContext(tests_run=15), now=NOW)

    state = engine.get_state(test_user_id, "gated")
    assert state.unlocked is False
    assert state.current_progress == 9


def test_quick_session_requires_commit(achievements, test_user_id):
    unlocked = achievements.evaluate(test_user_id, AchievementContext(session_duration=10), now=NOW)
    assert "speed_quick_session" not in [n.achievement_id for n in unlocked]

    unlocked = achievements.evaluate(
        test_user_id, AchievementContext(session_duration=10, git_commit_count=1), now=NOW
    )
    assert "speed_quick_session" in [n.achievement_id for n in unlocked]


def test_hidden_achievements_from_command_history(achievements, test_user_id):
    context = AchievementContext(
        command_history=["ls", "sudo make me a sandwich", ":wq", 'echo "Hello, World!"'],
        current_hour=3,
    )
    unlocked = {n.achievement_id for n in achievements.evaluate(test_user_id, context, now=NOW)}

    assert {"hidden_sudo_sandwich", "hidden_vim_exit", "hidden_hello_world",
            "hidden_night_owl", "hidden_early_bird"} <= unlocked
    assert "hidden_rm_rf" not in unlocked


def test_konami_code_custom_metric(achievements, test_user_id):
    context = AchievementContext(custom_metrics={"konami_code": True})
    unlocked = [n.achievement_id for n in achievements.evaluate(test_user_id, context, now=NOW)]
    assert unlocked == ["hidden_konami"]


def test_perfect_tests(achievements, test_user_id):
    partial = AchievementContext(tests_run=12, tests_passed=11)
    assert "productivity_perfect_tests" not in [
        n.achievement_id for n in achievements.evaluate(test_user_id, partial, now=NOW)
    ]

    perfect = AchievementContext(tests_run=12, tests_passed=12)
    assert "productivity_perfect_tests" in [
        n.achievement_id for n in achievements.evaluate(test_user_id, perfect, now=NOW)
    ]


def test_predicate_error_is_configuration_error(emitter, test_user_id):
    def broken(ctx):
        raise KeyError("missing")

    engine = AchievementEngine(catalog=build_catalog([_definition("broken", predicate=broken)]), emitter=emitter)

    with pytest.raises(ConfigurationError) as exc_info:
        engine.evaluate(test_user_id, AchievementContext(), now=NOW)

    assert exc_info.value.config_key == "achievements.broken"


# ============================================================================
# Notifications
# ============================================================================

def test_progress_threshold_notifications(emitter, test_user_id):
    catalog = build_catalog([
        _definition("runner", goal=100, predicate=lambda ctx: (ctx.tests_run or 0) >= 100,
                    progress_field="tests_run"),
    ])
    engine = AchievementEngine(catalog=catalog, emitter=emitter)
    handler = Mock()
    emitter.on(events.ACHIEVEMENT_PROGRESS, handler)

    # 0 -> 60 crosses 25 and 50; the lowest crossed threshold is reported
    engine.evaluate(test_user_id, AchievementContext(tests_run=60), now=NOW)
    engine.evaluate(test_user_id, AchievementContext(tests_run=80), now=NOW)
    engine.evaluate(test_user_id, AchievementContext(tests_run=80), now=NOW)

    percents = [call.args[0]["percent"] for call in handler.call_args_list]
    assert percents == [25, 75]


def test_combo_emitted_once_per_category(emitter, test_user_id):
    catalog = build_catalog([
        _definition("first", predicate=lambda ctx: (ctx.build_count or 0) >= 1),
        _definition("second", predicate=lambda ctx: (ctx.build_count or 0) >= 2),
        _definition("other", category=AchievementCategory.SPEEDRUNNER, predicate=lambda ctx: False),
    ])
    engine = AchievementEngine(catalog=catalog, emitter=emitter)
    handler = Mock()
    emitter.on(events.ACHIEVEMENT_COMBO, handler)

    engine.evaluate(test_user_id, AchievementContext(build_count=1), now=NOW)
    assert handler.call_count == 0

    engine.evaluate(test_user_id, AchievementContext(build_count=2), now=NOW)
    engine.evaluate(test_user_id, AchievementContext(build_count=3), now=NOW)

    handler.assert_called_once_with({"user_id": test_user_id, "category": "Explorer"})


def test_combo_emitted_when_later_predicate_raises(emitter, test_user_id):
    def broken(ctx):
        raise KeyError("missing")

    catalog = build_catalog([
        _definition("only", predicate=lambda ctx: True),
        _definition("broken", category=AchievementCategory.SPEEDRUNNER, predicate=broken),
    ])
    engine = AchievementEngine(catalog=catalog, emitter=emitter)
    handler = Mock()
    emitter.on(events.ACHIEVEMENT_COMBO, handler)

    with pytest.raises(ConfigurationError):
        engine.evaluate(test_user_id, AchievementContext(), now=NOW)

    assert engine.get_state(test_user_id, "only").unlocked is True
    handler.assert_called_once_with({"user_id": test_user_id, "category": "Explorer"})


def test_notification_ring_buffer(emitter, test_user_id):
    catalog = build_catalog([_definition(f"a{i}") for i in range(3)])
    engine = AchievementEngine(catalog=catalog, emitter=emitter, notification_capacity=2)

    engine.evaluate(test_user_id, AchievementContext(), now=NOW)

    assert [n.achievement_id for n in engine.recent_notifications(test_user_id)] == ["a1", "a2"]
    assert [n.achievement_id for n in engine.recent_notifications(test_user_id, count=1)] == ["a2"]


def test_failing_handler_does_not_stop_evaluation(achievements, emitter, test_user_id):
    emitter.on(events.ACHIEVEMENT_UNLOCK, Mock(side_effect=RuntimeError("handler bug")))

    unlocked = achievements.evaluate(test_user_id, AchievementContext(git_commit_count=10), now=NOW)

    assert "git_commit_10" in [n.achievement_id for n in unlocked]


# ============================================================================
# Queries
# ============================================================================

def test_list_achievements_hides_hidden(achievements, test_user_id):
    assert len(achievements.list_achievements(test_user_id)) == 21
    assert len(achievements.list_achievements(test_user_id, include_hidden=True)) == 28


def test_statistics(achievements, test_user_id):
    achievements.evaluate(test_user_id, AchievementContext(git_commit_count=15, session_duration=60), now=NOW)

    stats = achievements.get_statistics(test_user_id)

    assert stats["total"] == 28
    assert stats["unlocked"] == 2
    assert stats["percentage"] == 7
    assert stats["by_category"] == {"Git Master": 2}
    assert stats["total_by_category"]["Hidden"] == 7
    assert [a["achievement_id"] for a in stats["next_to_unlock"]] == [
        "git_commit_100", "speed_marathon", "git_commit_1000",
    ]
    assert [a["achievement_id"] for a in stats["recent_unlocks"]] == ["git_commit_1", "git_commit_10"]


def test_reset_user(achievements, test_user_id):
    achievements.evaluate(test_user_id, AchievementContext(git_commit_count=1, session_duration=60), now=NOW)
    achievements.reset_user(test_user_id)

    assert achievements.get_state(test_user_id, "git_commit_1").unlocked is False
    assert achievements.recent_notifications(test_user_id) == []


def test_users_are_isolated(achievements):
    achievements.evaluate("alice", AchievementContext(git_commit_count=1, session_duration=60), now=NOW)

    assert achievements.get_state("alice", "git_commit_1").unlocked is True
    assert achievements.get_state("bob", "git_commit_1").unlocked is False


def test_snapshot_restore(achievements, test_user_id):
    achievements.evaluate(test_user_id, AchievementContext(git_commit_count=15, session_duration=60), now=NOW)

    fresh = AchievementEngine(emitter=EventEmitter())
    fresh.restore(achievements.snapshot())

    assert fresh.get_state(test_user_id, "git_commit_10").unlocked is True
    assert fresh.get_state(test_user_id, "git_commit_100").current_progress == 15
    assert len(fresh.recent_notifications(test_user_id)) == 2
