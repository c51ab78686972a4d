"""Unit tests for level progression (devxp/gamification/progression.py)"""
import math

import pytest

from devxp.config import ProgressionConfig, ProgressionFormula
from devxp.exceptions import ConfigurationError
from devxp.gamification.progression import UNREACHABLE, ProgressionCalculator, round_half_up


@pytest.fixture
def calculator():
    return ProgressionCalculator()


# ============================================================================
# Per-Level Requirements
# ============================================================================

def test_exponential_defaults(calculator):
    """Exponential curve: round(100 * 1.5^(n-1)), halves rounded up"""
    assert calculator.xp_for_level(1) == 100
    assert calculator.xp_for_level(2) == 150
    assert calculator.xp_for_level(3) == 225
    assert calculator.xp_for_level(4) == 338
    assert calculator.xp_for_level(5) == 506


def test_exponential_strictly_increasing(calculator):
    """Each level needs more XP than the one before"""
    for level in range(1, 100):
        assert calculator.xp_for_level(level + 1) > calculator.xp_for_level(level)


def test_level_zero_and_negative_need_nothing(calculator):
    assert calculator.xp_for_level(0) == 0
    assert calculator.xp_for_level(-5) == 0
    assert calculator.total_xp_for_level(0) == 0


def test_level_beyond_max_is_unreachable():
    calculator = ProgressionCalculator(ProgressionConfig(max_level=5))
    assert calculator.xp_for_level(6) == UNREACHABLE
    assert math.isinf(calculator.total_xp_for_level(6))


def test_linear_formula():
    calculator = ProgressionCalculator(ProgressionConfig(formula=ProgressionFormula.LINEAR))
    assert calculator.xp_for_level(1) == 100
    assert calculator.xp_for_level(3) == 300
    assert calculator.total_xp_for_level(3) == 600


def test_fibonacci_formula():
    calculator = ProgressionCalculator(ProgressionConfig(formula=ProgressionFormula.FIBONACCI))
    assert [calculator.xp_for_level(n) for n in range(1, 6)] == [100, 200, 300, 500, 800]


def test_custom_formula():
    config = ProgressionConfig(formula=ProgressionFormula.CUSTOM, custom_formula=lambda n: n * 10)
    calculator = ProgressionCalculator(config)
    assert calculator.xp_for_level(3) == 30
    assert calculator.total_xp_for_level(3) == 60


def test_custom_kind_without_callable_falls_back_to_exponential():
    calculator = ProgressionCalculator(ProgressionConfig(formula=ProgressionFormula.CUSTOM))
    assert calculator.xp_for_level(3) == 225


def test_custom_formula_that_raises_is_configuration_error():
    def broken(level):
        raise ZeroDivisionError("boom")

    calculator = ProgressionCalculator(
        ProgressionConfig(formula=ProgressionFormula.CUSTOM, custom_formula=broken)
    )
    with pytest.raises(ConfigurationError) as exc_info:
        calculator.xp_for_level(2)

    assert exc_info.value.config_key == "progression.custom_formula"
    assert isinstance(exc_info.value.cause, ZeroDivisionError)


@pytest.mark.parametrize("formula", [lambda n: -1, lambda n: "100", lambda n: None])
def test_custom_formula_invalid_values(formula):
    calculator = ProgressionCalculator(
        ProgressionConfig(formula=ProgressionFormula.CUSTOM, custom_formula=formula)
    )
    with pytest.raises(ConfigurationError):
        calculator.xp_for_level(1)


def test_custom_formula_must_not_decrease():
    calculator = ProgressionCalculator(
        ProgressionConfig(formula=ProgressionFormula.CUSTOM, custom_formula=lambda n: 100 - n)
    )
    with pytest.raises(ConfigurationError):
        calculator.xp_for_level(2)


def test_configure_swaps_formula(calculator):
    calculator.configure(ProgressionConfig(formula=ProgressionFormula.LINEAR, base_xp_requirement=50))
    assert calculator.xp_for_level(2) == 100


def test_exponential_overflow_is_configuration_error():
    """A cap far beyond what floats can hold fails as configuration, not OverflowError"""
    calculator = ProgressionCalculator(ProgressionConfig(max_level=2000))

    with pytest.raises(ConfigurationError) as exc_info:
        calculator.xp_to_next_level(1999, 0)

    assert exc_info.value.config_key == "progression.max_level"
    assert isinstance(exc_info.value.cause, OverflowError)


# ============================================================================
# Cumulative Thresholds
# ============================================================================

FORMULA_CONFIGS = {
    "linear": ProgressionConfig(formula=ProgressionFormula.LINEAR),
    "exponential": ProgressionConfig(),
    "fibonacci": ProgressionConfig(formula=ProgressionFormula.FIBONACCI),
    "custom": ProgressionConfig(formula=ProgressionFormula.CUSTOM, custom_formula=lambda n: 10 * n * n),
}


@pytest.fixture(params=list(FORMULA_CONFIGS), ids=list(FORMULA_CONFIGS))
def any_calculator(request):
    """One calculator per supported formula"""
    return ProgressionCalculator(FORMULA_CONFIGS[request.param])


def test_total_is_sum_of_levels(any_calculator):
    running = 0
    for level in range(1, any_calculator.config.max_level + 1):
        running += any_calculator.xp_for_level(level)
        assert any_calculator.total_xp_for_level(level) == running


def test_level_from_xp_is_threshold_exact(any_calculator):
    """A total exactly at a level's cumulative requirement maps to that level"""
    for level in range(1, any_calculator.config.max_level + 1):
        assert any_calculator.level_from_xp(any_calculator.total_xp_for_level(level)) == level


def test_level_from_xp_between_thresholds(calculator):
    assert calculator.level_from_xp(0) == 1
    assert calculator.level_from_xp(249) == 1
    assert calculator.level_from_xp(250) == 2
    assert calculator.level_from_xp(474) == 2
    assert calculator.level_from_xp(475) == 3


def test_level_from_xp_caps_at_max_level():
    calculator = ProgressionCalculator(ProgressionConfig(max_level=5))
    assert calculator.level_from_xp(10 ** 9) == 5


def test_xp_to_next_level(calculator):
    # level 2 spans 250..475
    assert calculator.xp_to_next_level(2, 300) == 175
    assert calculator.xp_to_next_level(2, 250) == 225


def test_xp_to_next_level_at_cap_is_unreachable():
    calculator = ProgressionCalculator(ProgressionConfig(max_level=5))
    assert calculator.xp_to_next_level(5, 10_000) == UNREACHABLE


def test_progress_percent(calculator):
    assert calculator.progress_percent(2, 250) == 0.0
    assert calculator.progress_percent(2, 300) == pytest.approx(22.222, rel=1e-3)
    assert calculator.progress_percent(2, 10_000) == 100.0


def test_progress_percent_at_cap_is_full():
    calculator = ProgressionCalculator(ProgressionConfig(max_level=5))
    assert calculator.progress_percent(5, 0) == 100.0


# ============================================================================
# Display Helpers
# ============================================================================

@pytest.mark.parametrize("level,title", [
    (1, "Novice Developer"),
    (15, "Junior Developer"),
    (40, "Senior Developer"),
    (66, "Architect"),
    (100, "Legendary Developer"),
    (0, "Developer"),
    (150, "Developer"),
])
def test_level_title(level, title):
    assert ProgressionCalculator.level_title(level) == title


def test_describe_level(calculator):
    summary = calculator.describe_level(300)

    assert summary["current_level"] == 2
    assert summary["title"] == "Novice Developer"
    assert summary["xp_in_current_level"] == 50
    assert summary["xp_to_next_level"] == 175
    assert summary["total_xp_for_next_level"] == 475


def test_round_half_up():
    assert round_half_up(337.5) == 338
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4) == 2
    assert round_half_up(-2.5) == -3
