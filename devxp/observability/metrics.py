"""
Prometheus metrics definitions for the devxp engine.

Metrics are organized by category:
- XP metrics: XP awarded, level ups, multiplier clamping
- Achievement metrics: unlocks by category
- Challenge metrics: completions by kind
- Event metrics: notification handler failures

The host process decides whether and how to expose the default registry.
"""

import logging
from prometheus_client import Counter

logger = logging.getLogger(__name__)

# =============================================================================
# XP Metrics
# =============================================================================

xp_awarded_total = Counter(
    "devxp_xp_awarded_total",
    "Total XP computed for activities",
    ["activity_type"],
)

level_ups_total = Counter(
    "devxp_level_ups_total",
    "Total predicted level ups",
)

multiplier_clamped_total = Counter(
    "devxp_multiplier_clamped_total",
    "Combined multipliers clamped to a bound",
    ["bound"],  # bound: maximum/minimum
)

# =============================================================================
# Achievement & Challenge Metrics
# =============================================================================

achievements_unlocked_total = Counter(
    "devxp_achievements_unlocked_total",
    "Total achievements unlocked",
    ["category"],
)

challenges_completed_total = Counter(
    "devxp_challenges_completed_total",
    "Total challenges completed",
    ["kind"],  # kind: daily/weekly/special
)

# =============================================================================
# Event Metrics
# =============================================================================

event_handler_errors_total = Counter(
    "devxp_event_handler_errors_total",
    "Notification handlers that raised",
    ["event"],
)
