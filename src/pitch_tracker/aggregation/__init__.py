"""Aggregation: pure metrics, the engine, and the live dashboard around it."""

from pitch_tracker.aggregation.dashboard import DashboardState, LiveDashboard, Period
from pitch_tracker.aggregation.engine import AggregationEngine
from pitch_tracker.aggregation.metrics import (
    build_leaderboard,
    build_series,
    compute_totals,
    filter_leaderboard,
    hit_rate,
)

__all__ = [
    "AggregationEngine",
    "DashboardState",
    "LiveDashboard",
    "Period",
    "build_leaderboard",
    "build_series",
    "compute_totals",
    "filter_leaderboard",
    "hit_rate",
]
