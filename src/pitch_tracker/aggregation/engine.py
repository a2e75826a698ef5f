"""Aggregation engine: raw activity rows to an AggregateSnapshot."""

from datetime import date, timezone, tzinfo
from typing import Optional, Sequence

from pitch_tracker.models.activity import ActivityEvent, AggregateSnapshot
from pitch_tracker.models.profile import Profile

from .metrics import DEFAULT_SERIES_BUCKETS, build_leaderboard, build_series, compute_totals, hit_rate


class AggregationEngine:
    """
    Computes totals, hit rate, leaderboard and series for one scope.
    Pure: same inputs (and today) give the same snapshot. Rows from actors
    outside the member set are ignored.
    """

    def __init__(self, series_buckets: int = DEFAULT_SERIES_BUCKETS, tz: tzinfo = timezone.utc):
        if series_buckets < 1:
            raise ValueError("series_buckets must be >= 1")
        self.series_buckets = series_buckets
        self.tz = tz

    def aggregate(
        self,
        scope_id: Optional[str],
        members: Sequence[Profile],
        rows: Sequence[ActivityEvent],
        *,
        today: Optional[date] = None,
    ) -> AggregateSnapshot:
        """Build a fresh snapshot. Zero members gives zero totals and an all-zero series."""
        member_ids = {m.id for m in members}
        events = [ev for ev in rows if ev.actor_id in member_ids]
        pitches, sales = compute_totals(events)
        return AggregateSnapshot(
            scope_id=scope_id,
            total_pitches=pitches,
            total_sales=sales,
            hit_rate=hit_rate(pitches, sales),
            leaderboard=tuple(build_leaderboard(members, events)),
            series=tuple(build_series(events, buckets=self.series_buckets, today=today, tz=self.tz)),
        )

    def empty(self, scope_id: Optional[str] = None, *, today: Optional[date] = None) -> AggregateSnapshot:
        """Snapshot shown before the first refresh completes."""
        return self.aggregate(scope_id, [], [], today=today)
