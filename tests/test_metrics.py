"""Unit tests for the pure metric functions."""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from pitch_tracker.aggregation.metrics import (
    build_leaderboard,
    build_series,
    compute_totals,
    filter_leaderboard,
    hit_rate,
)
from pitch_tracker.models.activity import ActivityEvent, ActivityKind, LeaderboardEntry
from pitch_tracker.models.profile import Profile, Role

TODAY = date(2026, 3, 10)


def _event(actor: str, kind: ActivityKind, when: datetime | None = None, value: str | None = None) -> ActivityEvent:
    return ActivityEvent(
        actor_id=actor,
        kind=kind,
        occurred_at=when or datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc),
        value=Decimal(value) if value else None,
    )


def _events(actor: str, pitches: int, sales: int) -> list[ActivityEvent]:
    return [_event(actor, ActivityKind.PITCH) for _ in range(pitches)] + [
        _event(actor, ActivityKind.SALE) for _ in range(sales)
    ]


def _seller(pid: str, name: str) -> Profile:
    return Profile(id=pid, name=name, scope_id="org-1", role=Role.SELLER)


class TestHitRate:
    """Tests for hit_rate."""

    def test_zero_pitches_is_zero(self) -> None:
        """No pitches yields 0, never a division error."""
        assert hit_rate(0, 0) == 0
        assert hit_rate(0, 3) == 0

    def test_rounds_half_up(self) -> None:
        """2 of 7 is 28.57%, rounded to 29."""
        assert hit_rate(7, 2) == 29

    def test_exact_half_rounds_up(self) -> None:
        """1 of 8 is 12.5%, rounded to 13."""
        assert hit_rate(8, 1) == 13

    def test_one_third_rounds_down(self) -> None:
        """1 of 3 is 33.3%, rounded to 33."""
        assert hit_rate(3, 1) == 33

    def test_more_sales_than_pitches(self) -> None:
        """Counts are independent; the rate may exceed 100."""
        assert hit_rate(2, 3) == 150

    @pytest.mark.parametrize("pitches", [1, 2, 5, 17, 100])
    def test_bounds_when_sales_within_pitches(self, pitches: int) -> None:
        """0 <= rate <= 100 whenever sales <= pitches."""
        for sales in range(pitches + 1):
            assert 0 <= hit_rate(pitches, sales) <= 100


class TestComputeTotals:
    """Tests for compute_totals."""

    def test_counts_by_kind(self) -> None:
        """Pitches and sales are counted separately."""
        assert compute_totals(_events("a", 4, 1) + _events("b", 2, 2)) == (6, 3)

    def test_empty(self) -> None:
        """No events gives zero totals."""
        assert compute_totals([]) == (0, 0)


class TestBuildLeaderboard:
    """Tests for build_leaderboard."""

    def test_sorted_by_hit_rate_descending(self) -> None:
        """B (2/2 = 100) ranks above A (4/1 = 25)."""
        members = [_seller("a", "Anna"), _seller("b", "Bo")]
        board = build_leaderboard(members, _events("a", 4, 1) + _events("b", 2, 2))
        assert [(e.member_id, e.hit_rate) for e in board] == [("b", 100), ("a", 25)]
        assert board[1].pitches == 4
        assert board[1].sales == 1

    def test_leaders_excluded(self) -> None:
        """Team leaders do not appear on their own board."""
        leader = Profile(id="l", name="Lea", scope_id="org-1", role=Role.TEAM_LEADER)
        board = build_leaderboard([leader, _seller("a", "Anna")], _events("l", 3, 3))
        assert [e.member_id for e in board] == ["a"]

    def test_member_without_activity_gets_zero_entry(self) -> None:
        """Every seller gets an entry even with no events."""
        board = build_leaderboard([_seller("a", "Anna")], [])
        assert board == [LeaderboardEntry(member_id="a", name="Anna", pitches=0, sales=0, hit_rate=0)]

    def test_ties_keep_member_order(self) -> None:
        """Equal hit rates keep the input member order."""
        members = [_seller("c", "Cy"), _seller("a", "Anna"), _seller("b", "Bo")]
        board = build_leaderboard(members, _events("c", 2, 1) + _events("a", 4, 2) + _events("b", 1, 1))
        assert [e.member_id for e in board] == ["b", "c", "a"]

    def test_name_falls_back_to_email(self) -> None:
        """Members without a name are shown by email."""
        member = Profile(id="x", email="x@example.com", scope_id="org-1")
        assert build_leaderboard([member], [])[0].name == "x@example.com"


class TestBuildSeries:
    """Tests for build_series."""

    def test_always_dense(self) -> None:
        """Six consecutive days ending today, even with no events."""
        series = build_series([], today=TODAY)
        assert len(series) == 6
        assert [b.bucket for b in series] == [TODAY - timedelta(days=d) for d in range(5, -1, -1)]
        assert all(b.pitches == 0 and b.sales == 0 and b.hit_rate == 0 for b in series)

    def test_counts_land_in_their_day(self) -> None:
        """Events are tallied per calendar day; sale values are summed."""
        yesterday = datetime(2026, 3, 9, 15, 0, tzinfo=timezone.utc)
        events = [
            _event("a", ActivityKind.PITCH, yesterday),
            _event("a", ActivityKind.PITCH, yesterday),
            _event("a", ActivityKind.SALE, yesterday, "120.50"),
            _event("a", ActivityKind.SALE, yesterday, "79.50"),
        ]
        series = build_series(events, today=TODAY)
        day = series[-2]
        assert day.bucket == date(2026, 3, 9)
        assert (day.pitches, day.sales, day.hit_rate) == (2, 2, 100)
        assert day.sales_value == Decimal("200.00")

    def test_events_outside_window_ignored(self) -> None:
        """Events older than the window do not appear."""
        old = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)
        series = build_series([_event("a", ActivityKind.PITCH, old)], today=TODAY)
        assert sum(b.pitches for b in series) == 0

    def test_custom_bucket_count(self) -> None:
        """Bucket count is configurable."""
        assert len(build_series([], buckets=14, today=TODAY)) == 14

    def test_invalid_bucket_count(self) -> None:
        """Fewer than one bucket is rejected."""
        with pytest.raises(ValueError):
            build_series([], buckets=0, today=TODAY)

    def test_timezone_moves_day_boundary(self) -> None:
        """An event at 23:30 UTC falls on the next day in Copenhagen."""
        late = datetime(2026, 3, 9, 23, 30, tzinfo=timezone.utc)
        series = build_series(
            [_event("a", ActivityKind.PITCH, late)],
            today=TODAY,
            tz=ZoneInfo("Europe/Copenhagen"),
        )
        assert series[-1].pitches == 1
        assert series[-2].pitches == 0


class TestFilterLeaderboard:
    """Tests for filter_leaderboard."""

    def test_case_insensitive_substring(self) -> None:
        """Search matches any part of the name, ignoring case."""
        entries = [
            LeaderboardEntry(member_id="a", name="Anna"),
            LeaderboardEntry(member_id="b", name="Bo"),
        ]
        assert [e.member_id for e in filter_leaderboard(entries, "AN")] == ["a"]

    def test_empty_term_keeps_all(self) -> None:
        """Blank search keeps every entry in order."""
        entries = [LeaderboardEntry(member_id="a", name="Anna")]
        assert filter_leaderboard(entries, "  ") == entries
