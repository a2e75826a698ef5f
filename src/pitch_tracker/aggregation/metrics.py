"""Pure metric functions: hit rate, totals, leaderboard and the daily series."""

from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from pitch_tracker.models.activity import ActivityEvent, ActivityKind, LeaderboardEntry, SeriesBucket
from pitch_tracker.models.profile import Profile, Role

DEFAULT_SERIES_BUCKETS = 6


def hit_rate(pitches: int, sales: int) -> int:
    """
    Sales per pitch as an integer percentage, rounded half up.
    Zero pitches gives 0, never an error.
    """
    if pitches <= 0:
        return 0
    # floor(100 * s / p + 0.5) without float error
    return (200 * sales + pitches) // (2 * pitches)


def compute_totals(events: Iterable[ActivityEvent]) -> tuple[int, int]:
    """(pitches, sales) counts."""
    pitches = sales = 0
    for ev in events:
        if ev.kind is ActivityKind.PITCH:
            pitches += 1
        else:
            sales += 1
    return pitches, sales


def build_leaderboard(members: Sequence[Profile], events: Iterable[ActivityEvent]) -> list[LeaderboardEntry]:
    """
    One entry per seller, by hit rate descending. Leaders are left out of their
    own board. sorted() is stable, so ties keep member order.
    """
    counts: dict[str, list[int]] = {}
    for ev in events:
        c = counts.setdefault(ev.actor_id, [0, 0])
        c[0 if ev.kind is ActivityKind.PITCH else 1] += 1

    entries: list[LeaderboardEntry] = []
    for member in members:
        if member.role is not Role.SELLER:
            continue
        pitches, sales = counts.get(member.id, (0, 0))
        entries.append(
            LeaderboardEntry(
                member_id=member.id,
                name=member.display_name,
                pitches=pitches,
                sales=sales,
                hit_rate=hit_rate(pitches, sales),
            )
        )
    return sorted(entries, key=lambda e: e.hit_rate, reverse=True)


def build_series(
    events: Iterable[ActivityEvent],
    *,
    buckets: int = DEFAULT_SERIES_BUCKETS,
    today: Optional[date] = None,
    tz: tzinfo = timezone.utc,
) -> list[SeriesBucket]:
    """
    Dense trailing window of calendar days ending today (in tz). Every day is
    present even with no events, so charts keep stable axes.
    """
    if buckets < 1:
        raise ValueError("buckets must be >= 1")
    end = today or datetime.now(tz).date()
    days = [end - timedelta(days=offset) for offset in range(buckets - 1, -1, -1)]
    tally: dict[date, list] = {d: [0, 0, Decimal("0")] for d in days}

    for ev in events:
        day = ev.occurred_at.astimezone(tz).date()
        slot = tally.get(day)
        if slot is None:
            continue
        if ev.kind is ActivityKind.PITCH:
            slot[0] += 1
        else:
            slot[1] += 1
            if ev.value is not None:
                slot[2] += ev.value

    return [
        SeriesBucket(
            bucket=d,
            pitches=tally[d][0],
            sales=tally[d][1],
            sales_value=tally[d][2],
            hit_rate=hit_rate(tally[d][0], tally[d][1]),
        )
        for d in days
    ]


def filter_leaderboard(entries: Sequence[LeaderboardEntry], term: str) -> list[LeaderboardEntry]:
    """Case-insensitive name search; empty term keeps everything."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(entries)
    return [e for e in entries if needle in e.name.lower()]
