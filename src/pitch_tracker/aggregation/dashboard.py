"""Live dashboard: keeps the displayed snapshot fresh as activity and the session change."""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from pitch_tracker.errors import DegradedAggregate, TrackerError
from pitch_tracker.models.activity import AggregateSnapshot, LeaderboardEntry
from pitch_tracker.models.profile import Profile, Scope
from pitch_tracker.policy import AccessPolicy, AggregationScope
from pitch_tracker.realtime import ChangeChannel, ChangeListener
from pitch_tracker.session import SessionContext
from pitch_tracker.store.base import BaseStore

from .engine import AggregationEngine
from .membership import fetch_activity, fetch_members, fetch_scope, fetch_unassigned
from .metrics import filter_leaderboard

logger = logging.getLogger(__name__)


class Period(str, Enum):
    """Time window of activity rows fed to the engine."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def days(self) -> int:
        return {"daily": 1, "weekly": 7, "monthly": 30}[self.value]

    def window_start(self, now: datetime) -> datetime:
        return now - timedelta(days=self.days)


@dataclass(frozen=True)
class DashboardState:
    """What a view renders. degraded is set when the last refresh failed."""

    snapshot: AggregateSnapshot
    sequence: int = 0
    scope: Optional[Scope] = None
    degraded: Optional[DegradedAggregate] = None

    @property
    def stale(self) -> bool:
        return self.degraded is not None


StateListener = Callable[[DashboardState], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LiveDashboard:
    """
    Owns the displayed DashboardState for the session's profile.

    Every refresh is tagged with an increasing sequence number. A result is
    applied only if it is newer than the applied one and the dashboard is
    still open, so overlapping refreshes settle on the most recently
    triggered pass whatever order they finish in. A failed refresh keeps
    the last snapshot and marks the state degraded.
    """

    def __init__(
        self,
        store: BaseStore,
        context: SessionContext,
        channel: Optional[ChangeChannel] = None,
        *,
        engine: Optional[AggregationEngine] = None,
        period: Period | str = Period.MONTHLY,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._context = context
        self._channel = channel
        self.engine = engine or AggregationEngine()
        self.period = Period(period)
        self._clock = clock
        self._state = DashboardState(snapshot=self.engine.empty(today=self._today()))
        self._sequence = 0
        self._applied = 0
        self._failure: Optional[DegradedAggregate] = None
        self._listeners: list[StateListener] = []
        self._change_listener: Optional[ChangeListener] = None
        self._unsubscribe_profile: Optional[Callable[[], None]] = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def _today(self):
        return self._clock().astimezone(self.engine.tz).date()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register listener for state replacements; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Dashboard listener failed")

    def start(self) -> "LiveDashboard":
        """Follow activity changes and profile changes, and kick off the first refresh."""
        if self._closed:
            raise RuntimeError("LiveDashboard already closed")
        if self._channel is not None and self._change_listener is None:
            self._change_listener = ChangeListener(self._channel, self.schedule_refresh).start()
        if self._unsubscribe_profile is None:
            self._unsubscribe_profile = self._context.subscribe(lambda _profile: self.schedule_refresh())
        self.schedule_refresh()
        return self

    def schedule_refresh(self) -> Optional[asyncio.Task]:
        """Start a refresh in the background. No-op after close()."""
        if self._closed:
            return None
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> DashboardState:
        """Wait for every background refresh started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return self._state

    def set_period(self, period: Period | str) -> None:
        self.period = Period(period)
        self.schedule_refresh()

    async def refresh(self) -> DashboardState:
        """Recompute from scratch and apply if still current."""
        self._sequence += 1
        sequence = self._sequence
        profile = self._context.profile

        if profile is None:
            self._apply(sequence, DashboardState(snapshot=self.engine.empty(today=self._today()), sequence=sequence))
            return self._state

        try:
            scope = AccessPolicy(profile).resolve_scope()
            snapshot, scope_info = await self._compute(profile, scope)
        except TrackerError as e:
            self._degrade(sequence, e)
            return self._state

        self._apply(sequence, DashboardState(snapshot=snapshot, sequence=sequence, scope=scope_info))
        return self._state

    async def _compute(
        self, profile: Profile, scope: AggregationScope
    ) -> tuple[AggregateSnapshot, Optional[Scope]]:
        now = self._clock()
        scope_info: Optional[Scope] = None
        if scope.team_wide and scope.scope_id is not None:
            scope_info, membership = await asyncio.gather(
                fetch_scope(self._store, scope.scope_id),
                fetch_members(self._store, scope.scope_id),
            )
            members = membership.members
            snapshot_scope = scope.scope_id
        else:
            members = (profile,)
            snapshot_scope = profile.id

        rows = await fetch_activity(
            self._store,
            [m.id for m in members],
            since=self.period.window_start(now),
        )
        snapshot = self.engine.aggregate(
            snapshot_scope,
            members,
            rows,
            today=now.astimezone(self.engine.tz).date(),
        )
        return snapshot, scope_info

    def _apply(self, sequence: int, state: DashboardState) -> bool:
        if self._closed or sequence <= self._applied:
            logger.debug("Discarding refresh #%d (applied #%d, closed=%s)", sequence, self._applied, self._closed)
            return False
        self._applied = sequence
        if self._failure is not None and self._failure.sequence > sequence:
            # An older pass landed after a newer one failed; the data is still stale
            state = replace(state, degraded=self._failure)
        else:
            self._failure = None
        self._state = state
        self._notify()
        return True

    def _degrade(self, sequence: int, exc: Exception) -> None:
        if self._closed or sequence <= self._applied:
            return
        logger.warning("Dashboard refresh #%d failed, keeping last snapshot: %s", sequence, exc)
        if self._failure is None or sequence > self._failure.sequence:
            self._failure = DegradedAggregate(sequence, exc)
        self._state = replace(self._state, degraded=self._failure)
        self._notify()

    def leaderboard(self, search: str = "") -> list[LeaderboardEntry]:
        """Current leaderboard, optionally narrowed by member name."""
        return filter_leaderboard(self._state.snapshot.leaderboard, search)

    async def unassigned_members(self) -> list[Profile]:
        """Sellers awaiting assignment. Team leaders only."""
        policy = AccessPolicy(self._context.profile)
        if not policy.can_view_dashboard():
            raise PermissionError(policy.denied_message())
        return await fetch_unassigned(self._store)

    def close(self) -> None:
        """Unsubscribe everything. Refreshes still in flight are discarded when they finish."""
        self._closed = True
        if self._change_listener is not None:
            self._change_listener.close()
            self._change_listener = None
        if self._unsubscribe_profile is not None:
            self._unsubscribe_profile()
            self._unsubscribe_profile = None
        self._listeners.clear()

    async def __aenter__(self) -> "LiveDashboard":
        return self.start()

    async def __aexit__(self, *exc: object) -> None:
        self.close()
