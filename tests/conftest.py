"""Pytest fixtures for pitch-tracker tests."""

import asyncio
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

import pytest

from pitch_tracker.errors import StructuralSchemaMismatch
from pitch_tracker.models.identity import AuthSession, RawIdentity
from pitch_tracker.models.profile import Profile, Role
from pitch_tracker.realtime import LocalChangeChannel
from pitch_tracker.resolver import ProfileResolver, ProfileStrategy, RetryPolicy
from pitch_tracker.session import SessionContext, SessionStore
from pitch_tracker.store.base import BaseStore, Filter, check_identifier, normalize_value
from pitch_tracker.store.sqlite_store import SqliteStore

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def _matches(row: dict[str, Any], f: Filter) -> bool:
    value = normalize_value(row.get(f.column))
    if f.op == "eq":
        return value == normalize_value(f.value)
    if f.op == "in":
        return value in {normalize_value(v) for v in f.value}
    if f.op == "is_null":
        return value is None
    if f.op == "gte":
        return value is not None and value >= normalize_value(f.value)
    if f.op == "lt":
        return value is not None and value < normalize_value(f.value)
    raise ValueError(f.op)


class FakeStore(BaseStore):
    """
    In-memory relations with a call log, scripted failures and optional gates.
    Missing relations raise StructuralSchemaMismatch like a real backend.
    A gated select reads its rows first, then waits for the gate.
    """

    name = "fake"

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None):
        self.tables: dict[str, list[dict]] = {k: [dict(r) for r in v] for k, v in (tables or {}).items()}
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, Exception] = {}
        self.gates: dict[str, list[asyncio.Event]] = {}
        self.waiting: dict[str, int] = {}

    async def select(
        self,
        relation: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        self.calls.append(("select", relation))
        if relation in self.failures:
            raise self.failures[relation]
        if relation not in self.tables:
            raise StructuralSchemaMismatch(relation, "no such table")
        rows = [dict(r) for r in self.tables[relation] if all(_matches(r, f) for f in filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        gates = self.gates.get(relation)
        if gates:
            gate = gates.pop(0)
            self.waiting[relation] = self.waiting.get(relation, 0) + 1
            await gate.wait()
        return rows

    async def insert(self, relation: str, row: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("insert", relation))
        if relation in self.failures:
            raise self.failures[relation]
        stored = {"id": f"{relation}-{len(self.tables.get(relation, [])) + 1}", **row}
        self.tables.setdefault(relation, []).append(stored)
        return stored

    def selects(self, relation: str) -> int:
        return sum(1 for op, rel in self.calls if op == "select" and rel == relation)


class StaticStrategy(ProfileStrategy):
    """Strategy returning a fixed profile (or None), counting calls."""

    name = "static"

    def __init__(self, profile: Optional[Profile]):
        self.profile = profile
        self.calls = 0

    async def lookup(self, identity: RawIdentity) -> Optional[Profile]:
        self.calls += 1
        return self.profile


async def _no_sleep(delay: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Default attempt bound without real waiting."""
    return RetryPolicy(max_attempts=5, delay=0.3, sleep=_no_sleep)


@pytest.fixture
def temp_db() -> Path:
    """Temporary database path for isolated tests."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)


@pytest.fixture
def channel() -> LocalChangeChannel:
    return LocalChangeChannel()


@pytest.fixture
def sqlite_store(temp_db: Path, channel: LocalChangeChannel) -> SqliteStore:
    """SqliteStore with temporary database publishing to the local channel."""
    return SqliteStore(temp_db, channel=channel)


@pytest.fixture
def team_tables() -> dict[str, list[dict]]:
    """One organization with a leader and two sellers, in the flat persons shape."""
    return {
        "companies": [{"id": "co-1", "name": "Nordstack"}],
        "organizations": [{"id": "org-1", "name": "Copenhagen", "company_id": "co-1"}],
        "persons": [
            {"id": "p-lead", "auth_user_id": "auth-lead", "name": "Lea", "email": "lea@example.com",
             "organization_id": "org-1", "role": "team_leader", "created_at": "2026-01-01T00:00:00+00:00"},
            {"id": "p-a", "auth_user_id": "auth-a", "name": "Anna", "email": "anna@example.com",
             "organization_id": "org-1", "role": "user", "created_at": "2026-01-02T00:00:00+00:00"},
            {"id": "p-b", "auth_user_id": "auth-b", "name": "Bo", "email": "bo@example.com",
             "organization_id": "org-1", "role": "user", "created_at": "2026-01-03T00:00:00+00:00"},
            {"id": "p-new", "auth_user_id": "auth-new", "name": "Nina", "email": "nina@example.com",
             "organization_id": None, "role": "user", "created_at": "2026-01-04T00:00:00+00:00"},
        ],
        "pitches": [],
        "sales": [],
    }


@pytest.fixture
def seeded_sqlite(sqlite_store: SqliteStore, team_tables: dict[str, list[dict]]) -> SqliteStore:
    """Sqlite store loaded with team_tables (written directly, no notifications)."""
    with sqlite_store._connection() as conn:
        for relation in ("companies", "organizations", "persons"):
            for row in team_tables[relation]:
                cols = ", ".join(row)
                marks = ", ".join("?" for _ in row)
                conn.execute(f"INSERT INTO {relation} ({cols}) VALUES ({marks})", list(row.values()))
    return sqlite_store


def drop_relation(store: SqliteStore, relation: str) -> None:
    """Drop a table to simulate an older deployment that never had it."""
    with store._connection() as conn:
        conn.execute("PRAGMA foreign_keys = OFF")
        conn.execute(f"DROP TABLE IF EXISTS {check_identifier(relation)}")


@pytest.fixture
def leader_profile() -> Profile:
    return Profile(id="p-lead", name="Lea", scope_id="org-1", role=Role.TEAM_LEADER, source="persons")


@pytest.fixture
def seller_profile() -> Profile:
    return Profile(id="p-a", name="Anna", scope_id="org-1", role=Role.SELLER, source="persons")


@pytest.fixture
def make_context():
    """Factory: signed-in SessionContext whose resolver returns the given profile."""

    async def _make(profile: Optional[Profile], identity_id: str = "auth-x") -> SessionContext:
        sessions = SessionStore()
        resolver = ProfileResolver([StaticStrategy(profile)])
        context = SessionContext(sessions, resolver).start()
        sessions.set_session(AuthSession(identity=RawIdentity(id=identity_id)))
        await context.wait_resolved()
        return context

    return _make


def activity_row(user_id: str, when: datetime, value: Optional[str] = None) -> dict:
    """Store row for pitches/sales."""
    return {"user_id": user_id, "occurred_at": when.isoformat(), "value": value}
