"""Store reads feeding the aggregation engine: scope info, members and activity rows."""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

from pitch_tracker.errors import StructuralSchemaMismatch
from pitch_tracker.models.activity import ActivityEvent, ActivityKind
from pitch_tracker.models.profile import Profile, Role, Scope, ScopeMembership
from pitch_tracker.policy import normalize_role
from pitch_tracker.resolver.strategies import canonical_profile, load_role_links
from pitch_tracker.store.base import BaseStore, Filter

logger = logging.getLogger(__name__)


def _member_from_row(row: dict, linked: Optional[tuple[Role, dict]] = None) -> Profile:
    return canonical_profile(
        id=row["id"],
        role=linked[0] if linked else normalize_role(row.get("role")),
        scope_id=row.get("organization_id"),
        source="person_roles" if linked else "persons",
        name=row.get("name"),
        email=row.get("email"),
        secondary_id=row.get("team_leader_id"),
    )


async def _members_from_rows(store: BaseStore, rows: list[dict]) -> list[Profile]:
    """Role links win over the flat persons.role column, as in resolution."""
    if not rows:
        return []
    try:
        linked = await load_role_links(store, [str(r["id"]) for r in rows])
    except StructuralSchemaMismatch as e:
        logger.debug("No role links available, using persons.role: %s", e)
        linked = {}
    return [_member_from_row(r, linked.get(str(r["id"]))) for r in rows]


async def fetch_scope(store: BaseStore, scope_id: Optional[str]) -> Optional[Scope]:
    """Organization record for a scope id, or None."""
    if not scope_id:
        return None
    row = await store.select_one("organizations", [Filter.eq("id", scope_id)])
    if not row:
        return None
    return Scope(id=str(row["id"]), name=row.get("name") or "", company_id=row.get("company_id"))


async def fetch_members(store: BaseStore, scope_id: str) -> ScopeMembership:
    """Every persons row in the organization, as profiles, in store order."""
    rows = await store.select(
        "persons", [Filter.eq("organization_id", scope_id)], order_by="created_at"
    )
    return ScopeMembership(scope_id=scope_id, members=tuple(await _members_from_rows(store, rows)))


async def fetch_unassigned(store: BaseStore) -> list[Profile]:
    """Persons without an organization: sellers awaiting assignment."""
    rows = await store.select("persons", [Filter.is_null("organization_id")], order_by="created_at")
    return await _members_from_rows(store, rows)


async def fetch_activity(
    store: BaseStore,
    member_ids: Sequence[str],
    *,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> list[ActivityEvent]:
    """Pitches and sales by the given actors inside [since, until), oldest first."""
    if not member_ids:
        return []
    filters = [Filter.in_("user_id", list(member_ids))]
    if since is not None:
        filters.append(Filter.gte("occurred_at", since))
    if until is not None:
        filters.append(Filter.lt("occurred_at", until))

    kinds = list(ActivityKind)
    results = await asyncio.gather(
        *(store.select(kind.relation, filters, order_by="occurred_at") for kind in kinds)
    )
    events = [
        ActivityEvent.from_row(kind, row)
        for kind, rows in zip(kinds, results)
        for row in rows
    ]
    events.sort(key=lambda ev: ev.occurred_at)
    return events
