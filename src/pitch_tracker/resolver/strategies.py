"""Concrete profile strategies, one per historical schema shape.

Priority order (see default_strategies):
1. persons + person_roles + roles (current schema; rows created by a sign-up trigger)
2. persons with a flat role column (before roles were split out)
3. legacy users table with numeric role_id and company_id scope
Fallback: the identity provider's sign-up metadata (no scope resolution).
"""

from typing import Any, Optional, Sequence

from pitch_tracker.models.identity import RawIdentity
from pitch_tracker.models.profile import Profile, Role
from pitch_tracker.policy import normalize_role
from pitch_tracker.store.base import BaseStore, Filter

from .base import ProfileStrategy


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def canonical_profile(
    *,
    id: Any,
    role: Role,
    scope_id: Any,
    source: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    secondary_id: Any = None,
) -> Profile:
    """
    Build the canonical Profile. A leader with no scope cannot lead anything yet:
    it resolves as a seller awaiting assignment, keeping the leader hint in
    requested_role for the create-scope flow.
    """
    scope = _text(scope_id)
    requested: Optional[Role] = None
    if scope is None and role is Role.TEAM_LEADER:
        role, requested = Role.SELLER, Role.TEAM_LEADER
    return Profile(
        id=str(id),
        name=name or "",
        email=email or "",
        scope_id=scope,
        role=role,
        secondary_id=_text(secondary_id),
        source=source,
        requested_role=requested,
    )


async def load_role_links(store: BaseStore, person_ids: Sequence[str]) -> dict[str, tuple[Role, dict]]:
    """
    Strongest person_roles link per person, with its normalized role.
    Highest privilege wins; the first link on ties. Persons without links are absent.
    """
    links = await store.select("person_roles", [Filter.in_("person_id", list(person_ids))])
    if not links:
        return {}
    roles = await store.select("roles", [Filter.in_("id", list({l["role_id"] for l in links}))])
    role_names = {str(r["id"]): r.get("role") for r in roles}

    best: dict[str, tuple[Role, dict]] = {}
    for link in links:
        role = normalize_role(role_names.get(str(link["role_id"])))
        person_id = str(link["person_id"])
        current = best.get(person_id)
        if current is None or (role is Role.TEAM_LEADER and current[0] is not Role.TEAM_LEADER):
            best[person_id] = (role, link)
    return best


class PersonRolesStrategy(ProfileStrategy):
    """persons row by auth_user_id, role and org from person_roles joined to roles."""

    name = "person_roles"
    eventually_consistent = True

    def __init__(self, store: BaseStore):
        self._store = store

    async def lookup(self, identity: RawIdentity) -> Optional[Profile]:
        person = await self._store.select_one("persons", [Filter.eq("auth_user_id", identity.id)])
        if not person:
            return None
        linked = await load_role_links(self._store, [str(person["id"])])
        if not linked:
            # Trigger inserts persons first, role links second
            return None
        role, link = linked[str(person["id"])]
        return canonical_profile(
            id=person["id"],
            role=role,
            scope_id=link.get("org_id") or person.get("organization_id"),
            source=self.name,
            name=person.get("name") or identity.hint("name", "full_name"),
            email=person.get("email") or identity.email,
            secondary_id=person.get("team_leader_id"),
        )


class FlatPersonStrategy(ProfileStrategy):
    """persons row by auth_user_id with role stored as text ("user" | "team_leader")."""

    name = "persons"

    def __init__(self, store: BaseStore):
        self._store = store

    async def lookup(self, identity: RawIdentity) -> Optional[Profile]:
        person = await self._store.select_one("persons", [Filter.eq("auth_user_id", identity.id)])
        if not person:
            return None
        return canonical_profile(
            id=person["id"],
            role=normalize_role(person.get("role")),
            scope_id=person.get("organization_id"),
            source=self.name,
            name=person.get("name") or identity.hint("name", "full_name"),
            email=person.get("email") or identity.email,
            secondary_id=person.get("team_leader_id"),
        )


class LegacyUserStrategy(ProfileStrategy):
    """users row keyed by the auth id itself; numeric role_id, company as scope."""

    name = "users"

    def __init__(self, store: BaseStore):
        self._store = store

    async def lookup(self, identity: RawIdentity) -> Optional[Profile]:
        user = await self._store.select_one("users", [Filter.eq("id", identity.id)])
        if not user:
            return None
        return canonical_profile(
            id=user["id"],
            role=normalize_role(user.get("role_id")),
            scope_id=user.get("company_id"),
            source=self.name,
            name=user.get("name") or identity.hint("name", "full_name"),
            email=user.get("email") or identity.email,
        )


class MetadataStrategy(ProfileStrategy):
    """
    Minimal profile from sign-up metadata. Reduced fidelity: the scope hint is
    not trusted (nothing verifies membership), so scope_id is always None.
    """

    name = "metadata"

    async def lookup(self, identity: RawIdentity) -> Optional[Profile]:
        name = identity.hint("name", "full_name")
        role_hint = identity.hint("role")
        if not (name or role_hint or identity.email):
            return None
        return canonical_profile(
            id=identity.id,
            role=normalize_role(role_hint),
            scope_id=None,
            source=self.name,
            name=name,
            email=identity.email or identity.hint("email"),
        )


def default_strategies(store: BaseStore) -> list[ProfileStrategy]:
    """Schema shapes in priority order."""
    return [
        PersonRolesStrategy(store),
        FlatPersonStrategy(store),
        LegacyUserStrategy(store),
    ]
