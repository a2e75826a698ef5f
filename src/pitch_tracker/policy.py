"""Role policy: classify profiles and decide which aggregation scope a caller may read."""

from dataclasses import dataclass
from typing import Any, Optional

from pitch_tracker.models.profile import Profile, Role

# Text aliases seen across schema generations. "user" is the persons-table seller.
_ROLE_ALIASES: dict[str, Role] = {
    "team_leader": Role.TEAM_LEADER,
    "teamleader": Role.TEAM_LEADER,
    "team-leader": Role.TEAM_LEADER,
    "teamlead": Role.TEAM_LEADER,
    "team_lead": Role.TEAM_LEADER,
    "leader": Role.TEAM_LEADER,
    "admin": Role.TEAM_LEADER,
    "seller": Role.SELLER,
    "user": Role.SELLER,
    "member": Role.SELLER,
    "sales": Role.SELLER,
}

# Numeric role ids from the legacy users table
ROLE_IDS: dict[int, Role] = {
    1: Role.TEAM_LEADER,  # admin
    2: Role.TEAM_LEADER,
    3: Role.SELLER,
}


def normalize_role(raw: Any) -> Role:
    """
    Map a stored role value (enum name, legacy alias or numeric id) to Role.
    Unknown or missing values get the lowest authenticated privilege: seller.
    """
    if isinstance(raw, Role):
        return Role.SELLER if raw is Role.UNAUTHENTICATED else raw
    if raw is None or isinstance(raw, bool):
        return Role.SELLER
    if isinstance(raw, int):
        return ROLE_IDS.get(raw, Role.SELLER)
    text = str(raw).strip().lower()
    if text.isdigit():
        return ROLE_IDS.get(int(text), Role.SELLER)
    return _ROLE_ALIASES.get(text, Role.SELLER)


def classify(profile: Optional[Profile]) -> Role:
    """Role for gating. No profile means unauthenticated."""
    if profile is None:
        return Role.UNAUTHENTICATED
    return profile.role


@dataclass(frozen=True)
class AggregationScope:
    """What a caller may aggregate: a whole team or only themselves."""

    scope_id: Optional[str]
    team_wide: bool
    member_id: Optional[str] = None


class AccessPolicy:
    """
    Gating decisions for one profile.

    Usage:
        policy = AccessPolicy(profile)
        if policy.can_view_dashboard():
            scope = policy.resolve_scope()
    """

    def __init__(self, profile: Optional[Profile]):
        self.profile = profile
        self.role = classify(profile)

    def can_view_dashboard(self) -> bool:
        """Only team leaders see the team dashboard."""
        return self.role is Role.TEAM_LEADER

    def can_record(self) -> bool:
        return self.role is not Role.UNAUTHENTICATED

    def resolve_scope(self, requested: Optional[str] = None) -> AggregationScope:
        """
        Leaders aggregate their own organization. Sellers may only request
        their own id. Anything else raises PermissionError.
        """
        profile = self.profile
        if profile is None:
            raise PermissionError("Not signed in")
        if self.role is Role.TEAM_LEADER:
            if requested in (None, profile.scope_id):
                return AggregationScope(scope_id=profile.scope_id, team_wide=True)
            if requested == profile.id:
                return AggregationScope(scope_id=profile.scope_id, team_wide=False, member_id=profile.id)
            raise PermissionError(f"Team leader {profile.id} cannot read scope {requested}")
        if requested in (None, profile.id):
            return AggregationScope(scope_id=profile.scope_id, team_wide=False, member_id=profile.id)
        raise PermissionError(f"Seller {profile.id} may only read their own activity")

    def denied_message(self) -> str:
        return (
            f"Access denied. Your role ({self.role.value}) cannot view the team dashboard. "
            f"Required role: {Role.TEAM_LEADER.value}"
        )

    def __repr__(self) -> str:
        return f"AccessPolicy(role={self.role.value})"
