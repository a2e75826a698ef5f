"""Normalized application profile and scope models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    """Coarse role used for view gating and query scoping."""

    TEAM_LEADER = "team_leader"
    SELLER = "seller"
    UNAUTHENTICATED = "unauthenticated"


class Profile(BaseModel):
    """
    Canonical resolved identity. Frozen: the session context replaces it
    wholesale, readers never see a half-updated profile.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Actor id used on activity rows")
    name: str = ""
    email: str = ""
    scope_id: Optional[str] = Field(default=None, description="Organization (or legacy company) id")
    role: Role = Role.SELLER
    secondary_id: Optional[str] = Field(default=None, description="Team leader id or auth id")
    source: str = Field(default="unknown", description="Strategy that produced this profile")
    requested_role: Optional[Role] = Field(
        default=None,
        description="Role hint that could not be granted yet (e.g. leader without a scope)",
    )

    @model_validator(mode="after")
    def _check_invariants(self) -> "Profile":
        if self.role is Role.UNAUTHENTICATED:
            raise ValueError("a resolved profile cannot be unauthenticated")
        if self.scope_id is None and self.role is not Role.SELLER:
            raise ValueError("only a seller awaiting assignment may have no scope")
        return self

    @property
    def awaiting_assignment(self) -> bool:
        return self.scope_id is None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


class ScopeMembership(BaseModel):
    """Members of one scope. Derived per aggregation pass, never persisted."""

    model_config = ConfigDict(frozen=True)

    scope_id: Optional[str] = None
    members: tuple[Profile, ...] = ()

    @property
    def member_ids(self) -> list[str]:
        return [m.id for m in self.members]


class Scope(BaseModel):
    """Organization a team leader manages."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    company_id: Optional[str] = None
