"""Data models for identities, profiles, activity and aggregates."""

from pitch_tracker.models.activity import (
    ACTIVITY_RELATIONS,
    ActivityEvent,
    ActivityKind,
    AggregateSnapshot,
    LeaderboardEntry,
    RecordedEvent,
    SeriesBucket,
)
from pitch_tracker.models.identity import AuthSession, RawIdentity
from pitch_tracker.models.profile import Profile, Role, Scope, ScopeMembership

__all__ = [
    "ACTIVITY_RELATIONS",
    "ActivityEvent",
    "ActivityKind",
    "AggregateSnapshot",
    "AuthSession",
    "LeaderboardEntry",
    "Profile",
    "RawIdentity",
    "RecordedEvent",
    "Role",
    "Scope",
    "ScopeMembership",
    "SeriesBucket",
]
