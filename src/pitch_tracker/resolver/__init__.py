"""Identity resolution across the historical profile schema shapes."""

from pitch_tracker.resolver.base import Attempt, Outcome, ProfileStrategy
from pitch_tracker.resolver.resolver import ProfileResolver
from pitch_tracker.resolver.retry import RetryPolicy
from pitch_tracker.resolver.strategies import (
    FlatPersonStrategy,
    LegacyUserStrategy,
    MetadataStrategy,
    PersonRolesStrategy,
    canonical_profile,
    default_strategies,
)

__all__ = [
    "Attempt",
    "FlatPersonStrategy",
    "LegacyUserStrategy",
    "MetadataStrategy",
    "Outcome",
    "PersonRolesStrategy",
    "ProfileResolver",
    "ProfileStrategy",
    "RetryPolicy",
    "canonical_profile",
    "default_strategies",
]
