"""Abstract base class for profile resolution strategies."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from pitch_tracker.errors import StructuralSchemaMismatch, TrackerError, TransientQueryFailure
from pitch_tracker.models.identity import RawIdentity
from pitch_tracker.models.profile import Profile

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    """Result of one strategy attempt."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    STRUCTURAL = "structural"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Attempt:
    """Outcome of a single lookup, with the profile when found."""

    outcome: Outcome
    profile: Optional[Profile] = None
    detail: str = ""

    @classmethod
    def found(cls, profile: Profile) -> "Attempt":
        return cls(Outcome.FOUND, profile)

    @classmethod
    def not_found(cls, detail: str = "") -> "Attempt":
        return cls(Outcome.NOT_FOUND, detail=detail)

    @classmethod
    def structural(cls, detail: str) -> "Attempt":
        return cls(Outcome.STRUCTURAL, detail=detail)

    @classmethod
    def transient(cls, detail: str) -> "Attempt":
        return cls(Outcome.TRANSIENT, detail=detail)


class ProfileStrategy(ABC):
    """
    One schema shape a profile may be stored in.
    Subclasses implement lookup(); attempt() turns store errors into outcomes
    so the resolver never sees an exception from a strategy.
    """

    name: str = ""
    # Backing row may be created asynchronously after sign-up; retry before giving up
    eventually_consistent: bool = False

    @abstractmethod
    async def lookup(self, identity: RawIdentity) -> Optional[Profile]:
        """
        Return the profile stored in this shape, or None when no row exists.
        May raise store errors.
        """
        pass

    async def attempt(self, identity: RawIdentity) -> Attempt:
        """Run lookup once and classify the result."""
        try:
            profile = await self.lookup(identity)
        except StructuralSchemaMismatch as e:
            return Attempt.structural(str(e))
        except TransientQueryFailure as e:
            return Attempt.transient(str(e))
        except ValidationError as e:
            # Row exists but cannot form a canonical profile; retrying will not help
            return Attempt.structural(f"{self.name}: invalid profile shape: {e.error_count()} error(s)")
        except TrackerError as e:
            return Attempt.transient(str(e))
        if profile is None:
            return Attempt.not_found(f"{self.name}: no row for {identity.id}")
        return Attempt.found(profile)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
