"""Profile resolver: prioritized strategies, bounded retry, metadata fallback."""

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from pitch_tracker.errors import NotFound
from pitch_tracker.models.identity import RawIdentity
from pitch_tracker.models.profile import Profile
from pitch_tracker.store.base import BaseStore

from .base import Attempt, Outcome, ProfileStrategy
from .retry import NO_RETRY, RetryPolicy
from .strategies import MetadataStrategy, default_strategies

if TYPE_CHECKING:
    from pitch_tracker.config import Settings

logger = logging.getLogger(__name__)


class ProfileResolver:
    """
    Maps a raw identity to a canonical Profile.

    Strategies run in fixed priority order, each independently. Eventually
    consistent strategies run under the retry policy; a structural error ends
    a strategy at once. Errors never reach the caller: the only failure is
    NotFound, raised when every strategy and the metadata fallback come up empty.
    Resolution is read-only.
    """

    def __init__(
        self,
        strategies: Sequence[ProfileStrategy],
        *,
        fallback: Optional[ProfileStrategy] = None,
        retry: Optional[RetryPolicy] = None,
    ):
        self.strategies = list(strategies)
        self.fallback = fallback
        self.retry = retry or RetryPolicy()

    @classmethod
    def for_store(
        cls,
        store: BaseStore,
        *,
        retry: Optional[RetryPolicy] = None,
    ) -> "ProfileResolver":
        """Default shapes against one store, metadata fallback enabled."""
        return cls(default_strategies(store), fallback=MetadataStrategy(), retry=retry)

    @classmethod
    def from_settings(cls, store: BaseStore, settings: "Settings") -> "ProfileResolver":
        retry = RetryPolicy(max_attempts=settings.retry_attempts, delay=settings.retry_delay)
        return cls.for_store(store, retry=retry)

    async def _run(self, strategy: ProfileStrategy, identity: RawIdentity) -> Attempt:
        policy = self.retry if strategy.eventually_consistent else NO_RETRY
        return await policy.run(lambda: strategy.attempt(identity), label=strategy.name)

    async def resolve(self, identity: RawIdentity) -> Profile:
        """Resolve identity or raise NotFound."""
        for strategy in self.strategies:
            result = await self._run(strategy, identity)
            if result.outcome is Outcome.FOUND and result.profile is not None:
                logger.info("Resolved %s via %s", identity.id, strategy.name)
                return result.profile
            if result.outcome is Outcome.STRUCTURAL:
                logger.warning("Skipping %s for %s: %s", strategy.name, identity.id, result.detail)
            elif result.outcome is Outcome.TRANSIENT:
                logger.warning("Giving up on %s for %s: %s", strategy.name, identity.id, result.detail)
            else:
                logger.debug("No %s row for %s", strategy.name, identity.id)

        if self.fallback is not None:
            result = await self.fallback.attempt(identity)
            if result.outcome is Outcome.FOUND and result.profile is not None:
                logger.warning(
                    "Resolved %s from %s only (reduced fidelity, no scope)",
                    identity.id,
                    self.fallback.name,
                )
                return result.profile

        logger.error("No profile for %s after %d strategies", identity.id, len(self.strategies))
        raise NotFound(identity.id)

    async def resolve_or_none(self, identity: RawIdentity) -> Optional[Profile]:
        try:
            return await self.resolve(identity)
        except NotFound:
            return None
