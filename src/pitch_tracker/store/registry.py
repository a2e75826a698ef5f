"""Registry for discovering and instantiating store backends."""

from typing import TYPE_CHECKING, Optional, Type

from pitch_tracker.realtime import LocalChangeChannel
from pitch_tracker.store.base import BaseStore
from pitch_tracker.store.rest_store import RestStore
from pitch_tracker.store.sqlite_store import SqliteStore

if TYPE_CHECKING:
    from pitch_tracker.config import Settings


class StoreRegistry:
    """Discovers and provides store backends."""

    _stores: dict[str, Type[BaseStore]] = {
        "sqlite": SqliteStore,
        "rest": RestStore,
    }

    @classmethod
    def get(cls, backend: str, **kwargs) -> BaseStore:
        """Get a store instance for the given backend. kwargs passed to store __init__."""
        store_cls = cls._stores.get(backend.lower())
        if not store_cls:
            raise ValueError(f"Unknown backend: {backend}. Available: {list(cls._stores.keys())}")
        return store_cls(**kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        channel: Optional[LocalChangeChannel] = None,
    ) -> BaseStore:
        """Build the configured backend. Only the sqlite backend publishes local changes."""
        if settings.backend == "rest":
            if not settings.api_url or not settings.api_key:
                raise ValueError("rest backend requires api_url and api_key")
            return cls.get("rest", api_url=settings.api_url, api_key=settings.api_key)
        return cls.get("sqlite", db_path=settings.db_path, channel=channel)

    @classmethod
    def available_backends(cls) -> list[str]:
        """Return list of available backend identifiers."""
        return list(cls._stores.keys())
