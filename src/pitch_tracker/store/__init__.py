"""Backing store adapters."""

from pitch_tracker.store.base import BaseStore, Filter
from pitch_tracker.store.registry import StoreRegistry
from pitch_tracker.store.rest_store import RestStore
from pitch_tracker.store.sqlite_store import SqliteStore

__all__ = [
    "BaseStore",
    "Filter",
    "RestStore",
    "SqliteStore",
    "StoreRegistry",
]
