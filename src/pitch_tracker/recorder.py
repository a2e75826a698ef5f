"""Event recorder: append-only pitch and sale logging."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pitch_tracker.errors import ActorUnresolved, ForeignKeyViolation, StructuralSchemaMismatch
from pitch_tracker.models.activity import ActivityEvent, ActivityKind, RecordedEvent
from pitch_tracker.session import SessionContext
from pitch_tracker.store.base import BaseStore, Filter

logger = logging.getLogger(__name__)


class EventRecorder:
    """
    Appends ActivityEvents to the kind's relation (pitches | sales).

    The actor must be a known profile: the session's current profile or a
    persons row. A foreign-key rejection from the store means the same thing.
    Writes are never retried; TransientQueryFailure reaches the caller.
    Each call creates a new event, there is no deduplication.
    """

    def __init__(self, store: BaseStore, context: Optional[SessionContext] = None):
        self._store = store
        self._context = context

    async def _is_known(self, actor_id: str) -> bool:
        profile = self._context.profile if self._context else None
        if profile is not None and profile.id == actor_id:
            return True
        try:
            row = await self._store.select_one("persons", [Filter.eq("id", actor_id)])
        except StructuralSchemaMismatch as e:
            logger.warning("Cannot verify actor %s: %s", actor_id, e)
            return False
        return row is not None

    async def record(
        self,
        actor_id: str,
        kind: ActivityKind | str,
        timestamp: Optional[datetime] = None,
        value: Optional[Decimal | int | float | str] = None,
    ) -> RecordedEvent:
        """Append one event. Raises ActorUnresolved for unknown actors."""
        kind = ActivityKind(kind)
        if not actor_id:
            raise ActorUnresolved(actor_id, "no actor id")
        if not await self._is_known(actor_id):
            logger.warning("Rejected %s for unknown actor %s", kind.value, actor_id)
            raise ActorUnresolved(actor_id)

        event = ActivityEvent(
            actor_id=actor_id,
            kind=kind,
            occurred_at=timestamp or datetime.now(timezone.utc),
            value=Decimal(str(value)) if value is not None else None,
        )
        try:
            row = await self._store.insert(kind.relation, event.to_row())
        except ForeignKeyViolation as e:
            logger.warning("Store rejected %s for %s: %s", kind.value, actor_id, e)
            raise ActorUnresolved(actor_id, "no matching profile row in store") from e

        logger.info("Recorded %s for %s", kind.value, actor_id)
        return RecordedEvent(id=str(row.get("id", "")), **event.model_dump())

    async def _record_current(self, kind: ActivityKind, value=None) -> RecordedEvent:
        profile = self._context.profile if self._context else None
        if profile is None:
            raise ActorUnresolved(None, "not signed in")
        return await self.record(profile.id, kind, value=value)

    async def log_pitch(self) -> RecordedEvent:
        """Log a pitch for the signed-in profile."""
        return await self._record_current(ActivityKind.PITCH)

    async def log_sale(self, value: Optional[Decimal | int | float | str] = None) -> RecordedEvent:
        """Log a sale for the signed-in profile."""
        return await self._record_current(ActivityKind.SALE, value)
