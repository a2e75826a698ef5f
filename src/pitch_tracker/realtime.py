"""Change notifications for activity relations and the listener that turns them into refreshes."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from pitch_tracker.models.activity import ACTIVITY_RELATIONS

logger = logging.getLogger(__name__)

ANY_EVENT = "*"


@dataclass(frozen=True)
class ChangeNotification:
    """One mutation on a relation (INSERT | UPDATE | DELETE)."""

    relation: str
    event: str
    record: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[ChangeNotification], None]


class Subscription:
    """Handle returned by ChangeChannel.subscribe. unsubscribe() is idempotent."""

    def __init__(self, relation: str, event: str, detach: Callable[["Subscription"], None]):
        self.relation = relation
        self.event = event
        self._detach: Optional[Callable[["Subscription"], None]] = detach

    @property
    def active(self) -> bool:
        return self._detach is not None

    def unsubscribe(self) -> None:
        detach, self._detach = self._detach, None
        if detach is not None:
            detach(self)


class ChangeChannel(ABC):
    """Per-relation subscribe/unsubscribe for mutation notifications."""

    @abstractmethod
    def subscribe(self, relation: str, handler: Handler, event: str = ANY_EVENT) -> Subscription:
        """Register handler for event ('*' = any mutation) on relation."""
        pass


class LocalChangeChannel(ChangeChannel):
    """
    In-process channel. Stores that write through this process call publish()
    after each committed mutation.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[tuple[Subscription, Handler]]] = {}

    def subscribe(self, relation: str, handler: Handler, event: str = ANY_EVENT) -> Subscription:
        sub = Subscription(relation, event.upper(), self._detach)
        self._handlers.setdefault(relation, []).append((sub, handler))
        logger.debug("Subscribed to %s (%s)", relation, event)
        return sub

    def _detach(self, sub: Subscription) -> None:
        entries = self._handlers.get(sub.relation, [])
        self._handlers[sub.relation] = [(s, h) for s, h in entries if s is not sub]

    def subscriber_count(self, relation: str) -> int:
        return len(self._handlers.get(relation, []))

    def publish(self, notification: ChangeNotification) -> None:
        """Deliver to every matching handler. A failing handler does not stop the others."""
        for sub, handler in list(self._handlers.get(notification.relation, [])):
            if not sub.active:
                continue
            if sub.event not in (ANY_EVENT, notification.event.upper()):
                continue
            try:
                handler(notification)
            except Exception:
                logger.exception(
                    "Change handler failed for %s %s", notification.event, notification.relation
                )


class ChangeListener:
    """
    Subscribes to every mutation on the activity relations and invokes callback
    with no arguments. The payload is never inspected: each notification means
    a full recompute.
    """

    def __init__(
        self,
        channel: ChangeChannel,
        callback: Callable[[], None],
        relations: Iterable[str] = ACTIVITY_RELATIONS,
    ):
        self._channel = channel
        self._callback = callback
        self._relations = tuple(relations)
        self._subscriptions: list[Subscription] = []
        self._closed = False

    @property
    def active(self) -> bool:
        return bool(self._subscriptions)

    def start(self) -> "ChangeListener":
        if self._closed:
            raise RuntimeError("ChangeListener already closed")
        if not self._subscriptions:
            self._subscriptions = [
                self._channel.subscribe(relation, self._on_change, ANY_EVENT)
                for relation in self._relations
            ]
        return self

    def _on_change(self, notification: ChangeNotification) -> None:
        if self._closed:
            return
        self._callback()

    def close(self) -> None:
        self._closed = True
        subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            sub.unsubscribe()

    def __enter__(self) -> "ChangeListener":
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.close()
