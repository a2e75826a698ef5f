"""Unit tests for the change channel and ChangeListener."""

from datetime import datetime, timezone

import pytest

from conftest import activity_row
from pitch_tracker.realtime import ChangeListener, ChangeNotification, LocalChangeChannel
from pitch_tracker.store import SqliteStore


class TestLocalChangeChannel:
    """Tests for LocalChangeChannel."""

    def test_event_filter(self, channel: LocalChangeChannel) -> None:
        """Handlers subscribed to INSERT ignore other events."""
        seen: list[str] = []
        channel.subscribe("pitches", lambda n: seen.append(n.event), event="INSERT")
        channel.publish(ChangeNotification("pitches", "DELETE"))
        channel.publish(ChangeNotification("pitches", "INSERT"))
        assert seen == ["INSERT"]

    def test_unsubscribe_idempotent(self, channel: LocalChangeChannel) -> None:
        """Unsubscribing twice is harmless."""
        sub = channel.subscribe("sales", lambda n: None)
        sub.unsubscribe()
        sub.unsubscribe()
        assert channel.subscriber_count("sales") == 0
        assert not sub.active

    def test_failing_handler_isolated(self, channel: LocalChangeChannel) -> None:
        """One failing handler does not stop delivery to the others."""
        seen: list[str] = []

        def broken(n: ChangeNotification) -> None:
            raise RuntimeError("boom")

        channel.subscribe("sales", broken)
        channel.subscribe("sales", lambda n: seen.append(n.relation))
        channel.publish(ChangeNotification("sales", "INSERT"))
        assert seen == ["sales"]


class TestChangeListener:
    """Tests for ChangeListener."""

    def test_any_activity_mutation_triggers(self, channel: LocalChangeChannel) -> None:
        """Every mutation on either activity relation invokes the callback."""
        calls: list[int] = []
        listener = ChangeListener(channel, lambda: calls.append(1)).start()
        channel.publish(ChangeNotification("pitches", "INSERT"))
        channel.publish(ChangeNotification("sales", "UPDATE"))
        channel.publish(ChangeNotification("persons", "INSERT"))
        assert len(calls) == 2
        listener.close()

    def test_close_stops_callbacks(self, channel: LocalChangeChannel) -> None:
        """No callback after close, and subscriptions are released."""
        calls: list[int] = []
        with ChangeListener(channel, lambda: calls.append(1)) as listener:
            assert listener.active
        channel.publish(ChangeNotification("pitches", "INSERT"))
        assert calls == []
        assert channel.subscriber_count("pitches") == 0
        assert channel.subscriber_count("sales") == 0

    def test_cannot_restart_after_close(self, channel: LocalChangeChannel) -> None:
        """A closed listener stays closed."""
        listener = ChangeListener(channel, lambda: None)
        listener.close()
        with pytest.raises(RuntimeError):
            listener.start()

    @pytest.mark.asyncio
    async def test_store_insert_notifies_listener(self, seeded_sqlite: SqliteStore, channel: LocalChangeChannel) -> None:
        """An insert through the store reaches the listener."""
        calls: list[int] = []
        with ChangeListener(channel, lambda: calls.append(1)):
            await seeded_sqlite.insert("sales", activity_row("p-b", datetime(2026, 3, 1, tzinfo=timezone.utc)))
        assert calls == [1]
