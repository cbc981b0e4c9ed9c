"""Unit tests for ActorEventSource."""

from __future__ import annotations

import pytest

from ema.actor import ActorEventSource, ActorMessageEvent


def message(content: str) -> ActorMessageEvent:
    return ActorMessageEvent(content=content)


class TestActorEventSource:
    """Test suite for ActorEventSource."""

    def test_unknown_event_rejected(self):
        """Test that only known event names are accepted."""
        source = ActorEventSource()

        with pytest.raises(ValueError):
            source.on("input", lambda event: None)

    @pytest.mark.asyncio
    async def test_listeners_called_in_registration_order(self):
        """Test delivery order."""
        source = ActorEventSource()
        calls: list[str] = []

        source.on("output", lambda e: calls.append(f"a:{e.content}"))
        source.on("output", lambda e: calls.append(f"b:{e.content}"))

        delivered = await source.emit("output", message("hi"))

        assert delivered is True
        assert calls == ["a:hi", "b:hi"]

    @pytest.mark.asyncio
    async def test_emit_without_listeners(self):
        """Test that emitting with no listeners reports False."""
        source = ActorEventSource()

        assert await source.emit("output", message("hi")) is False

    @pytest.mark.asyncio
    async def test_once_listener_called_once(self):
        """Test that once() registrations are dropped after the first emission."""
        source = ActorEventSource()
        calls: list[str] = []

        source.once("output", lambda e: calls.append(e.content))
        await source.emit("output", message("first"))
        await source.emit("output", message("second"))

        assert calls == ["first"]
        assert source.listener_count("output") == 0

    @pytest.mark.asyncio
    async def test_off_removes_listener(self):
        """Test that off() stops delivery to that listener only."""
        source = ActorEventSource()
        calls: list[str] = []

        def first(event):
            calls.append("first")

        def second(event):
            calls.append("second")

        source.on("output", first).on("output", second)
        source.off("output", first)
        await source.emit("output", message("hi"))

        assert calls == ["second"]

    def test_off_unknown_listener_is_noop(self):
        """Test that removing an unregistered listener does nothing."""
        source = ActorEventSource()
        source.on("output", print)

        source.off("output", len)

        assert source.listener_count("output") == 1

    @pytest.mark.asyncio
    async def test_off_matches_by_identity(self):
        """Test that off() leaves a registered listener that only compares equal."""
        source = ActorEventSource()
        calls: list[str] = []

        class Recorder:
            def __init__(self, label):
                self.label = label

            def __call__(self, event):
                calls.append(self.label)

            def __eq__(self, other):
                return isinstance(other, Recorder)

            __hash__ = object.__hash__

        registered = Recorder("registered")
        source.on("output", registered)

        source.off("output", Recorder("other"))
        await source.emit("output", message("hi"))

        assert source.listener_count("output") == 1
        assert calls == ["registered"]

    @pytest.mark.asyncio
    async def test_no_replay_for_late_listener(self):
        """Test that a listener only sees events emitted after it registered."""
        source = ActorEventSource()
        calls: list[str] = []

        await source.emit("output", message("early"))
        source.on("output", lambda e: calls.append(e.content))
        await source.emit("output", message("late"))

        assert calls == ["late"]

    @pytest.mark.asyncio
    async def test_listener_added_during_emit_waits_for_next(self):
        """Test that registrations made while emitting do not receive that emission."""
        source = ActorEventSource()
        calls: list[str] = []

        def late(event):
            calls.append(f"late:{event.content}")

        def registrar(event):
            calls.append(f"registrar:{event.content}")
            source.on("output", late)

        source.once("output", registrar)
        await source.emit("output", message("1"))
        await source.emit("output", message("2"))

        assert calls == ["registrar:1", "late:2"]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self):
        """Test that a raising listener is isolated."""
        source = ActorEventSource()
        calls: list[str] = []

        def broken(event):
            raise RuntimeError("listener failed")

        source.on("output", broken)
        source.on("output", lambda e: calls.append(e.content))

        await source.emit("output", message("hi"))

        assert calls == ["hi"]

    @pytest.mark.asyncio
    async def test_async_listener_awaited(self):
        """Test that coroutine listeners are awaited before emit returns."""
        source = ActorEventSource()
        calls: list[str] = []

        async def listener(event):
            calls.append(event.content)

        source.on("output", listener)
        await source.emit("output", message("hi"))

        assert calls == ["hi"]

    @pytest.mark.asyncio
    async def test_multiple_events_in_one_emit(self):
        """Test that every payload of an emission reaches each listener in order."""
        source = ActorEventSource()
        calls: list[str] = []

        source.on("output", lambda e: calls.append(e.content))
        await source.emit("output", message("a"), message("b"))

        assert calls == ["a", "b"]

    def test_clear_drops_all_listeners(self):
        """Test clear()."""
        source = ActorEventSource()
        source.on("output", print).once("output", print)

        source.clear()

        assert source.listener_count("output") == 0
