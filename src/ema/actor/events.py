"""Per-actor output event fan-out."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Union

from ema.actor.types import ActorEvent

logger = logging.getLogger(__name__)

Listener = Callable[[ActorEvent], Union[None, Awaitable[None]]]


@dataclass
class _Registration:
    callback: Listener
    once: bool = False


class ActorEventSource:
    """Explicit, ordered set of listener handles owned by one actor.

    Listeners are called in registration order. ``off`` removes by handle
    identity. Only listeners registered when ``emit`` starts receive that
    emission; there is no replay.
    """

    EVENTS = ("output",)

    def __init__(self) -> None:
        self._listeners: dict[str, list[_Registration]] = {event: [] for event in self.EVENTS}

    def _registrations(self, event: str) -> list[_Registration]:
        try:
            return self._listeners[event]
        except KeyError:
            raise ValueError(f"Unknown actor event: {event}") from None

    def on(self, event: str, callback: Listener) -> ActorEventSource:
        self._registrations(event).append(_Registration(callback))
        return self

    def once(self, event: str, callback: Listener) -> ActorEventSource:
        self._registrations(event).append(_Registration(callback, once=True))
        return self

    def off(self, event: str, callback: Listener) -> ActorEventSource:
        """Remove the earliest registration of ``callback``; no-op if absent."""
        registrations = self._registrations(event)
        for index, registration in enumerate(registrations):
            if registration.callback is callback:
                del registrations[index]
                break
        return self

    def listener_count(self, event: str) -> int:
        return len(self._registrations(event))

    def clear(self) -> None:
        for registrations in self._listeners.values():
            registrations.clear()

    async def emit(self, event: str, *events: ActorEvent) -> bool:
        """Deliver ``events`` to every current listener.

        A failing listener is logged and does not stop delivery to the others.
        Returns True if there was at least one listener.
        """
        live = self._registrations(event)
        registrations = list(live)
        for registration in registrations:
            if registration.once:
                live[:] = [r for r in live if r is not registration]
            for payload in events:
                try:
                    result = registration.callback(payload)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    logger.exception(f"[ActorEventSource] Listener for '{event}' failed")
        return bool(registrations)
