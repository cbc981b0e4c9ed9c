"""Actors: the user-facing side of EMA."""

from ema.actor.actor import Actor
from ema.actor.events import ActorEventSource, Listener
from ema.actor.types import (
    ActorEvent,
    ActorInput,
    ActorInputList,
    ActorMessageEvent,
    ActorTextInput,
)

__all__ = [
    "Actor",
    "ActorEvent",
    "ActorEventSource",
    "ActorInput",
    "ActorInputList",
    "ActorMessageEvent",
    "ActorTextInput",
    "Listener",
]
