"""Actor input and output types."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, TypeAdapter


class ActorTextInput(BaseModel):
    """Text input to an actor."""

    kind: Literal["text"] = "text"
    content: str


class ActorMessageEvent(BaseModel):
    """Message produced by an actor."""

    kind: Literal["message"] = "message"
    content: str


# Widen to a discriminated union on ``kind`` when image/audio inputs land.
ActorInput = ActorTextInput
ActorEvent = ActorMessageEvent

ActorInputList = TypeAdapter(list[ActorInput])
