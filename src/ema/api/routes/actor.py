from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from ema.actor import Actor, ActorEvent, ActorInput
from ema.server import EmaServer, get_server

router = APIRouter()

SSE_HEADERS = {
    "Connection": "keep-alive",
    "Content-Encoding": "none",
    "Cache-Control": "no-cache, no-transform",
}


class ActorInputRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: StrictInt = Field(..., alias="userId", description="User ID")
    actor_id: StrictInt = Field(..., alias="actorId", description="Actor ID")
    inputs: list[ActorInput] = Field(..., description="Inputs to queue for the actor")


class ActorInputResponse(BaseModel):
    success: bool = True


def actor_event_stream(actor: Actor) -> AsyncIterator[str]:
    """Subscribe to ``actor`` and stream its events as SSE ``data:`` frames.

    The subscription is dropped when the stream is closed, e.g. when the
    client disconnects.
    """
    queue: asyncio.Queue[ActorEvent] = asyncio.Queue()

    def on_output(event: ActorEvent) -> None:
        queue.put_nowait(event)

    actor.subscribe(on_output)

    async def stream() -> AsyncIterator[str]:
        try:
            while True:
                event = await queue.get()
                yield f"data: {event.model_dump_json()}\n\n"
        finally:
            actor.unsubscribe(on_output)

    return stream()


@router.post("/actor/input", response_model=ActorInputResponse)
async def actor_input(
    request: ActorInputRequest,
    server: EmaServer = Depends(get_server),
) -> ActorInputResponse:
    """Queue inputs for an actor.

    Body:
        - userId (int): User ID
        - actorId (int): Actor ID
        - inputs (ActorInput[]): e.g. ``[{"kind": "text", "content": "Hello"}]``
    """
    actor = await server.get_actor(request.user_id, request.actor_id)
    await actor.add_inputs(request.inputs)
    return ActorInputResponse(success=True)


@router.get("/actor/sse")
async def actor_sse(
    user_id: int = Query(..., alias="userId"),
    actor_id: int = Query(..., alias="actorId"),
    server: EmaServer = Depends(get_server),
) -> StreamingResponse:
    """Stream an actor's output events as server-sent events."""
    actor = await server.get_actor(user_id, actor_id)
    return StreamingResponse(
        actor_event_stream(actor),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
