"""Serialized agent execution with a middleware-wrapped core step."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from langchain_core.messages import BaseMessage, SystemMessage, convert_to_messages

from ema.agent.state import AgentState
from ema.errors import AgentCancelledError, AgentDisposedError, ContinuationReusedError
from ema.llm.base import LLMClient, LLMResponse

if TYPE_CHECKING:
    from ema.middleware.base import AgentMiddleware
    from ema.scheduler.admission import Admission

logger = logging.getLogger(__name__)


class Continuation:
    """One-shot handle passed to a state callback as ``next``.

    Awaiting it runs the core step (the backend call through the agent's
    middleware chain) and returns the generated response. A second call raises
    ``ContinuationReusedError``.
    """

    def __init__(self, invoke: Callable[[], Awaitable[LLMResponse]], agent_name: str | None = None):
        self._invoke = invoke
        self._agent_name = agent_name
        self.invoked = False
        self.reused = False
        self.response: LLMResponse | None = None

    async def __call__(self) -> LLMResponse:
        if self.invoked:
            self.reused = True
            raise ContinuationReusedError(self._agent_name)
        self.invoked = True
        self.response = await self._invoke()
        return self.response


StateCallback = Callable[[AgentState, Continuation], Awaitable[Optional[AgentState]]]


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one committed execution.

    ``state`` is the agent's live state object after the commit;
    ``invoked_core`` tells whether the callback called ``next()``.
    """

    state: AgentState
    invoked_core: bool
    response: LLMResponse | None = None


class Agent:
    """Runs state callbacks against one AgentState, one at a time.

    Callbacks are queued FIFO; a callback starts only after the previous one
    has settled. Inside a callback, ``await next()`` calls the backend with the
    system prompt, messages and tools, appends the reply to
    ``state.messages`` and resumes the callback.

    Usage:
        agent = Agent(client, AgentState(system_prompt="Be brief."))

        async def remember_silently(state, next):
            state.messages.append(HumanMessage(content="note for later"))
            return state

        await agent.run(remember_silently)           # no backend call
        await agent.run_with_message({"role": "user", "content": "hi"})
    """

    def __init__(
        self,
        client: LLMClient,
        state: AgentState | None = None,
        *,
        middleware: Sequence[AgentMiddleware] = (),
        name: str | None = None,
        admission: Admission | None = None,
    ) -> None:
        self.client = client
        self.state = state if state is not None else AgentState()
        self.middleware = list(middleware)
        self.name = name or f"agent-{uuid.uuid4().hex[:8]}"
        self.admission = admission

        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._running = False
        self._task: asyncio.Task[ExecutionResult] | None = None
        self._stop_requested = False
        self._disposed = False

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, running={self._running})"

    def is_running(self) -> bool:
        """Whether an execution is in flight."""
        return self._running

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def run(self, callback: StateCallback) -> ExecutionResult:
        """Run ``callback`` once every earlier execution has settled.

        Raises:
            AgentCancelledError: the execution was stopped with ``stop()``
            ContinuationReusedError: the callback called ``next()`` twice
            AgentDisposedError: the agent was disposed before the callback started
        """
        if self._disposed:
            raise AgentDisposedError(f"Agent '{self.name}' is disposed")

        async with self._lock:
            if self._disposed:
                raise AgentDisposedError(f"Agent '{self.name}' is disposed")

            slot = self.admission.slot() if self.admission else contextlib.nullcontext()
            async with slot:
                return await self._run_locked(callback)

    async def _run_locked(self, callback: StateCallback) -> ExecutionResult:
        self._running = True
        self._idle.clear()
        self._stop_requested = False
        task = asyncio.create_task(self._execute(callback), name=f"{self.name}:execute")
        self._task = task
        logger.debug(f"[Agent] {self.name} execution started")

        try:
            return await task
        except asyncio.CancelledError:
            if self._stop_requested and task.cancelled():
                logger.debug(f"[Agent] {self.name} execution stopped")
                raise AgentCancelledError(self.name) from None
            raise
        finally:
            self._task = None
            self._stop_requested = False
            self._running = False
            self._idle.set()
            logger.debug(f"[Agent] {self.name} execution settled")

    async def _execute(self, callback: StateCallback) -> ExecutionResult:
        state = self.state
        next_ = Continuation(functools.partial(self._invoke_core, state), self.name)

        result = await callback(state, next_)

        if next_.reused:
            raise ContinuationReusedError(self.name)
        if result is not None and result is not state:
            state.replace(result)

        return ExecutionResult(state=state, invoked_core=next_.invoked, response=next_.response)

    async def _invoke_core(self, state: AgentState) -> LLMResponse:
        handler: Callable[[AgentState], Awaitable[LLMResponse]] = self._call_backend
        for middleware in reversed(self.middleware):
            handler = functools.partial(middleware.awrap_model_call, handler=handler)

        response = await handler(state)
        state.messages.append(response.to_message())
        return response

    async def _call_backend(self, state: AgentState) -> LLMResponse:
        messages: list[BaseMessage] = list(state.messages)
        if state.system_prompt:
            messages.insert(0, SystemMessage(content=state.system_prompt))
        return await self.client.generate(messages, state.tools or None)

    async def run_with_message(self, message: BaseMessage | dict[str, Any] | str) -> ExecutionResult:
        """Append ``message`` to the history and generate a reply."""
        converted = convert_to_messages([message])[0]

        async def callback(state: AgentState, next_: Continuation) -> AgentState:
            state.messages.append(converted)
            await next_()
            return state

        return await self.run(callback)

    async def execute(self, new_state: AgentState) -> ExecutionResult:
        """Replace the whole state and generate a reply."""

        async def callback(state: AgentState, next_: Continuation) -> AgentState:
            state.replace(new_state)
            await next_()
            return state

        return await self.run(callback)

    async def stop(self) -> None:
        """Cancel the in-flight execution, if any.

        State changes made before the cancellation point are kept. Executions
        queued behind the stopped one still run.
        """
        task = self._task
        if task is None or task.done():
            return

        self._stop_requested = True
        task.cancel()
        await asyncio.wait({task})

    async def wait_until_idle(self) -> None:
        if not self._running:
            return
        await self._idle.wait()

    async def dispose(self) -> None:
        """Stop the in-flight execution and reject all further work."""
        self._disposed = True
        await self.stop()
