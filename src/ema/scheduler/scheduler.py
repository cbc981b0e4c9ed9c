"""System-wide admission and concurrency control for agent executions."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import uuid
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Union

from apscheduler.events import EVENT_JOB_REMOVED, JobEvent
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from langchain_core.messages import BaseMessage

from ema.agent.agent import Agent, ExecutionResult, StateCallback
from ema.agent.state import AgentState
from ema.app_logging import get_logger
from ema.config import get_settings
from ema.errors import AgentDisposedError
from ema.llm.base import LLMClient
from ema.middleware.base import AgentMiddleware
from ema.scheduler.admission import Admission
from ema.scheduler.tasks import AgentTask, TaskKind

logger = logging.getLogger(__name__)

MAX_RECORDED_ERRORS = 20


@dataclass(frozen=True)
class MessageRequest:
    """Drive an agent by appending a message and generating a reply."""

    message: BaseMessage | dict[str, Any] | str


@dataclass(frozen=True)
class CallbackRequest:
    """Drive an agent with an arbitrary state callback."""

    callback: StateCallback


ScheduleRequest = Union[MessageRequest, CallbackRequest]


@dataclass
class ScheduledTask:
    """Handle to a registered task. Await it to get the body's result."""

    task: AgentTask
    handle: asyncio.Task[Any] = field(init=False, repr=False)
    firings: int = 0
    failures: int = 0
    # most recent errors only; ``failures`` keeps the full count
    errors: deque[BaseException] = field(default_factory=lambda: deque(maxlen=MAX_RECORDED_ERRORS))

    @property
    def name(self) -> str:
        return self.task.name

    @property
    def kind(self) -> TaskKind:
        return self.task.kind

    def done(self) -> bool:
        return self.handle.done()

    def cancel(self) -> bool:
        return self.handle.cancel()

    def __await__(self):
        return self.handle.__await__()


class AgentScheduler:
    """Admits agent executions under a global concurrency cap.

    Every agent created or adopted by the scheduler takes a slot for each
    execution; requests beyond ``max_concurrency`` wait in FIFO order and are
    never rejected.

    Usage:
        scheduler = AgentScheduler(client, max_concurrency=4)
        result = await scheduler.run(callback)              # ephemeral agent
        await scheduler.submit(agent, MessageRequest("hi"))  # existing agent
        handle = scheduler.schedule(cron_task("digest", "0 9 * * *", body))
    """

    def __init__(
        self,
        client: LLMClient,
        max_concurrency: int | None = None,
        *,
        middleware_factory: Callable[[], Sequence[AgentMiddleware]] | None = None,
    ) -> None:
        self.client = client
        self.max_concurrency = max_concurrency or get_settings().scheduler.max_concurrency
        self.middleware_factory = middleware_factory
        self._admission = Admission(self.max_concurrency)
        self._tasks: dict[str, ScheduledTask] = {}
        self._timer: AsyncIOScheduler | None = None
        # job id -> future settled when the recurring job ends
        self._recurring: dict[str, asyncio.Future[None]] = {}
        self._firings: dict[str, asyncio.Task[Any]] = {}

    @property
    def active_count(self) -> int:
        """Executions currently holding a slot."""
        return self._admission.active

    @property
    def pending_count(self) -> int:
        """Executions waiting for a slot."""
        return self._admission.pending

    @property
    def tasks(self) -> list[ScheduledTask]:
        """Registered tasks that have not finished."""
        return list(self._tasks.values())

    def create_agent(
        self,
        state: AgentState | None = None,
        *,
        name: str | None = None,
        middleware: Sequence[AgentMiddleware] | None = None,
    ) -> Agent:
        """Create an agent whose executions count against the cap."""
        if middleware is None:
            middleware = self.middleware_factory() if self.middleware_factory else ()
        return Agent(
            self.client,
            state,
            middleware=middleware,
            name=name,
            admission=self._admission,
        )

    def adopt(self, agent: Agent) -> Agent:
        """Put an existing agent under this scheduler's cap."""
        agent.admission = self._admission
        return agent

    async def run(self, callback: StateCallback) -> ExecutionResult:
        """Run a oneshot callback on a fresh ephemeral agent."""
        agent = self.create_agent(name=f"oneshot-{uuid.uuid4().hex[:8]}")
        try:
            return await agent.run(callback)
        finally:
            await agent.dispose()

    async def submit(self, agent: Agent, request: ScheduleRequest) -> ExecutionResult:
        """Drive ``agent`` with a message or callback request."""
        self.adopt(agent)
        if isinstance(request, MessageRequest):
            return await agent.run_with_message(request.message)
        if isinstance(request, CallbackRequest):
            return await agent.run(request.callback)
        raise TypeError(f"Unsupported schedule request: {type(request).__name__}")

    def schedule(self, task: AgentTask) -> ScheduledTask:
        """Register ``task`` and start it in the background.

        Must be called from a running event loop.
        """
        existing = self._tasks.get(task.name)
        if existing is not None and not existing.done():
            raise ValueError(f"Task already scheduled: {task.name}")

        if task.agent is not None:
            self.adopt(task.agent)

        scheduled = ScheduledTask(task=task)
        scheduled.handle = asyncio.create_task(self._drive(scheduled), name=f"ema-task:{task.name}")
        self._tasks[task.name] = scheduled
        scheduled.handle.add_done_callback(functools.partial(self._on_task_done, scheduled))

        get_logger().info(
            "scheduler.task_scheduled",
            {"task": task.name, "kind": task.kind.value},
            channel="scheduler",
        )
        return scheduled

    async def _drive(self, scheduled: ScheduledTask) -> Any:
        if scheduled.kind is TaskKind.RECURRING:
            return await self._run_recurring(scheduled)
        scheduled.firings += 1
        return await self._fire(scheduled.task)

    def _get_timer(self) -> AsyncIOScheduler:
        """Return the timer driving recurring jobs, starting it on first use."""
        if self._timer is None:
            self._timer = AsyncIOScheduler(event_loop=asyncio.get_running_loop(), timezone=timezone.utc)
            self._timer.add_listener(self._on_job_removed, EVENT_JOB_REMOVED)
            self._timer.start()
            logger.info("[Scheduler] Timer started")
        return self._timer

    async def _fire(self, task: AgentTask) -> Any:
        """Run the task body once, on its own agent or an ephemeral one."""
        agent = task.agent or self.create_agent(name=f"{task.name}-{uuid.uuid4().hex[:8]}")
        try:
            with get_logger().timer("scheduler.task_run", {"task": task.name}, channel="scheduler"):
                return await task.run(agent, self)
        finally:
            if task.agent is None:
                await agent.dispose()

    async def _run_recurring(self, scheduled: ScheduledTask) -> None:
        """Register the task's trigger as a timer job and wait for it to end.

        The job ends when its trigger runs out of fire times, or with
        ``AgentDisposedError`` once the task's bound agent is disposed.
        """
        name = scheduled.name
        timer = self._get_timer()
        ended = asyncio.get_running_loop().create_future()
        self._recurring[name] = ended
        try:
            job = timer.add_job(
                self._fire_recurring,
                trigger=scheduled.task.trigger,
                args=(scheduled,),
                id=name,
                name=name,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=None,
            )
            if job.next_run_time is None:
                job.remove()
            await ended
        except asyncio.CancelledError:
            firing = self._firings.get(name)
            if firing is not None:
                firing.cancel()
            raise
        finally:
            self._recurring.pop(name, None)
            with contextlib.suppress(JobLookupError):
                timer.remove_job(name)
            firing = self._firings.get(name)
            if firing is not None and not firing.done():
                await asyncio.wait({firing})

    async def _fire_recurring(self, scheduled: ScheduledTask) -> None:
        """Run one firing of a recurring task. Called by the timer."""
        name = scheduled.name
        bound = scheduled.task.agent
        if bound is not None and bound.disposed:
            self._end_recurring(name, AgentDisposedError(f"Agent '{bound.name}' is disposed"))
            return

        self._firings[name] = asyncio.current_task()
        scheduled.firings += 1
        logger.debug(f"[Scheduler] Firing {name}")
        try:
            await self._fire(scheduled.task)
        except Exception as e:
            if isinstance(e, AgentDisposedError) and bound is not None and bound.disposed:
                self._end_recurring(name, e)
                return
            scheduled.failures += 1
            scheduled.errors.append(e)
            get_logger().warning(
                "scheduler.firing_failed",
                {"task": name, "error": str(e), "error_type": type(e).__name__},
                channel="scheduler",
            )
        finally:
            self._firings.pop(name, None)

    def _end_recurring(self, name: str, error: BaseException | None = None) -> None:
        ended = self._recurring.get(name)
        if ended is None or ended.done():
            return
        if error is None:
            ended.set_result(None)
        else:
            ended.set_exception(error)

    def _on_job_removed(self, event: JobEvent) -> None:
        self._end_recurring(event.job_id)

    def _on_task_done(self, scheduled: ScheduledTask, handle: asyncio.Task[Any]) -> None:
        if self._tasks.get(scheduled.name) is scheduled:
            del self._tasks[scheduled.name]

        if handle.cancelled():
            logger.debug(f"[Scheduler] Task {scheduled.name} cancelled")
            return

        error = handle.exception()
        if error is not None:
            scheduled.failures += 1
            scheduled.errors.append(error)
            get_logger().error(
                "scheduler.task_failed",
                {"task": scheduled.name, "error": str(error), "error_type": type(error).__name__},
                channel="scheduler",
            )
        else:
            get_logger().info(
                "scheduler.task_finished",
                {"task": scheduled.name, "firings": scheduled.firings},
                channel="scheduler",
            )

    async def wait_for_idle(self, agent: Agent, timeout: float | None = None) -> None:
        """Wait until ``agent`` is not running.

        Raises:
            TimeoutError: ``timeout`` seconds passed first. The agent's
                execution is left untouched.
        """
        if not agent.is_running():
            return
        if timeout is None:
            await agent.wait_until_idle()
            return
        await asyncio.wait_for(agent.wait_until_idle(), timeout)

    async def shutdown(self) -> None:
        """Cancel every registered task and wait for them to settle."""
        pending = [scheduled.handle for scheduled in self._tasks.values()]
        for handle in pending:
            handle.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._timer is not None:
            if self._timer.running:
                self._timer.shutdown(wait=False)
            self._timer = None
        get_logger().info("scheduler.shutdown", {"cancelled": len(pending)}, channel="scheduler")
