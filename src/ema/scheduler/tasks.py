"""Scheduled agent tasks and trigger helpers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from apscheduler.triggers.base import BaseTrigger

    from ema.agent.agent import Agent
    from ema.scheduler.scheduler import AgentScheduler

TaskBody = Callable[["Agent", "AgentScheduler"], Awaitable[Any]]


class TaskKind(str, Enum):
    """How the scheduler drives a task."""

    ONESHOT = "oneshot"  # runs once on a fresh ephemeral agent
    BOUND = "bound"  # runs once on the task's own agent
    RECURRING = "recurring"  # runs once per trigger firing


@dataclass
class AgentTask:
    """A named unit of scheduled work.

    ``run`` receives the agent to drive and the scheduler. A task with a
    ``trigger`` is recurring: the scheduler calls ``run`` once per firing.
    Without a trigger ``run`` is called once and may loop on its own.
    """

    name: str
    run: TaskBody
    agent: Agent | None = None
    trigger: BaseTrigger | None = None

    @property
    def kind(self) -> TaskKind:
        if self.trigger is not None:
            return TaskKind.RECURRING
        if self.agent is not None:
            return TaskKind.BOUND
        return TaskKind.ONESHOT


def cron_task(
    name: str,
    crontab: str,
    run: TaskBody,
    agent: Agent | None = None,
    tz: str | None = None,
) -> AgentTask:
    """Build a recurring task from a standard 5-field crontab expression."""
    return AgentTask(name=name, run=run, agent=agent, trigger=CronTrigger.from_crontab(crontab, timezone=tz))


def interval_task(
    name: str,
    seconds: float,
    run: TaskBody,
    agent: Agent | None = None,
) -> AgentTask:
    """Build a recurring task firing every ``seconds``."""
    return AgentTask(
        name=name,
        run=run,
        agent=agent,
        trigger=IntervalTrigger(seconds=seconds, timezone=timezone.utc),
    )
