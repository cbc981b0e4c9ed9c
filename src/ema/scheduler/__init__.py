"""Agent scheduling: admission control, tasks and triggers."""

from ema.scheduler.admission import Admission
from ema.scheduler.scheduler import (
    AgentScheduler,
    CallbackRequest,
    MessageRequest,
    ScheduledTask,
    ScheduleRequest,
)
from ema.scheduler.tasks import AgentTask, TaskKind, cron_task, interval_task

__all__ = [
    "Admission",
    "AgentScheduler",
    "AgentTask",
    "CallbackRequest",
    "MessageRequest",
    "ScheduleRequest",
    "ScheduledTask",
    "TaskKind",
    "cron_task",
    "interval_task",
]
