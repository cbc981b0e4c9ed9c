"""Exceptions raised by the EMA runtime."""

from __future__ import annotations


class EmaError(Exception):
    """Base class for all EMA runtime errors."""


class ContinuationReusedError(EmaError):
    """Raised when a state callback calls ``next()`` more than once.

    This is a programming error in the callback. The enclosing execution
    fails even if the callback catches the exception.
    """

    def __init__(self, agent_name: str | None = None):
        self.agent_name = agent_name
        where = f" on agent '{agent_name}'" if agent_name else ""
        super().__init__(f"next() was called more than once in a single callback{where}")


class AgentCancelledError(EmaError):
    """Raised to the caller of ``Agent.run`` when the execution was stopped."""

    def __init__(self, agent_name: str | None = None):
        self.agent_name = agent_name
        where = f"Agent '{agent_name}'" if agent_name else "Agent"
        super().__init__(f"{where} execution was cancelled by stop()")


class AgentDisposedError(EmaError):
    """Raised when work is submitted to a disposed agent."""


class SnapshotNotFoundError(EmaError):
    """Raised when restoring a snapshot that does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Snapshot not found: {name}")
