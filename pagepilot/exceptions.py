from __future__ import annotations

from typing import Optional


class PagePilotError(Exception):
    """Base class for every error raised by pagepilot."""


class AlreadyRunning(PagePilotError):
    """`execute_task` was called while another task is active on the same executor."""


class ModelUnavailable(PagePilotError):
    """The model cannot run here (no accelerator, missing credentials, unsupported model)."""


class CompletionFailure(PagePilotError):
    """A model call failed at the transport level."""


class SchemaViolation(PagePilotError):
    """The model replied with something that does not match the declared output shape."""

    def __init__(self, message: str, raw_output: Optional[str] = None):
        super().__init__(message)
        self.raw_output = raw_output


class ObservationFailure(PagePilotError):
    """The snapshot provider could not capture the page."""


class ActionFailure(PagePilotError):
    """The action provider raised or reported an unsuccessful result."""


class BudgetExceeded(PagePilotError):
    """The step or replan budget ran out before the task finished."""


class TaskCancelled(PagePilotError):
    """The task was cancelled through `Executor.cancel()`."""
