"""LifeSync scheduler exception hierarchy.

Every error raised by the scheduler and alert pipeline derives from
LifeSyncError so API layers can translate them with one catch clause.
"""


class LifeSyncError(Exception):
    """Base exception for all LifeSync scheduler errors."""

    def __init__(self, message: str = "", *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class InvalidIntervalError(LifeSyncError, ValueError):
    """Interval string is not `<integer><unit>` with unit in s/m/h/d/w."""

    def __init__(self, interval: object) -> None:
        super().__init__(f"Invalid interval: {interval!r}")
        self.interval = interval


class UnknownTaskTypeError(LifeSyncError):
    """No handler is registered for a task type."""

    def __init__(self, task_type: str) -> None:
        super().__init__(f"Unknown task type: {task_type}")
        self.task_type = task_type


class HandlerExecutionError(LifeSyncError):
    """A task handler could not complete its work."""


class SenderDeliveryError(LifeSyncError):
    """The notification gateway did not accept a message."""

    def __init__(self, message: str = "", *, retryable: bool = True) -> None:
        super().__init__(message, retryable=retryable)


class TaskNotFoundError(LifeSyncError):
    """Scheduled task does not exist."""


class InvalidTaskStateError(LifeSyncError):
    """Requested status transition is not allowed from the current status."""
