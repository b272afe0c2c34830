"""Scheduled task model and dispatch results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskType(str, Enum):
    REMINDER_EMAIL = "reminder-email"
    DATA_CLEANUP = "data-cleanup"
    REPORT_GENERATION = "report-generation"
    DONATION_REMINDER = "donation-reminder"
    BACKUP = "backup"
    CUSTOM = "custom"
    PRICE_ALERT = "price-alert"


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


@dataclass
class ScheduledTask:
    """A unit of scheduled work.

    `type` is kept as the raw stored string so rows written with a type this
    build does not know about still load and fail at dispatch time.
    """

    task_id: str
    name: str
    type: str
    scheduled_time: int
    next_run: int | None
    status: TaskStatus = TaskStatus.PENDING
    last_run: int | None = None
    interval: str | None = None  # None = run once
    data: dict[str, Any] = field(default_factory=dict)
    last_error: str | None = None
    version: int = 0
    created_at: int | None = None

    @property
    def is_recurring(self) -> bool:
        return bool(self.interval)


@dataclass
class TaskOutcome:
    """Result of one task within a dispatch batch."""

    task_id: str
    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None
    claimed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "success": self.success,
            "result": self.result,
            "error": self.error,
            "claimed": self.claimed,
        }


@dataclass
class DispatchReport:
    """Per-task outcomes of a single dispatcher invocation."""

    started_at: int
    outcomes: list[TaskOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.claimed and not o.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [o.to_dict() for o in self.outcomes],
        }
