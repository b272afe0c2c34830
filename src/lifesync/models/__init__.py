from .alert import (
    AlertCandidate,
    AlertOutcome,
    AlertRecord,
    Channel,
    Recipient,
    SkipReason,
    SubjectState,
)
from .api import (
    PriceAlertResponse,
    PriceAlertSend,
    RunScheduledTasks,
    ScheduledTaskCreate,
    ScheduledTaskResponse,
)
from .scheduled_task import (
    DispatchReport,
    ScheduledTask,
    TaskOutcome,
    TaskStatus,
    TaskType,
)

__all__ = [
    # API schemas
    "PriceAlertResponse",
    "PriceAlertSend",
    "RunScheduledTasks",
    "ScheduledTaskCreate",
    "ScheduledTaskResponse",
    # Alert models
    "AlertCandidate",
    "AlertOutcome",
    "AlertRecord",
    "Channel",
    "Recipient",
    "SkipReason",
    "SubjectState",
    # Task models
    "DispatchReport",
    "ScheduledTask",
    "TaskOutcome",
    "TaskStatus",
    "TaskType",
]
