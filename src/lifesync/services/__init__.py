from .alerts import PriceAlertService, should_skip
from .api import ApiService
from .dispatcher import TaskDispatcher
from .handlers import HandlerRegistry, TaskHandlers
from .notifications import NotificationClient, NotificationSender
from .reporting import ReportGenerator
from .scheduler import SchedulerService
from .store import DatabaseTaskStore, TaskStore

__all__ = [
    "ApiService",
    "DatabaseTaskStore",
    "HandlerRegistry",
    "NotificationClient",
    "NotificationSender",
    "PriceAlertService",
    "ReportGenerator",
    "SchedulerService",
    "TaskDispatcher",
    "TaskHandlers",
    "TaskStore",
    "should_skip",
]
