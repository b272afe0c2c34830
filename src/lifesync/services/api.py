"""NATS request/reply API for the scheduler and alert pipeline."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TYPE_CHECKING

from pydantic import ValidationError

from lifesync.errors import LifeSyncError
from lifesync.messaging import NatsConnection, Subjects
from lifesync.models.api import (
    PriceAlertResponse,
    PriceAlertSend,
    RunScheduledTasks,
    ScheduledTaskCreate,
    ScheduledTaskResponse,
)
from lifesync.models.scheduled_task import DispatchReport, ScheduledTask, TaskStatus

if TYPE_CHECKING:
    from lifesync.services.alerts import PriceAlertService
    from lifesync.services.scheduler import SchedulerService

logger = logging.getLogger(__name__)

ApiHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def _api_errors(handler: ApiHandler) -> ApiHandler:
    """Reply with `{"error": ...}` for invalid requests and scheduler errors."""

    async def wrapper(data: dict[str, Any]) -> dict[str, Any]:
        try:
            return await handler(data)
        except ValidationError as e:
            return {"error": f"Invalid request: {e.errors()[0]['msg']}"}
        except LifeSyncError as e:
            return {"error": str(e)}
        except ValueError as e:
            return {"error": f"Invalid request: {e}"}

    wrapper.__name__ = handler.__name__
    return wrapper


class ApiService:
    """Serves the `lifesync.api.*` subjects and publishes dispatch broadcasts."""

    def __init__(
        self,
        connection: NatsConnection,
        scheduler: "SchedulerService",
        alerts: "PriceAlertService",
    ) -> None:
        self._conn = connection
        self._scheduler = scheduler
        self._alerts = alerts

    @property
    def conn(self) -> NatsConnection:
        return self._conn

    async def start(self) -> None:
        """Set up all API subscriptions on the shared connection."""
        routes: dict[str, ApiHandler] = {
            Subjects.API_SCHEDULED_TASKS: self._api_list_scheduled_tasks,
            Subjects.API_SCHEDULED_TASK_GET: self._api_get_scheduled_task,
            Subjects.API_SCHEDULED_TASK_CREATE: self._api_create_scheduled_task,
            Subjects.API_SCHEDULED_TASK_RUN: self._api_run_scheduled_tasks,
            Subjects.API_SCHEDULED_TASK_PAUSE: self._api_pause_scheduled_task,
            Subjects.API_SCHEDULED_TASK_RESUME: self._api_resume_scheduled_task,
            Subjects.API_SCHEDULED_TASK_REQUEUE: self._api_requeue_scheduled_task,
            Subjects.API_PRICE_ALERT_SEND: self._api_send_price_alert,
        }
        for subject, handler in routes.items():
            await self._conn.subscribe_request(
                subject, _api_errors(handler), queue="scheduler"
            )
        logger.info(f"ApiService started ({len(routes)} subjects)")

    async def stop(self) -> None:
        """Stop serving API requests. The shared connection stays open."""
        await self._conn.unsubscribe_all()
        logger.info("ApiService stopped")

    async def publish_dispatch_report(self, report: DispatchReport) -> None:
        """Broadcast a finished dispatch and each task that failed in it."""
        await self._conn.publish(
            Subjects.BROADCAST_DISPATCH_COMPLETED, report.to_dict()
        )
        for outcome in report.outcomes:
            if outcome.claimed and not outcome.success:
                await self._conn.publish(
                    Subjects.BROADCAST_TASK_FAILED,
                    {"task_id": outcome.task_id, "error": outcome.error},
                )

    async def _api_list_scheduled_tasks(self, data: dict[str, Any]) -> dict[str, Any]:
        """List scheduled tasks, optionally filtered by status."""
        status = TaskStatus(data["status"]) if data.get("status") else None
        tasks = await self._scheduler.list_tasks(status)
        return {"tasks": [self._format_scheduled_task(t) for t in tasks]}

    async def _api_get_scheduled_task(self, data: dict[str, Any]) -> dict[str, Any]:
        task = await self._scheduler.get_task(data.get("task_id", ""))
        return self._format_scheduled_task(task)

    async def _api_create_scheduled_task(self, data: dict[str, Any]) -> dict[str, Any]:
        request = ScheduledTaskCreate.model_validate(data)
        task_id = await self._scheduler.schedule_task(
            name=request.name,
            type=request.type,
            scheduled_time=request.scheduled_time,
            interval=request.interval,
            data=request.data,
        )
        return {"task_id": task_id}

    async def _api_run_scheduled_tasks(self, data: dict[str, Any]) -> dict[str, Any]:
        """Run one dispatch batch now."""
        request = RunScheduledTasks.model_validate(data)
        report = await self._scheduler.run_scheduled_tasks(request.batch_size)
        return report.to_dict()

    async def _api_pause_scheduled_task(self, data: dict[str, Any]) -> dict[str, Any]:
        task = await self._scheduler.pause_task(data.get("task_id", ""))
        return self._format_scheduled_task(task)

    async def _api_resume_scheduled_task(self, data: dict[str, Any]) -> dict[str, Any]:
        task = await self._scheduler.resume_task(data.get("task_id", ""))
        return self._format_scheduled_task(task)

    async def _api_requeue_scheduled_task(self, data: dict[str, Any]) -> dict[str, Any]:
        task = await self._scheduler.requeue_task(data.get("task_id", ""))
        return self._format_scheduled_task(task)

    async def _api_send_price_alert(self, data: dict[str, Any]) -> dict[str, Any]:
        """Evaluate and send a price alert for one tracked product."""
        request = PriceAlertSend.model_validate(data)
        record = await self._alerts.send_price_alert(
            request.product_id, force_send=request.force_send
        )
        return PriceAlertResponse(
            alert_id=record.alert_id,
            product_id=record.subject_id,
            outcome=record.outcome.value,
            skip_reason=record.skip_reason.value if record.skip_reason else None,
            message_id=record.message_id,
        ).model_dump()

    @staticmethod
    def _format_scheduled_task(task: ScheduledTask) -> dict[str, Any]:
        return ScheduledTaskResponse(
            task_id=task.task_id,
            name=task.name,
            type=task.type,
            status=task.status.value,
            scheduled_time=task.scheduled_time,
            next_run=task.next_run,
            last_run=task.last_run,
            interval=task.interval,
            data=task.data,
            last_error=task.last_error,
            version=task.version,
        ).model_dump()
