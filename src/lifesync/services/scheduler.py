"""Scheduler service: task scheduling entrypoints and the periodic trigger."""

import asyncio
import logging
from typing import Any, TYPE_CHECKING

from lifesync.clock import Clock
from lifesync.errors import (
    InvalidTaskStateError,
    TaskNotFoundError,
    UnknownTaskTypeError,
)
from lifesync.interval import parse_interval
from lifesync.models.scheduled_task import (
    DispatchReport,
    ScheduledTask,
    TaskStatus,
    TaskType,
)
from lifesync.services.dispatcher import TaskDispatcher
from lifesync.services.store import TaskStore

if TYPE_CHECKING:
    from lifesync.services.api import ApiService

logger = logging.getLogger(__name__)


class SchedulerService:
    """Creates scheduled tasks and runs due ones.

    run_scheduled_tasks() is the trigger entrypoint; it is called by the
    NATS API, the HTTP cron webhook, or the optional built-in trigger loop.
    """

    def __init__(
        self,
        store: TaskStore,
        dispatcher: TaskDispatcher,
        clock: Clock,
        batch_size: int = 10,
        trigger_interval: int = 60,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._clock = clock
        self._batch_size = batch_size
        self._trigger_interval = trigger_interval
        self._api_service: "ApiService | None" = None
        self._running = False
        self._wake = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None

    def set_api_service(self, api_service: "ApiService") -> None:
        """Set the API service used to broadcast dispatch results."""
        self._api_service = api_service

    async def start(self) -> None:
        """Start the periodic trigger loop."""
        self._running = True
        self._wake.clear()
        self._loop_task = asyncio.create_task(self._trigger_loop())
        logger.info(
            f"Scheduler trigger started (every {self._trigger_interval}s, "
            f"batch size {self._batch_size})"
        )

    async def stop(self) -> None:
        """Stop the trigger loop after any batch in progress has finished."""
        self._running = False
        self._wake.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        logger.info("Scheduler trigger stopped")

    async def _trigger_loop(self) -> None:
        while self._running:
            try:
                await self.run_scheduled_tasks(self._batch_size)
            except Exception as e:
                logger.exception(f"Scheduler error: {e}")
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._trigger_interval)
            except asyncio.TimeoutError:
                pass

    async def schedule_task(
        self,
        name: str,
        type: str,
        scheduled_time: int,
        interval: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> str:
        """Create a pending task that first runs at scheduled_time.

        Raises:
            InvalidIntervalError: If interval is given and malformed
            UnknownTaskTypeError: If type is not a known task type
        """
        if interval is not None:
            parse_interval(interval)
        try:
            task_type = TaskType(type)
        except ValueError as e:
            raise UnknownTaskTypeError(type) from e

        task_id = await self._store.insert(
            name=name,
            type=task_type.value,
            scheduled_time=scheduled_time,
            interval=interval,
            data=data or {},
        )
        logger.info(f"Scheduled {task_type.value} task {task_id} for {scheduled_time}")
        return task_id

    async def run_scheduled_tasks(self, batch_size: int | None = None) -> DispatchReport:
        """Run one dispatcher invocation over the due tasks."""
        if batch_size is None:
            batch_size = self._batch_size
        report = await self._dispatcher.run_due(batch_size)
        if self._api_service and report.outcomes:
            try:
                await self._api_service.publish_dispatch_report(report)
            except Exception as e:
                logger.exception(f"Failed to broadcast dispatch report: {e}")
        return report

    async def get_task(self, task_id: str) -> ScheduledTask:
        task = await self._store.get_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(f"Scheduled task {task_id} not found")
        return task

    async def list_tasks(self, status: TaskStatus | None = None) -> list[ScheduledTask]:
        return await self._store.list_tasks(status)

    async def pause_task(self, task_id: str) -> ScheduledTask:
        """Take a pending task out of dispatch until it is resumed."""
        task = await self._transition(task_id, [TaskStatus.PENDING], TaskStatus.PAUSED)
        logger.info(f"Paused scheduled task {task_id}")
        return task

    async def resume_task(self, task_id: str) -> ScheduledTask:
        """Return a paused task to dispatch at its existing next_run."""
        task = await self._transition(task_id, [TaskStatus.PAUSED], TaskStatus.PENDING)
        logger.info(f"Resumed scheduled task {task_id}")
        return task

    async def requeue_task(self, task_id: str) -> ScheduledTask:
        """Put a failed task back in the queue to run on the next trigger."""
        task = await self._transition(
            task_id,
            [TaskStatus.FAILED],
            TaskStatus.PENDING,
            next_run=self._clock.now(),
            last_error=None,
        )
        logger.info(f"Requeued failed task {task_id}")
        return task

    async def _transition(
        self,
        task_id: str,
        from_statuses: list[TaskStatus],
        to_status: TaskStatus,
        **fields: Any,
    ) -> ScheduledTask:
        task = await self._store.transition(task_id, from_statuses, to_status, **fields)
        if task is not None:
            return task

        current = await self._store.get_by_id(task_id)
        if current is None:
            raise TaskNotFoundError(f"Scheduled task {task_id} not found")
        allowed = ", ".join(s.value for s in from_statuses)
        raise InvalidTaskStateError(
            f"Task {task_id} is {current.status.value}; "
            f"{to_status.value} requires status {allowed}"
        )
