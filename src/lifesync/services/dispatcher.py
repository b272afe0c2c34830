"""Task dispatcher: claims due tasks and runs their handlers."""

import asyncio
import logging
from typing import Any

from lifesync.clock import Clock
from lifesync.errors import (
    HandlerExecutionError,
    InvalidIntervalError,
    UnknownTaskTypeError,
)
from lifesync.interval import compute_next_run
from lifesync.models.scheduled_task import (
    DispatchReport,
    ScheduledTask,
    TaskOutcome,
    TaskStatus,
)
from lifesync.services.handlers import HandlerRegistry
from lifesync.services.store import TaskStore

logger = logging.getLogger(__name__)


class TaskDispatcher:
    """Runs one batch of due tasks per call.

    Holds no state between invocations; everything is re-read from the
    store. Tasks in a batch run one after another and every handler is
    awaited before its outcome is written.
    """

    def __init__(
        self,
        store: TaskStore,
        registry: HandlerRegistry,
        clock: Clock,
        task_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._clock = clock
        self._task_timeout = task_timeout

    async def run_due(self, batch_size: int) -> DispatchReport:
        """Claim and run up to batch_size due tasks, earliest next_run first."""
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")

        now = self._clock.now()
        report = DispatchReport(started_at=now)
        tasks = await self._store.get_due_tasks(now, batch_size)
        if tasks:
            logger.info(f"Dispatching {len(tasks)} due tasks")

        for task in tasks:
            report.outcomes.append(await self._run_task(task, now))

        if tasks:
            logger.info(
                f"Dispatch finished: {report.succeeded} succeeded, {report.failed} failed"
            )
        return report

    async def _run_task(self, task: ScheduledTask, now: int) -> TaskOutcome:
        # None when another dispatcher already claimed this version
        claimed = await self._store.claim(task.task_id, task.version, now)
        if claimed is None:
            logger.info(f"Task {task.task_id} was claimed by another dispatcher, skipping")
            return TaskOutcome(task_id=task.task_id, success=False, claimed=False)

        try:
            result = await self._execute(claimed)
        except Exception as e:
            return await self._fail(claimed, e, now)

        if claimed.interval:
            try:
                next_run = compute_next_run(now, claimed.interval)
            except InvalidIntervalError as e:
                return await self._fail(claimed, e, now)
            await self._store.patch(
                claimed.task_id,
                status=TaskStatus.PENDING,
                next_run=next_run,
                last_run=now,
            )
            logger.info(f"Task {claimed.task_id} rescheduled for {next_run}")
        else:
            await self._store.patch(
                claimed.task_id,
                status=TaskStatus.COMPLETED,
                last_run=now,
            )
            logger.info(f"Task {claimed.task_id} completed")

        return TaskOutcome(task_id=claimed.task_id, success=True, result=result)

    async def _fail(
        self, task: ScheduledTask, error: Exception, now: int
    ) -> TaskOutcome:
        message = str(error) or type(error).__name__
        logger.warning(f"Task {task.task_id} ({task.type}) failed: {message}")
        await self._store.patch(
            task.task_id,
            status=TaskStatus.FAILED,
            last_error=message,
            last_run=now,
        )
        return TaskOutcome(task_id=task.task_id, success=False, error=message)

    async def _execute(self, task: ScheduledTask) -> dict[str, Any]:
        handler = self._registry.get(task.type)
        if handler is None:
            raise UnknownTaskTypeError(task.type)

        if self._task_timeout is None:
            return await handler(task)
        try:
            return await asyncio.wait_for(handler(task), timeout=self._task_timeout)
        except asyncio.TimeoutError as e:
            raise HandlerExecutionError(
                f"Task timed out after {self._task_timeout} seconds"
            ) from e
