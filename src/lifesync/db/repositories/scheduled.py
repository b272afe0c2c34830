"""Scheduled task repository for database operations."""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.db.models import ScheduledTaskModel
from lifesync.models.scheduled_task import TaskStatus


class ScheduledTaskRepository:
    """Repository for scheduled task database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        type: str,
        scheduled_time: int,
        interval: str | None = None,
        data: dict[str, Any] | None = None,
        task_id: str | None = None,
    ) -> ScheduledTaskModel:
        """Create a new pending task.

        Args:
            name: Display name
            type: Task type tag
            scheduled_time: Requested first run, epoch milliseconds
            interval: Recurrence interval (None = run once)
            data: Handler payload
            task_id: Optional specific task ID

        Returns:
            The created ScheduledTaskModel with next_run = scheduled_time
        """
        model = ScheduledTaskModel(
            name=name,
            type=type,
            status=TaskStatus.PENDING,
            scheduled_time=scheduled_time,
            next_run=scheduled_time,
            interval=interval,
            data=data or {},
            version=0,
        )
        if task_id:
            model.task_id = task_id

        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, task_id: str) -> ScheduledTaskModel | None:
        """Get a scheduled task by ID."""
        result = await self.session.execute(
            select(ScheduledTaskModel).where(ScheduledTaskModel.task_id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_all(
        self, status: TaskStatus | None = None, limit: int | None = None
    ) -> list[ScheduledTaskModel]:
        """List tasks, newest first, optionally filtered by status."""
        query = select(ScheduledTaskModel)
        if status is not None:
            query = query.where(ScheduledTaskModel.status == status)
        query = query.order_by(ScheduledTaskModel.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_due_tasks(self, now: int, limit: int) -> list[ScheduledTaskModel]:
        """Get pending tasks with next_run <= now, earliest first.

        No row locks are taken here; callers claim each row with claim(),
        which only succeeds for the first claimer.

        Args:
            now: Cutoff, epoch milliseconds
            limit: Maximum number of tasks to return

        Returns:
            Due tasks ordered by next_run ascending
        """
        result = await self.session.execute(
            select(ScheduledTaskModel)
            .where(ScheduledTaskModel.status == TaskStatus.PENDING)
            .where(ScheduledTaskModel.next_run.is_not(None))
            .where(ScheduledTaskModel.next_run <= now)
            .order_by(ScheduledTaskModel.next_run.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update(self, task_id: str, **values: Any) -> ScheduledTaskModel | None:
        """Patch a scheduled task.

        Unlike a form update, None values are written as NULL so callers can
        clear fields such as last_error.

        Returns:
            Updated ScheduledTaskModel, or None if the task does not exist
        """
        if not values:
            return await self.get(task_id)

        result = await self.session.execute(
            update(ScheduledTaskModel)
            .where(ScheduledTaskModel.task_id == task_id)
            .values(**values)
            .returning(ScheduledTaskModel)
        )
        return result.scalar_one_or_none()

    async def claim(
        self, task_id: str, version: int, now: int
    ) -> ScheduledTaskModel | None:
        """Move a pending task to running if nobody else has claimed it.

        Compare-and-swap on the version column: the update only matches while
        the row still carries the version the caller read and is pending.

        Returns:
            The running task, or None if the claim was lost
        """
        result = await self.session.execute(
            update(ScheduledTaskModel)
            .where(ScheduledTaskModel.task_id == task_id)
            .where(ScheduledTaskModel.version == version)
            .where(ScheduledTaskModel.status == TaskStatus.PENDING)
            .values(
                status=TaskStatus.RUNNING,
                last_run=now,
                version=ScheduledTaskModel.version + 1,
            )
            .returning(ScheduledTaskModel)
        )
        return result.scalar_one_or_none()

    async def transition(
        self,
        task_id: str,
        from_statuses: Iterable[TaskStatus],
        to_status: TaskStatus,
        **values: Any,
    ) -> ScheduledTaskModel | None:
        """Change status only when the task is currently in one of from_statuses.

        Returns:
            Updated ScheduledTaskModel, or None if the task is missing or in
            another status
        """
        result = await self.session.execute(
            update(ScheduledTaskModel)
            .where(ScheduledTaskModel.task_id == task_id)
            .where(ScheduledTaskModel.status.in_(list(from_statuses)))
            .values(status=to_status, **values)
            .returning(ScheduledTaskModel)
        )
        return result.scalar_one_or_none()
