"""Task store: the persistence boundary of the scheduler."""

from collections.abc import Iterable
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifesync.db.engine import get_session
from lifesync.db.models import ScheduledTaskModel
from lifesync.db.repositories.scheduled import ScheduledTaskRepository
from lifesync.models.scheduled_task import ScheduledTask, TaskStatus


class TaskStore(Protocol):
    async def insert(
        self,
        name: str,
        type: str,
        scheduled_time: int,
        interval: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> str: ...

    async def get_due_tasks(self, now: int, limit: int) -> list[ScheduledTask]: ...

    async def patch(self, task_id: str, **fields: Any) -> ScheduledTask | None: ...

    async def get_by_id(self, task_id: str) -> ScheduledTask | None: ...

    async def claim(
        self, task_id: str, version: int, now: int
    ) -> ScheduledTask | None: ...

    async def list_tasks(
        self, status: TaskStatus | None = None
    ) -> list[ScheduledTask]: ...

    async def transition(
        self,
        task_id: str,
        from_statuses: Iterable[TaskStatus],
        to_status: TaskStatus,
        **fields: Any,
    ) -> ScheduledTask | None: ...


def _model_to_dataclass(model: ScheduledTaskModel) -> ScheduledTask:
    """Convert a database model to a dataclass."""
    return ScheduledTask(
        task_id=model.task_id,
        name=model.name,
        type=model.type,
        status=TaskStatus(model.status),
        scheduled_time=model.scheduled_time,
        next_run=model.next_run,
        last_run=model.last_run,
        interval=model.interval,
        data=dict(model.data or {}),
        last_error=model.last_error,
        version=model.version,
        created_at=(
            int(model.created_at.timestamp() * 1000) if model.created_at else None
        ),
    )


class DatabaseTaskStore:
    """TaskStore backed by the scheduled_tasks table.

    Every call runs in its own short transaction, so each patch is a
    single-record write that commits before the next one starts.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(
        self,
        name: str,
        type: str,
        scheduled_time: int,
        interval: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> str:
        async with get_session(self._session_factory) as session:
            repo = ScheduledTaskRepository(session)
            model = await repo.create(
                name=name,
                type=type,
                scheduled_time=scheduled_time,
                interval=interval,
                data=data,
            )
            return model.task_id

    async def get_due_tasks(self, now: int, limit: int) -> list[ScheduledTask]:
        async with get_session(self._session_factory) as session:
            repo = ScheduledTaskRepository(session)
            models = await repo.get_due_tasks(now, limit)
            return [_model_to_dataclass(m) for m in models]

    async def patch(self, task_id: str, **fields: Any) -> ScheduledTask | None:
        async with get_session(self._session_factory) as session:
            repo = ScheduledTaskRepository(session)
            model = await repo.update(task_id, **fields)
            return _model_to_dataclass(model) if model else None

    async def get_by_id(self, task_id: str) -> ScheduledTask | None:
        async with get_session(self._session_factory) as session:
            repo = ScheduledTaskRepository(session)
            model = await repo.get(task_id)
            return _model_to_dataclass(model) if model else None

    async def claim(
        self, task_id: str, version: int, now: int
    ) -> ScheduledTask | None:
        async with get_session(self._session_factory) as session:
            repo = ScheduledTaskRepository(session)
            model = await repo.claim(task_id, version, now)
            return _model_to_dataclass(model) if model else None

    async def list_tasks(self, status: TaskStatus | None = None) -> list[ScheduledTask]:
        async with get_session(self._session_factory) as session:
            repo = ScheduledTaskRepository(session)
            models = await repo.list_all(status=status)
            return [_model_to_dataclass(m) for m in models]

    async def transition(
        self,
        task_id: str,
        from_statuses: Iterable[TaskStatus],
        to_status: TaskStatus,
        **fields: Any,
    ) -> ScheduledTask | None:
        async with get_session(self._session_factory) as session:
            repo = ScheduledTaskRepository(session)
            model = await repo.transition(task_id, from_statuses, to_status, **fields)
            return _model_to_dataclass(model) if model else None
