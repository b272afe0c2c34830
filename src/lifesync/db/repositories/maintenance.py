"""Repositories backing the cleanup, report and backup handlers."""

from typing import Any

from sqlalchemy import delete, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.db.models import (
    AlertRecordModel,
    Base,
    DonationModel,
    ReportModel,
    ScheduledTaskModel,
    SessionModel,
    TrackedProductModel,
    UserModel,
)

# Collections that may be named in cleanup and backup payloads
COLLECTIONS: dict[str, type[Base]] = {
    "alert_records": AlertRecordModel,
    "donations": DonationModel,
    "reports": ReportModel,
    "scheduled_tasks": ScheduledTaskModel,
    "sessions": SessionModel,
    "tracked_products": TrackedProductModel,
    "users": UserModel,
}


class SessionRepository:
    """Repository for login sessions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, user_id: str, expires: int, session_id: str | None = None
    ) -> SessionModel:
        model = SessionModel(user_id=user_id, expires=expires)
        if session_id:
            model.session_id = session_id
        self.session.add(model)
        await self.session.flush()
        return model

    async def count(self) -> int:
        result = await self.session.execute(select(SessionModel.session_id))
        return len(result.scalars().all())


class RetentionRepository:
    """Deletes records that have aged out of a collection."""

    # Age column per collection that supports cleanup, epoch milliseconds
    AGE_COLUMNS: dict[str, Any] = {
        "sessions": SessionModel.expires,
        "alert_records": AlertRecordModel.created_at,
        "reports": ReportModel.generated_at,
    }

    def __init__(self, session: AsyncSession):
        self.session = session

    async def delete_older_than(self, collection: str, cutoff: int) -> int:
        """Delete rows whose age column is at or before the cutoff.

        Returns:
            Number of deleted rows

        Raises:
            KeyError: If the collection does not support cleanup
        """
        column = self.AGE_COLUMNS.get(collection)
        if column is None:
            raise KeyError(f"Collection {collection!r} does not support cleanup")
        model = COLLECTIONS[collection]
        primary_key = inspect(model).primary_key[0]
        result = await self.session.execute(
            delete(model).where(column <= cutoff).returning(primary_key)
        )
        return len(result.scalars().all())


class ReportRepository:
    """Repository for generated reports."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, task_id: str | None, data: dict[str, Any], generated_at: int
    ) -> ReportModel:
        model = ReportModel(task_id=task_id, data=data, generated_at=generated_at)
        self.session.add(model)
        await self.session.flush()
        return model

    async def list_for_task(self, task_id: str) -> list[ReportModel]:
        result = await self.session.execute(
            select(ReportModel)
            .where(ReportModel.task_id == task_id)
            .order_by(ReportModel.generated_at.asc())
        )
        return list(result.scalars().all())


class BackupRepository:
    """Reads whole collections for backup snapshots."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def snapshot(self, collections: list[str]) -> dict[str, list[dict[str, Any]]]:
        """Dump every row of the named collections as plain dicts.

        Raises:
            KeyError: If a collection name is not known
        """
        unknown = [name for name in collections if name not in COLLECTIONS]
        if unknown:
            raise KeyError(f"Unknown collections: {', '.join(unknown)}")

        backup: dict[str, list[dict[str, Any]]] = {}
        for name in collections:
            model = COLLECTIONS[name]
            result = await self.session.execute(select(model))
            backup[name] = [_row_to_dict(row) for row in result.scalars().all()]
        return backup


def _row_to_dict(row: Base) -> dict[str, Any]:
    mapper = inspect(type(row))
    data: dict[str, Any] = {}
    for attr in mapper.column_attrs:
        value = getattr(row, attr.key)
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        data[attr.key] = value
    return data
