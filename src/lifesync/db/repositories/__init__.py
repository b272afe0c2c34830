"""Repository classes for database operations."""

from lifesync.db.repositories.alerts import AlertRecordRepository
from lifesync.db.repositories.maintenance import (
    BackupRepository,
    ReportRepository,
    RetentionRepository,
    SessionRepository,
)
from lifesync.db.repositories.products import TrackedProductRepository
from lifesync.db.repositories.scheduled import ScheduledTaskRepository
from lifesync.db.repositories.users import UserRepository

__all__ = [
    "AlertRecordRepository",
    "BackupRepository",
    "ReportRepository",
    "RetentionRepository",
    "ScheduledTaskRepository",
    "SessionRepository",
    "TrackedProductRepository",
    "UserRepository",
]
