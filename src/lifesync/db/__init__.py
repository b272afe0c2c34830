"""Database module for the LifeSync scheduler."""

from lifesync.db.engine import create_engine, create_session_factory, get_session
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

__all__ = [
    "create_engine",
    "create_session_factory",
    "get_session",
    "Base",
    "AlertRecordModel",
    "DonationModel",
    "ReportModel",
    "ScheduledTaskModel",
    "SessionModel",
    "TrackedProductModel",
    "UserModel",
]
