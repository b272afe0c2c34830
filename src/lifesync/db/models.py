"""SQLAlchemy ORM models for the LifeSync scheduler."""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from lifesync.models.alert import AlertOutcome, Channel, SkipReason
from lifesync.models.scheduled_task import TaskStatus


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ScheduledTaskModel(Base):
    """Scheduled task model. Times are epoch milliseconds."""

    __tablename__ = "scheduled_tasks"

    task_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, name="scheduled_task_status", create_constraint=True),
        nullable=False,
        default=TaskStatus.PENDING,
    )
    scheduled_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    next_run: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_run: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    interval: Mapped[str | None] = mapped_column(String(32), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Optimistic concurrency token, bumped on every claim
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_scheduled_tasks_status_next_run", "status", "next_run"),
    )


class AlertRecordModel(Base):
    """Append-only log of price alert attempts."""

    __tablename__ = "alert_records"

    alert_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    subject_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("tracked_products.product_id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    price_at_send: Mapped[float] = mapped_column(Float, nullable=False)
    discount_percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    outcome: Mapped[AlertOutcome] = mapped_column(
        Enum(AlertOutcome, name="alert_outcome", create_constraint=True),
        nullable=False,
    )
    skip_reason: Mapped[SkipReason | None] = mapped_column(
        Enum(SkipReason, name="alert_skip_reason", create_constraint=True),
        nullable=True,
    )
    channel: Mapped[Channel] = mapped_column(
        Enum(Channel, name="notification_channel", create_constraint=True),
        nullable=False,
        default=Channel.EMAIL,
    )
    message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_alert_records_subject_created", "subject_id", "created_at"),
    )


class TrackedProductModel(Base):
    """Product whose price a user is watching."""

    __tablename__ = "tracked_products"

    product_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_price: Mapped[float] = mapped_column(Float, nullable=False)
    original_price: Mapped[float] = mapped_column(Float, nullable=False)
    notification_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_notified_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_checked: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class UserModel(Base):
    """Platform user, limited to what notifications need."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    language: Mapped[str] = mapped_column(String(8), nullable=False, default="en")
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="user")
    price_alerts_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    whatsapp_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )


class DonationModel(Base):
    __tablename__ = "donations"

    donation_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class SessionModel(Base):
    """Login session; `expires` is epoch milliseconds."""

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    expires: Mapped[int] = mapped_column(BigInteger, nullable=False)


class ReportModel(Base):
    """Generated report attached to the task that produced it."""

    __tablename__ = "reports"

    report_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    task_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("scheduled_tasks.task_id", ondelete="SET NULL"),
        nullable=True,
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    generated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
