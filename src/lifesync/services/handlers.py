"""Task handlers and the registry the dispatcher resolves them from."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifesync.clock import Clock
from lifesync.db.engine import get_session
from lifesync.db.repositories.maintenance import (
    BackupRepository,
    ReportRepository,
    RetentionRepository,
)
from lifesync.db.repositories.users import UserRepository
from lifesync.errors import HandlerExecutionError, SenderDeliveryError
from lifesync.models.alert import Channel
from lifesync.models.scheduled_task import ScheduledTask, TaskType
from lifesync.services import messages
from lifesync.services.alerts import PriceAlertService
from lifesync.services.notifications import NotificationSender
from lifesync.services.reporting import ReportGenerator

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

Handler = Callable[[ScheduledTask], Awaitable[dict[str, Any]]]
CustomAction = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]
PayloadT = TypeVar("PayloadT", bound=BaseModel)


# Task payloads, one per task type
class ReminderEmailPayload(BaseModel):
    user_ids: list[str] = Field(min_length=1)
    template: str = "reminder"


class DataCleanupPayload(BaseModel):
    collection: str = "sessions"
    max_age_days: int | None = Field(default=None, gt=0)


class ReportGenerationPayload(BaseModel):
    report_type: str
    date_range: dict[str, Any] | None = None


class DonationReminderPayload(BaseModel):
    idle_days: int | None = Field(default=None, gt=0)


class BackupPayload(BaseModel):
    collections: list[str] = Field(min_length=1)
    recipients: list[str] = Field(min_length=1)


class CustomPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    action: str | None = None
    params: dict[str, Any] = {}


class PriceAlertPayload(BaseModel):
    product_id: str
    attempt: int = Field(default=1, ge=1)
    force_send: bool = False


def parse_payload(model: type[PayloadT], task: ScheduledTask) -> PayloadT:
    """Validate task.data against a payload model.

    Raises:
        HandlerExecutionError: If the payload does not match
    """
    try:
        return model.model_validate(task.data or {})
    except ValidationError as e:
        raise HandlerExecutionError(
            f"Invalid {task.type} payload: {e.error_count()} validation error(s): "
            + "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'data'}: {err['msg']}"
                for err in e.errors()
            )
        ) from e


class HandlerRegistry:
    """Maps task types to their handlers."""

    def __init__(self) -> None:
        self._handlers: dict[TaskType, Handler] = {}

    def register(self, task_type: TaskType, handler: Handler) -> None:
        self._handlers[TaskType(task_type)] = handler

    def get(self, task_type: str) -> Handler | None:
        """Handler for a stored type string, or None if the type is unknown."""
        try:
            return self._handlers.get(TaskType(task_type))
        except ValueError:
            return None

    @property
    def task_types(self) -> list[TaskType]:
        return list(self._handlers)


class TaskHandlers:
    """Handlers for every built-in task type.

    Collaborators are injected once at startup; build_registry() wires the
    bound handler methods into a HandlerRegistry.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sender: NotificationSender,
        reports: ReportGenerator,
        alerts: PriceAlertService,
        clock: Clock,
        cleanup_max_age_days: int = 30,
        donation_reminder_idle_days: int = 90,
    ) -> None:
        self._session_factory = session_factory
        self._sender = sender
        self._reports = reports
        self._alerts = alerts
        self._clock = clock
        self._cleanup_max_age_days = cleanup_max_age_days
        self._donation_reminder_idle_days = donation_reminder_idle_days
        self._custom_actions: dict[str, CustomAction] = {}

    def register_custom_action(self, name: str, action: CustomAction) -> None:
        """Make a named action available to `custom` tasks."""
        self._custom_actions[name] = action
        logger.info(f"Registered custom action: {name}")

    def build_registry(self) -> HandlerRegistry:
        registry = HandlerRegistry()
        registry.register(TaskType.REMINDER_EMAIL, self.reminder_email)
        registry.register(TaskType.DATA_CLEANUP, self.data_cleanup)
        registry.register(TaskType.REPORT_GENERATION, self.report_generation)
        registry.register(TaskType.DONATION_REMINDER, self.donation_reminder)
        registry.register(TaskType.BACKUP, self.backup)
        registry.register(TaskType.CUSTOM, self.custom)
        registry.register(TaskType.PRICE_ALERT, self.price_alert)
        return registry

    async def reminder_email(self, task: ScheduledTask) -> dict[str, Any]:
        payload = parse_payload(ReminderEmailPayload, task)
        async with get_session(self._session_factory) as session:
            users = await UserRepository(session).list_by_ids(payload.user_ids)
            recipients = [(u.user_id, u.name, u.email, u.language) for u in users]

        missing = set(payload.user_ids) - {r[0] for r in recipients}
        if missing:
            logger.warning(
                f"Task {task.task_id}: {len(missing)} reminder recipients not found"
            )

        for _, name, email, language in recipients:
            content = messages.reminder_email(name, language, payload.template)
            await self._sender.send(Channel.EMAIL, email, content)

        logger.info(f"Task {task.task_id}: sent {len(recipients)} reminder emails")
        return {"sent": True}

    async def data_cleanup(self, task: ScheduledTask) -> dict[str, Any]:
        payload = parse_payload(DataCleanupPayload, task)
        max_age_days = payload.max_age_days or self._cleanup_max_age_days
        cutoff = self._clock.now() - max_age_days * DAY_MS

        async with get_session(self._session_factory) as session:
            try:
                deleted = await RetentionRepository(session).delete_older_than(
                    payload.collection, cutoff
                )
            except KeyError as e:
                raise HandlerExecutionError(e.args[0]) from e

        logger.info(f"Task {task.task_id}: deleted {deleted} from {payload.collection}")
        return {"deletedCount": deleted}

    async def report_generation(self, task: ScheduledTask) -> dict[str, Any]:
        payload = parse_payload(ReportGenerationPayload, task)
        report = await self._reports.generate(payload.report_type, payload.date_range)

        async with get_session(self._session_factory) as session:
            await ReportRepository(session).create(
                task_id=task.task_id,
                data={"report_type": payload.report_type, **report},
                generated_at=self._clock.now(),
            )

        logger.info(f"Task {task.task_id}: stored {payload.report_type} report")
        return {"reportGenerated": True}

    async def donation_reminder(self, task: ScheduledTask) -> dict[str, Any]:
        payload = parse_payload(DonationReminderPayload, task)
        idle_days = payload.idle_days or self._donation_reminder_idle_days
        cutoff = self._clock.now() - idle_days * DAY_MS

        async with get_session(self._session_factory) as session:
            users = await UserRepository(session).list_donors_to_remind(cutoff)
            recipients = [(u.user_id, u.name, u.email, u.language) for u in users]

        reminded = 0
        failures: list[str] = []
        for user_id, name, email, language in recipients:
            content = messages.donation_reminder_email(name, language)
            try:
                await self._sender.send(Channel.EMAIL, email, content)
            except SenderDeliveryError as e:
                logger.warning(f"Donation reminder to {user_id} failed: {e}")
                failures.append(user_id)
                continue
            reminded += 1

        if failures:
            raise HandlerExecutionError(
                f"Donation reminders failed for {len(failures)} of "
                f"{len(recipients)} users"
            )

        logger.info(f"Task {task.task_id}: reminded {reminded} donors")
        return {"remindedCount": reminded}

    async def backup(self, task: ScheduledTask) -> dict[str, Any]:
        payload = parse_payload(BackupPayload, task)
        async with get_session(self._session_factory) as session:
            try:
                snapshot = await BackupRepository(session).snapshot(payload.collections)
            except KeyError as e:
                raise HandlerExecutionError(e.args[0]) from e

        content = messages.backup_report_email(snapshot, self._clock.now())
        for recipient in payload.recipients:
            await self._sender.send(Channel.EMAIL, recipient, content)

        logger.info(
            f"Task {task.task_id}: backed up {', '.join(payload.collections)}"
        )
        return {"backupCompleted": True}

    async def custom(self, task: ScheduledTask) -> dict[str, Any]:
        payload = parse_payload(CustomPayload, task)
        if payload.action is None:
            return {
                "success": True,
                "message": "Custom task executed",
                "customData": task.data,
            }

        action = self._custom_actions.get(payload.action)
        if action is None:
            raise HandlerExecutionError(f"Unknown custom action: {payload.action}")
        return await action(payload.params)

    async def price_alert(self, task: ScheduledTask) -> dict[str, Any]:
        payload = parse_payload(PriceAlertPayload, task)
        record = await self._alerts.send_price_alert(
            payload.product_id,
            attempt=payload.attempt,
            force_send=payload.force_send,
        )
        return {
            "alertId": record.alert_id,
            "outcome": record.outcome.value,
            "skipReason": record.skip_reason.value if record.skip_reason else None,
        }
