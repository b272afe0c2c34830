"""Price alert gating and delivery."""

import logging
import math

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifesync.clock import Clock
from lifesync.db.engine import get_session
from lifesync.db.models import AlertRecordModel, TrackedProductModel, UserModel
from lifesync.db.repositories.alerts import AlertRecordRepository
from lifesync.db.repositories.products import TrackedProductRepository
from lifesync.db.repositories.users import UserRepository
from lifesync.errors import HandlerExecutionError, SenderDeliveryError
from lifesync.models.alert import (
    AlertCandidate,
    AlertOutcome,
    AlertRecord,
    Channel,
    Recipient,
    SkipReason,
    SubjectState,
)
from lifesync.models.scheduled_task import TaskType
from lifesync.services import messages
from lifesync.services.notifications import NotificationSender
from lifesync.services.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_MS = 60 * 60 * 1000
DEFAULT_RETRY_DELAY_MS = 5 * 60 * 1000
MAX_SEND_ATTEMPTS = 2


def discount_percentage(original_price: float, current_price: float) -> int:
    """Whole-percent discount, halves rounded up.

    Raises:
        ZeroDivisionError: If original_price is zero
    """
    if original_price == 0:
        raise ZeroDivisionError("original price is zero")
    ratio = ((original_price - current_price) / original_price) * 100
    return math.floor(ratio + 0.5)


def should_skip(
    candidate: AlertCandidate,
    last_alert: AlertRecord | None,
    subject: SubjectState,
    cooldown_ms: int = DEFAULT_COOLDOWN_MS,
) -> SkipReason | None:
    """Decide whether a price alert must be suppressed.

    Checks run in a fixed order and the first match wins. `last_alert` is
    the latest alert actually sent for the subject. force_send bypasses
    every check.
    """
    if candidate.force_send:
        return None

    if not candidate.recipient.price_alerts_enabled:
        return SkipReason.USER_DISABLED_ALERTS

    if last_alert is not None and last_alert.price_at_send == subject.current_price:
        return SkipReason.DUPLICATE_PRICE

    if subject.notification_threshold:
        if subject.original_price == 0:
            return SkipReason.BELOW_THRESHOLD
        discount = discount_percentage(subject.original_price, subject.current_price)
        if discount < subject.notification_threshold:
            return SkipReason.BELOW_THRESHOLD

    if last_alert is not None and last_alert.created_at > candidate.now - cooldown_ms:
        return SkipReason.TOO_SOON

    return None


def _record_from_model(model: AlertRecordModel) -> AlertRecord:
    return AlertRecord(
        alert_id=model.alert_id,
        subject_id=model.subject_id,
        recipient_id=model.recipient_id,
        price_at_send=model.price_at_send,
        outcome=AlertOutcome(model.outcome),
        created_at=model.created_at,
        skip_reason=SkipReason(model.skip_reason) if model.skip_reason else None,
        discount_percentage=model.discount_percentage,
        channel=Channel(model.channel),
        message_id=model.message_id,
        error=model.error,
        attempt=model.attempt,
    )


def _subject_from_model(model: TrackedProductModel) -> SubjectState:
    return SubjectState(
        subject_id=model.product_id,
        name=model.name,
        current_price=model.current_price,
        original_price=model.original_price,
        notification_threshold=model.notification_threshold,
        last_notified_price=model.last_notified_price,
        product_url=model.product_url,
        image_url=model.image_url,
    )


def _recipient_from_model(model: UserModel) -> Recipient:
    return Recipient(
        recipient_id=model.user_id,
        name=model.name,
        email=model.email,
        language=model.language,
        phone=model.phone,
        price_alerts_enabled=model.price_alerts_enabled,
        whatsapp_enabled=model.whatsapp_enabled,
    )


class PriceAlertService:
    """Evaluates, sends and logs price-drop alerts.

    A failed email is logged and retried exactly once, five minutes later,
    through a one-shot `price-alert` task. The retry itself is never retried.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sender: NotificationSender,
        store: TaskStore,
        clock: Clock,
        base_url: str = "http://localhost:3000",
        cooldown_ms: int = DEFAULT_COOLDOWN_MS,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
    ) -> None:
        self._session_factory = session_factory
        self._sender = sender
        self._store = store
        self._clock = clock
        self._base_url = base_url
        self._cooldown_ms = cooldown_ms
        self._retry_delay_ms = retry_delay_ms

    async def send_price_alert(
        self,
        product_id: str,
        attempt: int = 1,
        force_send: bool = False,
    ) -> AlertRecord:
        """Gate and send one price alert for a tracked product.

        Returns:
            The AlertRecord written for this attempt (sent or skipped)

        Raises:
            HandlerExecutionError: If the product or its owner does not exist
            SenderDeliveryError: If the email could not be delivered; the
                failure is logged first and, on a first attempt, a retry
                task is scheduled
        """
        now = self._clock.now()
        async with get_session(self._session_factory) as session:
            product_model = await TrackedProductRepository(session).get(product_id)
            if product_model is None:
                raise HandlerExecutionError(f"Tracked product {product_id} not found")
            user_model = await UserRepository(session).get(product_model.user_id)
            if user_model is None:
                raise HandlerExecutionError(
                    f"Owner {product_model.user_id} of product {product_id} not found"
                )
            last_model = await AlertRecordRepository(session).get_last_sent(product_id)

            subject = _subject_from_model(product_model)
            recipient = _recipient_from_model(user_model)
            last_alert = _record_from_model(last_model) if last_model else None

        candidate = AlertCandidate(
            subject_id=product_id,
            recipient=recipient,
            now=now,
            attempt=attempt,
            force_send=force_send,
        )
        reason = should_skip(candidate, last_alert, subject, self._cooldown_ms)
        if reason is not None:
            logger.info(f"Skipping price alert for {product_id}: {reason.value}")
            return await self._log(
                subject, recipient, now, AlertOutcome.SKIPPED,
                skip_reason=reason, attempt=attempt,
            )

        if subject.original_price:
            discount = discount_percentage(subject.original_price, subject.current_price)
        else:
            discount = 0
        content = messages.price_alert_email(
            subject, recipient, discount, self._base_url, now
        )

        try:
            delivery = await self._sender.send(Channel.EMAIL, recipient.email, content)
        except Exception as e:
            logger.warning(
                f"Price alert for {product_id} failed on attempt {attempt}: {e}"
            )
            await self._log(
                subject, recipient, now, AlertOutcome.FAILED,
                discount=discount, error=str(e), attempt=attempt,
            )
            if attempt < MAX_SEND_ATTEMPTS:
                await self._schedule_retry(product_id, now, force_send)
            if isinstance(e, SenderDeliveryError):
                raise
            raise SenderDeliveryError(
                f"email delivery for {product_id} failed: {e}"
            ) from e

        record = await self._log(
            subject, recipient, now, AlertOutcome.SENT,
            discount=discount, message_id=delivery["id"], attempt=attempt,
        )
        async with get_session(self._session_factory) as session:
            await TrackedProductRepository(session).update_last_notified(
                product_id, subject.current_price
            )
        logger.info(f"Sent price alert {record.alert_id} for {product_id} ({discount}%)")

        if recipient.whatsapp_enabled and recipient.phone:
            await self._send_whatsapp(
                subject, recipient, recipient.phone, discount, now, attempt
            )

        return record

    async def _send_whatsapp(
        self,
        subject: SubjectState,
        recipient: Recipient,
        phone: str,
        discount: int,
        now: int,
        attempt: int,
    ) -> None:
        """Follow-up WhatsApp message. Its failure does not undo the email."""
        content = messages.price_alert_whatsapp(subject, recipient, discount)
        try:
            delivery = await self._sender.send(Channel.WHATSAPP, phone, content)
        except Exception as e:
            logger.warning(f"WhatsApp price alert for {subject.subject_id} failed: {e}")
            await self._log(
                subject, recipient, now, AlertOutcome.FAILED,
                discount=discount, error=str(e), attempt=attempt,
                channel=Channel.WHATSAPP,
            )
            return
        await self._log(
            subject, recipient, now, AlertOutcome.SENT,
            discount=discount, message_id=delivery["id"], attempt=attempt,
            channel=Channel.WHATSAPP,
        )

    async def _schedule_retry(
        self, product_id: str, now: int, force_send: bool
    ) -> str:
        retry_at = now + self._retry_delay_ms
        task_id = await self._store.insert(
            name=f"Retry price alert {product_id}",
            type=TaskType.PRICE_ALERT.value,
            scheduled_time=retry_at,
            data={
                "product_id": product_id,
                "attempt": MAX_SEND_ATTEMPTS,
                "force_send": force_send,
            },
        )
        logger.info(f"Scheduled price alert retry {task_id} for {product_id} at {retry_at}")
        return task_id

    async def _log(
        self,
        subject: SubjectState,
        recipient: Recipient,
        now: int,
        outcome: AlertOutcome,
        skip_reason: SkipReason | None = None,
        discount: int | None = None,
        message_id: str | None = None,
        error: str | None = None,
        attempt: int = 1,
        channel: Channel = Channel.EMAIL,
    ) -> AlertRecord:
        async with get_session(self._session_factory) as session:
            model = await AlertRecordRepository(session).append(
                subject_id=subject.subject_id,
                recipient_id=recipient.recipient_id,
                price_at_send=subject.current_price,
                outcome=outcome,
                created_at=now,
                skip_reason=skip_reason,
                discount_percentage=discount,
                channel=channel,
                message_id=message_id,
                error=error,
                attempt=attempt,
            )
            return _record_from_model(model)
