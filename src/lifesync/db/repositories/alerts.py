"""Alert log repository. Records are appended, never updated."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.db.models import AlertRecordModel
from lifesync.models.alert import AlertOutcome, Channel, SkipReason


class AlertRecordRepository:
    """Repository for the append-only alert log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        subject_id: str,
        recipient_id: str,
        price_at_send: float,
        outcome: AlertOutcome,
        created_at: int,
        skip_reason: SkipReason | None = None,
        discount_percentage: int | None = None,
        channel: Channel = Channel.EMAIL,
        message_id: str | None = None,
        error: str | None = None,
        attempt: int = 1,
    ) -> AlertRecordModel:
        """Append one alert attempt to the log."""
        model = AlertRecordModel(
            subject_id=subject_id,
            recipient_id=recipient_id,
            price_at_send=price_at_send,
            outcome=outcome,
            created_at=created_at,
            skip_reason=skip_reason,
            discount_percentage=discount_percentage,
            channel=channel,
            message_id=message_id,
            error=error,
            attempt=attempt,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def get_last_sent(self, subject_id: str) -> AlertRecordModel | None:
        """Most recent successfully sent email alert for a subject."""
        result = await self.session.execute(
            select(AlertRecordModel)
            .where(AlertRecordModel.subject_id == subject_id)
            .where(AlertRecordModel.outcome == AlertOutcome.SENT)
            .where(AlertRecordModel.channel == Channel.EMAIL)
            .order_by(AlertRecordModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_subject(self, subject_id: str) -> list[AlertRecordModel]:
        """All log entries for a subject, oldest first."""
        result = await self.session.execute(
            select(AlertRecordModel)
            .where(AlertRecordModel.subject_id == subject_id)
            .order_by(AlertRecordModel.created_at.asc())
        )
        return list(result.scalars().all())
