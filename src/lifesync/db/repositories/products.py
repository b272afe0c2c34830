"""Tracked product repository for database operations."""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.db.models import TrackedProductModel


class TrackedProductRepository:
    """Repository for tracked product database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: str,
        name: str,
        current_price: float,
        original_price: float,
        notification_threshold: float | None = None,
        product_url: str = "",
        image_url: str | None = None,
        product_id: str | None = None,
    ) -> TrackedProductModel:
        model = TrackedProductModel(
            user_id=user_id,
            name=name,
            current_price=current_price,
            original_price=original_price,
            notification_threshold=notification_threshold,
            product_url=product_url,
            image_url=image_url,
        )
        if product_id:
            model.product_id = product_id

        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, product_id: str) -> TrackedProductModel | None:
        return await self.session.get(TrackedProductModel, product_id)

    async def update_price(
        self, product_id: str, price: float, checked_at: int
    ) -> TrackedProductModel | None:
        """Record a newly observed price."""
        result = await self.session.execute(
            update(TrackedProductModel)
            .where(TrackedProductModel.product_id == product_id)
            .values(current_price=price, last_checked=checked_at)
            .returning(TrackedProductModel)
        )
        return result.scalar_one_or_none()

    async def update_last_notified(
        self, product_id: str, price: float
    ) -> TrackedProductModel | None:
        """Remember the price the user was last alerted about."""
        result = await self.session.execute(
            update(TrackedProductModel)
            .where(TrackedProductModel.product_id == product_id)
            .values(last_notified_price=price)
            .returning(TrackedProductModel)
        )
        return result.scalar_one_or_none()
