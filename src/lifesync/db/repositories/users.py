"""User and donation queries used by reminder handlers."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.db.models import DonationModel, UserModel


class UserRepository:
    """Repository for user lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        email: str,
        name: str = "",
        phone: str | None = None,
        language: str = "en",
        role: str = "user",
        price_alerts_enabled: bool = True,
        whatsapp_enabled: bool = False,
        user_id: str | None = None,
    ) -> UserModel:
        model = UserModel(
            email=email,
            name=name,
            phone=phone,
            language=language,
            role=role,
            price_alerts_enabled=price_alerts_enabled,
            whatsapp_enabled=whatsapp_enabled,
        )
        if user_id:
            model.user_id = user_id

        self.session.add(model)
        await self.session.flush()
        return model

    async def get(self, user_id: str) -> UserModel | None:
        return await self.session.get(UserModel, user_id)

    async def list_by_ids(self, user_ids: list[str]) -> list[UserModel]:
        if not user_ids:
            return []
        result = await self.session.execute(
            select(UserModel).where(UserModel.user_id.in_(user_ids))
        )
        return list(result.scalars().all())

    async def list_donors_to_remind(self, last_donation_before: int) -> list[UserModel]:
        """Non-admin users whose most recent donation is older than the cutoff.

        Users who never donated are not included; they have nothing to be
        reminded of.
        """
        latest = (
            select(
                DonationModel.user_id,
                func.max(DonationModel.created_at).label("last_donation"),
            )
            .group_by(DonationModel.user_id)
            .subquery()
        )
        result = await self.session.execute(
            select(UserModel)
            .join(latest, latest.c.user_id == UserModel.user_id)
            .where(latest.c.last_donation <= last_donation_before)
            .where(UserModel.role != "admin")
            .order_by(UserModel.user_id)
        )
        return list(result.scalars().all())

    async def add_donation(
        self,
        user_id: str,
        amount: float,
        created_at: int,
        currency: str = "USD",
    ) -> DonationModel:
        model = DonationModel(
            user_id=user_id,
            amount=amount,
            currency=currency,
            created_at=created_at,
        )
        self.session.add(model)
        await self.session.flush()
        return model
