from typing import Optional

from sqlalchemy import Select, func, select

from .base import BaseRepository
from ..models.database import Donation, User
from ..models.schemas import DonationListQuery


class DonationRepository(BaseRepository[Donation]):
    model = Donation
    search_columns = (User.name, Donation.order_id)
    sortable_columns = ("created_at", "updated_at", "id", "amount", "status", "transaction_time")

    def base_query(self) -> Select:
        return select(Donation).outerjoin(User, Donation.user_id == User.id)

    def apply_filters(self, stmt: Select, query: DonationListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.order_id:
            stmt = stmt.where(Donation.order_id == query.order_id)
        if query.status:
            stmt = stmt.where(Donation.status == query.status)
        return stmt

    async def get_by_order_id(self, order_id: str) -> Optional[Donation]:
        result = await self.db.execute(
            select(Donation)
            .where(Donation.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def total_amount(self, status: str = "success") -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(Donation.amount), 0)).where(Donation.status == status)
        )
        return int(result.scalar() or 0)
