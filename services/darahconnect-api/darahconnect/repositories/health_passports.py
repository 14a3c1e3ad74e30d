from typing import Optional

from sqlalchemy import Select, select

from .base import BaseRepository
from ..models.database import HealthPassport, User
from ..models.schemas import HealthPassportListQuery


class HealthPassportRepository(BaseRepository[HealthPassport]):
    model = HealthPassport
    search_columns = (HealthPassport.passport_number, User.name, User.email)
    sortable_columns = ("created_at", "updated_at", "id", "expiry_date", "status")

    def base_query(self) -> Select:
        return select(HealthPassport).outerjoin(User, HealthPassport.user_id == User.id)

    def apply_filters(self, stmt: Select, query: HealthPassportListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.status:
            stmt = stmt.where(HealthPassport.status == query.status)
        return stmt

    async def get_by_user(self, user_id: int) -> Optional[HealthPassport]:
        result = await self.db.execute(
            select(HealthPassport)
            .where(HealthPassport.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def number_exists(self, passport_number: str) -> bool:
        result = await self.db.execute(
            select(HealthPassport.id).where(HealthPassport.passport_number == passport_number)
        )
        return result.first() is not None
