from typing import Optional

from sqlalchemy import Select, select

from .base import BaseRepository
from ..models.database import Certificate, User


class CertificateRepository(BaseRepository[Certificate]):
    model = Certificate
    search_columns = (Certificate.certificate_number, User.name)
    sortable_columns = ("created_at", "updated_at", "id", "certificate_number")

    def base_query(self) -> Select:
        return select(Certificate).outerjoin(User, Certificate.user_id == User.id)

    async def get_by_number(self, certificate_number: str) -> Optional[Certificate]:
        result = await self.db.execute(
            select(Certificate).where(Certificate.certificate_number == certificate_number)
        )
        return result.scalar_one_or_none()

    async def number_exists(self, certificate_number: str) -> bool:
        result = await self.db.execute(
            select(Certificate.id).where(Certificate.certificate_number == certificate_number)
        )
        return result.first() is not None
