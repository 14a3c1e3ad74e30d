from typing import Optional

from sqlalchemy import Select, func, select

from .base import BaseRepository
from ..models.database import BloodDonation, Hospital, User
from ..models.schemas import BloodDonationListQuery


class BloodDonationRepository(BaseRepository[BloodDonation]):
    model = BloodDonation
    search_columns = (User.name, Hospital.name, BloodDonation.blood_type)
    sortable_columns = ("created_at", "updated_at", "id", "donation_date", "status")

    def base_query(self) -> Select:
        return (
            select(BloodDonation)
            .outerjoin(User, BloodDonation.user_id == User.id)
            .outerjoin(Hospital, BloodDonation.hospital_id == Hospital.id)
        )

    def apply_filters(self, stmt: Select, query: BloodDonationListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.status:
            stmt = stmt.where(BloodDonation.status == query.status)
        if query.blood_type:
            stmt = stmt.where(BloodDonation.blood_type == query.blood_type)
        return stmt

    async def get_by_registration(self, registration_id: int) -> Optional[BloodDonation]:
        result = await self.db.execute(
            select(BloodDonation).where(BloodDonation.registration_id == registration_id)
        )
        return result.scalar_one_or_none()

    async def last_created_at(self, user_id: int):
        result = await self.db.execute(
            select(func.max(BloodDonation.created_at)).where(BloodDonation.user_id == user_id)
        )
        return result.scalar()

    async def report_rows(self):
        """(donation_date, blood_type, status) for every donation, for reporting."""
        result = await self.db.execute(
            select(BloodDonation.donation_date, BloodDonation.blood_type, BloodDonation.status)
        )
        return result.all()
