from typing import List, Optional

from sqlalchemy import Select, func, select

from .base import BaseRepository, day_end, day_start
from ..models.database import BloodRequest, DonorRegistration, DonorSchedule, User
from ..models.schemas import DonorRegistrationListQuery


class DonorRegistrationRepository(BaseRepository[DonorRegistration]):
    model = DonorRegistration
    search_columns = (User.name, DonorSchedule.event_name, BloodRequest.event_name, DonorRegistration.notes)
    sortable_columns = ("created_at", "updated_at", "id", "status")

    def base_query(self) -> Select:
        return (
            select(DonorRegistration)
            .outerjoin(User, DonorRegistration.user_id == User.id)
            .outerjoin(DonorSchedule, DonorRegistration.schedule_id == DonorSchedule.id)
            .outerjoin(BloodRequest, DonorRegistration.request_id == BloodRequest.id)
        )

    def apply_filters(self, stmt: Select, query: DonorRegistrationListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.status:
            stmt = stmt.where(DonorRegistration.status == query.status)
        event_date = func.coalesce(DonorSchedule.event_date, BloodRequest.event_date)
        if query.start_date:
            stmt = stmt.where(event_date >= day_start(query.start_date))
        if query.end_date:
            stmt = stmt.where(event_date < day_end(query.end_date))
        return stmt

    async def find_active(
        self,
        user_id: int,
        schedule_id: Optional[int] = None,
        request_id: Optional[int] = None,
    ) -> Optional[DonorRegistration]:
        """A still-registered signup by this user for the same event, if any."""
        stmt = select(DonorRegistration).where(
            DonorRegistration.user_id == user_id,
            DonorRegistration.status == "registered",
        )
        if schedule_id is not None:
            stmt = stmt.where(DonorRegistration.schedule_id == schedule_id)
        else:
            stmt = stmt.where(DonorRegistration.request_id == request_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def list_active_for_user(self, user_id: int) -> List[DonorRegistration]:
        result = await self.db.execute(
            select(DonorRegistration).where(
                DonorRegistration.user_id == user_id,
                DonorRegistration.status == "registered",
            )
        )
        return list(result.scalars().all())
