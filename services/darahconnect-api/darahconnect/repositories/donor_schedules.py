from sqlalchemy import Select, select, update

from .base import BaseRepository, day_end, day_start
from ..models.database import DonorSchedule, Hospital
from ..models.schemas import DonorScheduleListQuery


class DonorScheduleRepository(BaseRepository[DonorSchedule]):
    model = DonorSchedule
    search_columns = (DonorSchedule.event_name, DonorSchedule.description, Hospital.name)
    sortable_columns = (
        "created_at", "updated_at", "id", "event_date", "slots_available", "status",
    )

    def base_query(self) -> Select:
        return select(DonorSchedule).outerjoin(Hospital, DonorSchedule.hospital_id == Hospital.id)

    def apply_filters(self, stmt: Select, query: DonorScheduleListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.status:
            stmt = stmt.where(DonorSchedule.status == query.status)
        if query.has_slots is True:
            stmt = stmt.where(DonorSchedule.slots_available > 0)
        elif query.has_slots is False:
            stmt = stmt.where(DonorSchedule.slots_available <= 0)
        if query.start_date:
            stmt = stmt.where(DonorSchedule.event_date >= day_start(query.start_date))
        if query.end_date:
            stmt = stmt.where(DonorSchedule.event_date < day_end(query.end_date))
        return stmt

    async def book_slot(self, schedule_id: int) -> bool:
        """Take one slot if any is left. Returns False when the schedule is full."""
        result = await self.db.execute(
            update(DonorSchedule)
            .where(DonorSchedule.id == schedule_id, DonorSchedule.slots_available > 0)
            .values(
                slots_available=DonorSchedule.slots_available - 1,
                slots_booked=DonorSchedule.slots_booked + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_slot(self, schedule_id: int) -> None:
        await self.db.execute(
            update(DonorSchedule)
            .where(DonorSchedule.id == schedule_id, DonorSchedule.slots_booked > 0)
            .values(
                slots_available=DonorSchedule.slots_available + 1,
                slots_booked=DonorSchedule.slots_booked - 1,
            )
            .execution_options(synchronize_session=False)
        )
