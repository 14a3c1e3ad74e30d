from sqlalchemy import Select, select, update

from .base import BaseRepository, day_end, day_start
from ..models.database import BloodRequest, Hospital, User
from ..models.schemas import BloodRequestListQuery


class BloodRequestRepository(BaseRepository[BloodRequest]):
    model = BloodRequest
    search_columns = (
        BloodRequest.patient_name,
        BloodRequest.event_name,
        User.name,
        Hospital.name,
        Hospital.city,
        Hospital.province,
    )
    sortable_columns = (
        "created_at", "updated_at", "id", "event_date", "expiry_date",
        "quantity", "urgency_level", "status",
    )

    def base_query(self) -> Select:
        return (
            select(BloodRequest)
            .outerjoin(User, BloodRequest.user_id == User.id)
            .outerjoin(Hospital, BloodRequest.hospital_id == Hospital.id)
        )

    def apply_filters(self, stmt: Select, query: BloodRequestListQuery) -> Select:
        stmt = super().apply_filters(stmt, query)
        if query.urgency_level:
            stmt = stmt.where(BloodRequest.urgency_level == query.urgency_level)
        if query.blood_type:
            stmt = stmt.where(BloodRequest.blood_type == query.blood_type)
        if query.status:
            stmt = stmt.where(BloodRequest.status == query.status)
        if query.event_type:
            stmt = stmt.where(BloodRequest.event_type == query.event_type)
        if query.min_quantity is not None:
            stmt = stmt.where(BloodRequest.quantity >= query.min_quantity)
        if query.max_quantity is not None:
            stmt = stmt.where(BloodRequest.quantity <= query.max_quantity)
        if query.start_date:
            stmt = stmt.where(BloodRequest.event_date >= day_start(query.start_date))
        if query.end_date:
            stmt = stmt.where(BloodRequest.event_date < day_end(query.end_date))
        return stmt

    async def book_slot(self, request_id: int) -> bool:
        """Take one slot if any is left. Returns False when the request is full."""
        result = await self.db.execute(
            update(BloodRequest)
            .where(BloodRequest.id == request_id, BloodRequest.slots_available > 0)
            .values(
                slots_available=BloodRequest.slots_available - 1,
                slots_booked=BloodRequest.slots_booked + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_slot(self, request_id: int) -> None:
        await self.db.execute(
            update(BloodRequest)
            .where(BloodRequest.id == request_id, BloodRequest.slots_booked > 0)
            .values(
                slots_available=BloodRequest.slots_available + 1,
                slots_booked=BloodRequest.slots_booked - 1,
            )
            .execution_options(synchronize_session=False)
        )
