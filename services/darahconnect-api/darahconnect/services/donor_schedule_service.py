from typing import List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import BadRequestError, NotFoundError
from ..models.database import DonorSchedule
from ..models.schemas import DonorScheduleCreate, DonorScheduleListQuery, DonorScheduleUpdate
from ..repositories import DonorScheduleRepository, HospitalRepository
from .base import collect_changes
from .workflow import DONOR_SCHEDULE_TRANSITIONS, ensure_transition

logger = structlog.get_logger()


class DonorScheduleService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.schedules = DonorScheduleRepository(db)
        self.hospitals = HospitalRepository(db)

    async def get(self, schedule_id: int) -> DonorSchedule:
        schedule = await self.schedules.get(schedule_id)
        if schedule is None:
            raise NotFoundError("Jadwal donor tidak ditemukan")
        return schedule

    async def create(self, payload: DonorScheduleCreate) -> DonorSchedule:
        if await self.hospitals.get(payload.hospital_id) is None:
            raise NotFoundError("Rumah sakit tidak ditemukan")

        schedule = DonorSchedule(**payload.model_dump(), slots_booked=0, status="upcoming")
        await self.schedules.add(schedule)
        await self.db.commit()
        logger.info("Donor schedule created", schedule_id=schedule.id)
        return await self.get(schedule.id)

    async def update(self, schedule_id: int, payload: DonorScheduleUpdate) -> DonorSchedule:
        schedule = await self.get(schedule_id)
        if schedule.status in ("completed", "cancelled"):
            raise BadRequestError(f"Jadwal donor sudah {schedule.status}")

        changes = collect_changes(payload)
        if "hospital_id" in changes and await self.hospitals.get(changes["hospital_id"]) is None:
            raise NotFoundError("Rumah sakit tidak ditemukan")

        await self.schedules.update(schedule, changes)
        await self.db.commit()
        return await self.get(schedule_id)

    async def change_status(self, schedule_id: int, status: str) -> DonorSchedule:
        schedule = await self.get(schedule_id)
        ensure_transition(DONOR_SCHEDULE_TRANSITIONS, schedule.status, status)
        schedule.status = status
        await self.db.commit()
        logger.info("Donor schedule status changed", schedule_id=schedule_id, status=status)
        return await self.get(schedule_id)

    async def delete(self, schedule_id: int) -> None:
        schedule = await self.get(schedule_id)
        if schedule.slots_booked > 0:
            raise BadRequestError("Jadwal donor sudah memiliki pendaftar")
        try:
            await self.schedules.delete(schedule)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError("Jadwal donor sudah memiliki pendaftar")

    async def list(self, query: DonorScheduleListQuery) -> Tuple[List[DonorSchedule], int]:
        return await self.schedules.list(query)
