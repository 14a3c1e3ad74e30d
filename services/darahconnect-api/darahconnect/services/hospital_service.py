from typing import List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import BadRequestError, NotFoundError
from ..models.database import Hospital
from ..models.schemas import HospitalCreate, HospitalListQuery, HospitalUpdate
from ..repositories import HospitalRepository
from .base import collect_changes

logger = structlog.get_logger()


class HospitalService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.hospitals = HospitalRepository(db)

    async def get(self, hospital_id: int) -> Hospital:
        hospital = await self.hospitals.get(hospital_id)
        if hospital is None:
            raise NotFoundError("Rumah sakit tidak ditemukan")
        return hospital

    async def create(self, payload: HospitalCreate) -> Hospital:
        hospital = await self.hospitals.add(Hospital(**payload.model_dump()))
        await self.db.commit()
        logger.info("Hospital created", hospital_id=hospital.id)
        return await self.get(hospital.id)

    async def update(self, hospital_id: int, payload: HospitalUpdate) -> Hospital:
        hospital = await self.get(hospital_id)
        await self.hospitals.update(hospital, collect_changes(payload))
        await self.db.commit()
        return await self.get(hospital_id)

    async def delete(self, hospital_id: int) -> None:
        hospital = await self.get(hospital_id)
        try:
            await self.hospitals.delete(hospital)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError("Rumah sakit masih digunakan oleh data lain")
        logger.info("Hospital deleted", hospital_id=hospital_id)

    async def list(self, query: HospitalListQuery) -> Tuple[List[Hospital], int]:
        return await self.hospitals.list(query)
