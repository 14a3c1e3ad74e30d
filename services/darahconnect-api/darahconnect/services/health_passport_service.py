import secrets
from datetime import timedelta
from typing import List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.config import settings
from ..core.exceptions import BadRequestError, ConflictError, NotFoundError
from ..models.database import HealthPassport
from ..models.schemas import HealthPassportListQuery
from ..repositories import HealthPassportRepository
from ..utils.clock import utcnow
from .workflow import HEALTH_PASSPORT_TRANSITIONS, ensure_transition

logger = structlog.get_logger()

MAX_NUMBER_ATTEMPTS = 5


def generate_passport_number() -> str:
    return f"HP-{secrets.token_hex(5).upper()}"


def is_passport_valid(passport: HealthPassport) -> bool:
    return passport.status == "active" and passport.expiry_date > utcnow()


class HealthPassportService:
    """
    Health passports gate donor registration.

    A passport is valid for ``HEALTH_PASSPORT_VALIDITY_HOURS`` from its
    creation or last renewal. Renewing keeps the passport number and
    restarts the window.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.passports = HealthPassportRepository(db)

    def _new_expiry(self):
        return utcnow() + timedelta(hours=settings.HEALTH_PASSPORT_VALIDITY_HOURS)

    async def _unique_number(self) -> str:
        for _ in range(MAX_NUMBER_ATTEMPTS):
            candidate = generate_passport_number()
            if not await self.passports.number_exists(candidate):
                return candidate
        logger.error("Could not generate a unique passport number")
        raise ConflictError("Gagal membuat nomor health passport, silahkan coba lagi")

    async def get(self, passport_id: int) -> HealthPassport:
        passport = await self.passports.get(passport_id)
        if passport is None:
            raise NotFoundError("Health passport tidak ditemukan")
        return passport

    async def get_for_user(self, user_id: int) -> HealthPassport:
        passport = await self.passports.get_by_user(user_id)
        if passport is None:
            raise NotFoundError("Health passport tidak ditemukan")
        return passport

    async def create_or_renew(self, user_id: int) -> Tuple[HealthPassport, bool]:
        """
        Issue the caller's passport, or renew it if one exists.

        Returns:
            Tuple[HealthPassport, bool]: The passport and whether it was newly created
        """
        passport = await self.passports.get_by_user(user_id)
        if passport is not None:
            if passport.status == "suspended":
                raise BadRequestError("Health passport anda sedang ditangguhkan")
            passport.expiry_date = self._new_expiry()
            passport.status = "active"
            await self.db.commit()
            logger.info("Health passport renewed", user_id=user_id, passport_id=passport.id)
            return await self.get(passport.id), False

        passport = HealthPassport(
            user_id=user_id,
            passport_number=await self._unique_number(),
            expiry_date=self._new_expiry(),
            status="active",
        )
        await self.passports.add(passport)
        await self.db.commit()
        logger.info("Health passport created", user_id=user_id, passport_id=passport.id)
        return await self.get(passport.id), True

    async def ensure_valid(self, user_id: int) -> HealthPassport:
        """Raise unless ``user_id`` holds an active, unexpired passport."""
        passport = await self.passports.get_by_user(user_id)
        if passport is None:
            raise BadRequestError("Anda belum memiliki health passport, silahkan buat terlebih dahulu")
        if not is_passport_valid(passport):
            raise BadRequestError("Health passport sudah expired")
        return passport

    async def change_status(self, passport_id: int, status: str, renew: bool = False) -> HealthPassport:
        passport = await self.get(passport_id)
        if status != passport.status:
            ensure_transition(HEALTH_PASSPORT_TRANSITIONS, passport.status, status)
            passport.status = status
        if renew:
            passport.expiry_date = self._new_expiry()
        await self.db.commit()
        logger.info("Health passport status changed", passport_id=passport_id, status=status, renew=renew)
        return await self.get(passport_id)

    async def delete(self, passport_id: int) -> None:
        passport = await self.get(passport_id)
        await self.passports.delete(passport)
        await self.db.commit()

    async def list(self, query: HealthPassportListQuery) -> Tuple[List[HealthPassport], int]:
        return await self.passports.list(query)
