from typing import List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.security import TokenClaims
from ..models.database import DonorRegistration
from ..models.schemas import (
    DonorRegistrationCreate,
    DonorRegistrationListQuery,
    DonorRegistrationUpdate,
)
from ..repositories import (
    BloodRequestRepository,
    DonorRegistrationRepository,
    DonorScheduleRepository,
)
from ..utils.clock import utcnow
from ..utils.monitoring import track_registration
from .base import collect_changes
from .health_passport_service import HealthPassportService
from .notification_service import NotificationService
from .workflow import (
    DONOR_REGISTRATION_TRANSITIONS,
    OPEN_REQUEST_STATUSES,
    OPEN_SCHEDULE_STATUSES,
    ensure_transition,
    reconcile_slot_status,
)

logger = structlog.get_logger()

SLOT_RELEASING_STATUSES = {"cancelled", "no-show"}


class DonorRegistrationService:
    """
    Donor signups against schedules, blood requests and campaigns.

    Taking a slot is a conditional UPDATE issued in the same transaction as
    the registration insert, so two donors can never book the last slot.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.registrations = DonorRegistrationRepository(db)
        self.schedules = DonorScheduleRepository(db)
        self.requests = BloodRequestRepository(db)
        self.passports = HealthPassportService(db)
        self.notifications = NotificationService(db)

    async def get(self, registration_id: int) -> DonorRegistration:
        registration = await self.registrations.get(registration_id)
        if registration is None:
            raise NotFoundError("Pendaftaran donor tidak ditemukan")
        return registration

    async def get_for(self, registration_id: int, claims: TokenClaims) -> DonorRegistration:
        registration = await self.get(registration_id)
        if not claims.is_admin and registration.user_id != claims.id:
            raise ForbiddenError("Anda tidak memiliki izin untuk melihat pendaftaran ini")
        return registration

    async def _open_event_name(self, payload: DonorRegistrationCreate) -> str:
        """Check that the target event accepts registrations and return its name."""
        if payload.request_id is not None:
            blood_request = await self.requests.get(payload.request_id)
            if blood_request is None:
                raise NotFoundError("Permintaan darah tidak ditemukan")
            if blood_request.status not in OPEN_REQUEST_STATUSES:
                if blood_request.status == "pending":
                    raise BadRequestError("Permintaan darah masih pending")
                raise BadRequestError(f"Permintaan darah sudah {blood_request.status}")
            return blood_request.event_name or f"Permintaan darah #{blood_request.id}"

        schedule = await self.schedules.get(payload.schedule_id)
        if schedule is None:
            raise NotFoundError("Jadwal donor tidak ditemukan")
        if schedule.status not in OPEN_SCHEDULE_STATUSES:
            raise BadRequestError(f"Jadwal donor sudah {schedule.status}")
        return schedule.event_name

    async def register(self, claims: TokenClaims, payload: DonorRegistrationCreate) -> DonorRegistration:
        event_name = await self._open_event_name(payload)

        duplicate = await self.registrations.find_active(
            claims.id, schedule_id=payload.schedule_id, request_id=payload.request_id
        )
        if duplicate is not None:
            raise BadRequestError("Anda sudah mendaftar di event ini")

        await self.passports.ensure_valid(claims.id)

        if payload.request_id is not None:
            booked = await self.requests.book_slot(payload.request_id)
        else:
            booked = await self.schedules.book_slot(payload.schedule_id)
        if not booked:
            raise BadRequestError("Slot donor sudah penuh")

        registration = DonorRegistration(
            user_id=claims.id,
            schedule_id=payload.schedule_id,
            request_id=payload.request_id,
            status="registered",
            notes=payload.notes,
        )
        await self.registrations.add(registration)

        if payload.request_id is not None:
            reconcile_slot_status(await self.requests.get(payload.request_id))

        await self.notifications.notify(
            claims.id,
            "Registrasi donor darah",
            f"Anda berhasil mendaftar sebagai pendonor pada event {event_name}.",
            "Reminder",
        )
        await self.db.commit()

        target = "request" if payload.request_id is not None else "schedule"
        track_registration(target, "registered")
        logger.info("Donor registered", registration_id=registration.id, user_id=claims.id, target=target)
        return await self.get(registration.id)

    async def _release_slot(self, registration: DonorRegistration) -> None:
        """Give the registration's slot back and reopen a fully booked request."""
        if registration.schedule_id is not None:
            await self.schedules.release_slot(registration.schedule_id)
            return

        await self.requests.release_slot(registration.request_id)
        reconcile_slot_status(await self.requests.get(registration.request_id))

    async def update(
        self,
        registration_id: int,
        claims: TokenClaims,
        payload: DonorRegistrationUpdate
    ) -> DonorRegistration:
        registration = await self.get(registration_id)
        if registration.user_id != claims.id:
            raise ForbiddenError("Anda tidak memiliki izin untuk memperbarui pendaftaran ini")
        if registration.status != "registered":
            raise BadRequestError("Pendaftaran sudah tidak dapat diupdate")

        changes = collect_changes(payload)
        status = changes.pop("status", None)
        if status and status != registration.status:
            if status != "cancelled":
                raise BadRequestError("Anda hanya bisa membatalkan pendaftaran")
            ensure_transition(DONOR_REGISTRATION_TRANSITIONS, registration.status, status)
            event_date = registration.event_date
            if event_date is not None and event_date <= utcnow():
                raise BadRequestError("Pendaftaran tidak dapat dibatalkan setelah event berlangsung")
            await self._release_slot(registration)
            changes["status"] = status

        await self.registrations.update(registration, changes)
        await self.db.commit()
        if changes.get("status") == "cancelled":
            track_registration("any", "cancelled")
        return await self.get(registration_id)

    async def change_status(self, registration_id: int, status: str) -> DonorRegistration:
        """Administrative status change. Admin decisions clear the donor's notes."""
        registration = await self.get(registration_id)
        ensure_transition(DONOR_REGISTRATION_TRANSITIONS, registration.status, status)

        if status in SLOT_RELEASING_STATUSES:
            await self._release_slot(registration)
        registration.status = status
        registration.notes = None
        await self.notifications.notify(
            registration.user_id,
            "Status Pendaftaran Donor",
            f"Status pendaftaran donor anda telah {status}",
            "information",
        )
        await self.db.commit()
        track_registration("any", status)
        logger.info("Registration status changed", registration_id=registration_id, status=status)
        return await self.get(registration_id)

    async def release_user_slots(self, user_id: int) -> int:
        """Cancel every active signup of ``user_id`` and give the slots back. The caller commits."""
        registrations = await self.registrations.list_active_for_user(user_id)
        for registration in registrations:
            await self._release_slot(registration)
            registration.status = "cancelled"
        await self.db.flush()
        return len(registrations)

    async def delete(self, registration_id: int, claims: TokenClaims) -> None:
        registration = await self.get(registration_id)
        if not claims.is_admin and registration.user_id != claims.id:
            raise ForbiddenError("Anda tidak memiliki izin untuk menghapus pendaftaran ini")

        try:
            if registration.status == "registered":
                await self._release_slot(registration)
            await self.registrations.delete(registration)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError("Pendaftaran sudah memiliki data donasi darah")
        logger.info("Registration deleted", registration_id=registration_id)

    async def list(self, query: DonorRegistrationListQuery, *conditions) -> Tuple[List[DonorRegistration], int]:
        return await self.registrations.list(query, *conditions)
