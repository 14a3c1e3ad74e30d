from typing import List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.security import TokenClaims
from ..models.database import BloodDonation
from ..models.schemas import BloodDonationCreate, BloodDonationListQuery, BloodDonationUpdate
from ..repositories import BloodDonationRepository, DonorRegistrationRepository, UserRepository
from ..utils.clock import utcnow
from ..utils.monitoring import track_certificate_issued, track_registration
from .base import collect_changes
from .certificate_service import CertificateService
from .notification_service import NotificationService
from .workflow import (
    BLOOD_DONATION_TRANSITIONS,
    DONOR_REGISTRATION_TRANSITIONS,
    ensure_transition,
)

logger = structlog.get_logger()


class BloodDonationService:
    """Physical donations recorded against registrations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.donations = BloodDonationRepository(db)
        self.registrations = DonorRegistrationRepository(db)
        self.users = UserRepository(db)
        self.certificates = CertificateService(db)
        self.notifications = NotificationService(db)

    async def get(self, donation_id: int) -> BloodDonation:
        donation = await self.donations.get(donation_id)
        if donation is None:
            raise NotFoundError("Donasi darah tidak ditemukan")
        return donation

    async def get_for(self, donation_id: int, claims: TokenClaims) -> BloodDonation:
        donation = await self.get(donation_id)
        if not claims.is_admin and donation.user_id != claims.id:
            raise ForbiddenError("Tidak memiliki izin")
        return donation

    async def create(self, claims: TokenClaims, payload: BloodDonationCreate) -> BloodDonation:
        """
        Record a donation for one of the caller's registrations.

        The registration is completed in the same transaction. Hospital,
        blood type and date default to the registration's event, the
        donor's profile and the current time respectively.
        """
        registration = await self.registrations.get(payload.registration_id)
        if registration is None:
            raise NotFoundError("Pendaftaran donor tidak ditemukan")
        if registration.user_id != claims.id:
            raise ForbiddenError("Tidak memiliki izin")
        if registration.status != "registered":
            raise BadRequestError(f"Pendaftaran donor sudah {registration.status}")

        blood_type = payload.blood_type
        if not blood_type:
            user = await self.users.get(claims.id)
            blood_type = user.blood_type if user else None
        if not blood_type:
            raise BadRequestError("Golongan darah wajib diisi")

        ensure_transition(DONOR_REGISTRATION_TRANSITIONS, registration.status, "completed")
        registration.status = "completed"

        donation = BloodDonation(
            user_id=claims.id,
            hospital_id=registration.hospital_id,
            registration_id=registration.id,
            donation_date=payload.donation_date or registration.event_date or utcnow(),
            blood_type=blood_type,
            status="pending",
        )
        try:
            await self.donations.add(donation)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError("Donasi darah untuk pendaftaran ini sudah ada")

        track_registration("any", "completed")
        logger.info("Blood donation recorded", donation_id=donation.id, registration_id=registration.id)
        return await self.get(donation.id)

    async def update(self, donation_id: int, claims: TokenClaims, payload: BloodDonationUpdate) -> BloodDonation:
        donation = await self.get(donation_id)
        if not claims.is_admin and donation.user_id != claims.id:
            raise ForbiddenError("Tidak memiliki izin")
        if donation.status == "completed":
            raise BadRequestError("Donasi darah tidak bisa diubah")

        changes = collect_changes(payload)
        await self.donations.update(donation, changes)
        await self.db.commit()
        return await self.get(donation_id)

    async def change_status(self, donation_id: int, status: str) -> BloodDonation:
        """Administrative decision; completing a donation issues its certificate."""
        donation = await self.get(donation_id)
        ensure_transition(BLOOD_DONATION_TRANSITIONS, donation.status, status)
        donation.status = status

        if status == "completed":
            certificate = await self.certificates.issue(donation)
            await self.notifications.notify(
                donation.user_id,
                "Sertifikat Donor Darah",
                f"Terima kasih telah mendonorkan darah. Nomor sertifikat anda: {certificate.certificate_number}",
                "Certificate",
            )
        else:
            await self.notifications.notify(
                donation.user_id,
                "Status Donasi Darah",
                f"Status donasi darah anda telah {status}",
                "information",
            )
        await self.db.commit()

        if status == "completed":
            track_certificate_issued()
        logger.info("Blood donation status changed", donation_id=donation_id, status=status)
        return await self.get(donation_id)

    async def delete(self, donation_id: int, claims: TokenClaims) -> None:
        donation = await self.get(donation_id)
        if not claims.is_admin:
            if donation.user_id != claims.id:
                raise ForbiddenError("Tidak memiliki izin")
            if donation.status == "completed":
                raise BadRequestError("Donasi darah yang sudah selesai tidak bisa dihapus")

        await self.donations.delete(donation)
        await self.db.commit()
        logger.info("Blood donation deleted", donation_id=donation_id)

    async def list(self, query: BloodDonationListQuery, *conditions) -> Tuple[List[BloodDonation], int]:
        return await self.donations.list(query, *conditions)
