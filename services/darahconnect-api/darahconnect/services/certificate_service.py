import hmac
import secrets
from typing import List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import ConflictError, ForbiddenError, NotFoundError
from ..core.security import TokenClaims, sign_value
from ..models.database import BloodDonation, Certificate
from ..models.schemas import CertificateListQuery, CertificateVerification
from ..repositories import CertificateRepository
from ..utils.clock import local_now

logger = structlog.get_logger()

NUMBER_ATTEMPTS = 5


def generate_certificate_number() -> str:
    """``DC-YYYYMMDD-XXXXXX`` with the issue date in local time."""
    return f"DC-{local_now():%Y%m%d}-{secrets.token_hex(3).upper()}"


def certificate_payload(certificate_number: str, donation_id: int, user_id: int) -> str:
    return f"{certificate_number}:{donation_id}:{user_id}"


class CertificateService:
    """Donation certificates and their public verification."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.certificates = CertificateRepository(db)

    async def _unique_number(self) -> str:
        for _ in range(NUMBER_ATTEMPTS):
            number = generate_certificate_number()
            if not await self.certificates.number_exists(number):
                return number
        raise ConflictError("Gagal membuat nomor sertifikat, silahkan coba lagi")

    async def issue(self, donation: BloodDonation) -> Certificate:
        """
        Issue the certificate for a completed donation.

        The certificate is added to the caller's unit of work; the caller commits.

        Args:
            donation: The blood donation being completed

        Returns:
            Certificate: The pending certificate with its number and signature
        """
        number = await self._unique_number()
        certificate = Certificate(
            donation_id=donation.id,
            user_id=donation.user_id,
            certificate_number=number,
            digital_signature=sign_value(certificate_payload(number, donation.id, donation.user_id)),
        )
        await self.certificates.add(certificate)
        logger.info("Certificate issued", certificate_number=number, donation_id=donation.id)
        return certificate

    async def get(self, certificate_id: int) -> Certificate:
        certificate = await self.certificates.get(certificate_id)
        if certificate is None:
            raise NotFoundError("Sertifikat tidak ditemukan")
        return certificate

    async def get_for(self, certificate_id: int, claims: TokenClaims) -> Certificate:
        certificate = await self.get(certificate_id)
        if not claims.is_admin and certificate.user_id != claims.id:
            raise ForbiddenError("Anda tidak memiliki akses ke sertifikat ini")
        return certificate

    async def list_all(self, query: CertificateListQuery) -> Tuple[List[Certificate], int]:
        return await self.certificates.list(query)

    async def list_mine(self, user_id: int, query: CertificateListQuery) -> Tuple[List[Certificate], int]:
        return await self.certificates.list(query, Certificate.user_id == user_id)

    async def delete(self, certificate_id: int) -> None:
        certificate = await self.get(certificate_id)
        await self.certificates.delete(certificate)
        await self.db.commit()
        logger.info("Certificate deleted", certificate_id=certificate_id)

    async def verify(self, certificate_number: str) -> CertificateVerification:
        """Recompute the signature of ``certificate_number`` and compare it."""
        certificate = await self.certificates.get_by_number(certificate_number)
        if certificate is None:
            raise NotFoundError("Sertifikat tidak ditemukan")

        expected = sign_value(
            certificate_payload(certificate.certificate_number, certificate.donation_id, certificate.user_id)
        )
        valid = hmac.compare_digest(expected, certificate.digital_signature)
        if not valid:
            logger.warning("Certificate signature mismatch", certificate_number=certificate_number)
        return CertificateVerification(
            certificate_number=certificate.certificate_number,
            valid=valid,
            issued_to=certificate.user.name if certificate.user else None,
            issued_at=certificate.created_at,
        )
