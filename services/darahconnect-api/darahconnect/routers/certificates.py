from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import TokenClaims, require_admin, require_member
from ..models.database import get_db
from ..models.schemas import CertificateListQuery, CertificateRead
from ..services.certificate_service import CertificateService
from ..utils.responses import paginated_response, success_response

router = APIRouter(tags=["certificates"])


@router.get("/certificates/verify/{certificate_number}")
async def verify_certificate(certificate_number: str, db: AsyncSession = Depends(get_db)):
    """Public check that a certificate number exists and its signature matches."""
    verification = await CertificateService(db).verify(certificate_number)
    return success_response("berhasil memverifikasi sertifikat", verification)


@router.get("/user/certificates")
async def list_my_certificates(
    query: CertificateListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    certificates, total = await CertificateService(db).list_mine(current_user.id, query)
    return paginated_response("berhasil mengambil sertifikat pengguna", certificates, total, query, CertificateRead)


@router.get("/certificates/{certificate_id}")
async def get_certificate(
    certificate_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    certificate = await CertificateService(db).get_for(certificate_id, current_user)
    return success_response("berhasil mengambil sertifikat", CertificateRead.model_validate(certificate))


@router.get("/admin/certificates")
async def list_certificates(
    query: CertificateListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    certificates, total = await CertificateService(db).list_all(query)
    return paginated_response("berhasil mengambil semua sertifikat", certificates, total, query, CertificateRead)


@router.delete("/admin/certificates/{certificate_id}")
async def delete_certificate(
    certificate_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await CertificateService(db).delete(certificate_id)
    return success_response("berhasil menghapus sertifikat")
