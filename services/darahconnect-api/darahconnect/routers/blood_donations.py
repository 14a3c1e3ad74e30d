from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import DarahConnectError
from ..core.security import TokenClaims, require_admin, require_member, require_user
from ..models.database import BloodDonation, get_db
from ..models.schemas import (
    BloodDonationCreate,
    BloodDonationListQuery,
    BloodDonationRead,
    BloodDonationStatusUpdate,
    BloodDonationUpdate,
)
from ..services.blood_donation_service import BloodDonationService
from ..utils.responses import paginated_response, success_response

logger = structlog.get_logger()
router = APIRouter(tags=["blood-donations"])


@router.post("/user/blood-donations", status_code=201)
async def create_blood_donation(
    payload: BloodDonationCreate,
    current_user: TokenClaims = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        donation = await BloodDonationService(db).create(current_user, payload)
        return success_response("berhasil membuat donasi darah", BloodDonationRead.model_validate(donation), 201)
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Failed to record blood donation", user_id=current_user.id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal membuat donasi darah")


@router.get("/user/blood-donations")
async def list_my_blood_donations(
    query: BloodDonationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    donations, total = await BloodDonationService(db).list(query, BloodDonation.user_id == current_user.id)
    return paginated_response(
        "berhasil menampilkan semua donasi darah oleh pengguna", donations, total, query, BloodDonationRead
    )


@router.put("/user/blood-donations/{donation_id}")
async def update_blood_donation(
    donation_id: int,
    payload: BloodDonationUpdate,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    donation = await BloodDonationService(db).update(donation_id, current_user, payload)
    return success_response("berhasil memperbarui donasi darah", BloodDonationRead.model_validate(donation))


@router.get("/blood-donations/{donation_id}")
async def get_blood_donation(
    donation_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    donation = await BloodDonationService(db).get_for(donation_id, current_user)
    return success_response("berhasil menampilkan donasi darah berdasarkan id", BloodDonationRead.model_validate(donation))


@router.delete("/blood-donations/{donation_id}")
async def delete_blood_donation(
    donation_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    await BloodDonationService(db).delete(donation_id, current_user)
    return success_response("berhasil menghapus donasi darah")


@router.get("/admin/blood-donations")
async def list_blood_donations(
    query: BloodDonationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    donations, total = await BloodDonationService(db).list(query)
    return paginated_response("berhasil menampilkan semua donasi darah", donations, total, query, BloodDonationRead)


@router.patch("/admin/blood-donations/{donation_id}/status")
async def change_blood_donation_status(
    donation_id: int,
    payload: BloodDonationStatusUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Decide a pending donation. Completing it issues the donor's certificate."""
    try:
        donation = await BloodDonationService(db).change_status(donation_id, payload.status)
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Failed to change blood donation status", donation_id=donation_id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal memperbarui status donasi darah")

    message = "berhasil memperbarui status donasi darah"
    if donation.status == "completed":
        message = "berhasil memperbarui status donasi darah dan membuat sertifikat"
    return success_response(message, BloodDonationRead.model_validate(donation))
