from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import DarahConnectError
from ..core.security import TokenClaims, require_admin, require_member, require_user
from ..models.database import DonorRegistration, get_db
from ..models.schemas import (
    DonorRegistrationCreate,
    DonorRegistrationListQuery,
    DonorRegistrationRead,
    DonorRegistrationStatusUpdate,
    DonorRegistrationUpdate,
)
from ..services.donor_registration_service import DonorRegistrationService
from ..utils.responses import paginated_response, success_response

logger = structlog.get_logger()
router = APIRouter(tags=["donor-registrations"])


@router.post("/user/donor-registrations", status_code=201)
async def register_donor(
    payload: DonorRegistrationCreate,
    current_user: TokenClaims = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Sign up as a donor for a schedule, blood request or campaign.

    Requires a valid health passport; the slot is booked atomically.
    """
    try:
        registration = await DonorRegistrationService(db).register(current_user, payload)
        return success_response(
            "berhasil membuat pendaftaran donor", DonorRegistrationRead.model_validate(registration), 201
        )
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Donor registration failed", user_id=current_user.id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal membuat pendaftaran donor")


@router.get("/user/donor-registrations")
async def list_my_registrations(
    query: DonorRegistrationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    registrations, total = await DonorRegistrationService(db).list(
        query, DonorRegistration.user_id == current_user.id
    )
    return paginated_response(
        "berhasil menampilkan semua riwayat donor", registrations, total, query, DonorRegistrationRead
    )


@router.put("/user/donor-registrations/{registration_id}")
async def update_registration(
    registration_id: int,
    payload: DonorRegistrationUpdate,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    try:
        registration = await DonorRegistrationService(db).update(registration_id, current_user, payload)
        return success_response(
            "berhasil memperbarui pendaftaran donor", DonorRegistrationRead.model_validate(registration)
        )
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Registration update failed", registration_id=registration_id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal memperbarui pendaftaran donor")


@router.get("/donor-registrations/{registration_id}")
async def get_registration(
    registration_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    registration = await DonorRegistrationService(db).get_for(registration_id, current_user)
    return success_response("berhasil menampilkan pendaftaran donor", DonorRegistrationRead.model_validate(registration))


@router.delete("/donor-registrations/{registration_id}")
async def delete_registration(
    registration_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    await DonorRegistrationService(db).delete(registration_id, current_user)
    return success_response("berhasil menghapus pendaftaran donor")


@router.get("/admin/donor-registrations")
async def list_registrations(
    query: DonorRegistrationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    registrations, total = await DonorRegistrationService(db).list(query)
    return paginated_response(
        "berhasil menampilkan semua pendaftaran donor", registrations, total, query, DonorRegistrationRead
    )


@router.patch("/admin/donor-registrations/{registration_id}/status")
async def change_registration_status(
    registration_id: int,
    payload: DonorRegistrationStatusUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    registration = await DonorRegistrationService(db).change_status(registration_id, payload.status)
    return success_response(
        "berhasil memperbarui status pendaftaran donor", DonorRegistrationRead.model_validate(registration)
    )
