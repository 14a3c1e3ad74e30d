from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import TokenClaims, require_admin, require_member, require_user
from ..models.database import get_db
from ..models.schemas import HealthPassportListQuery, HealthPassportRead, HealthPassportStatusUpdate
from ..services.health_passport_service import HealthPassportService
from ..utils.responses import paginated_response, success_response

router = APIRouter(tags=["health-passports"])


@router.post("/user/health-passport")
async def create_health_passport(
    current_user: TokenClaims = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """Issue a health passport, or renew the caller's existing one (201 vs 200)."""
    passport, created = await HealthPassportService(db).create_or_renew(current_user.id)
    data = HealthPassportRead.model_validate(passport)
    if created:
        return JSONResponse(
            status_code=201,
            content=jsonable_encoder(success_response("berhasil membuat health passport", data, 201)),
        )
    return success_response("berhasil memperbarui health passport", data)


@router.get("/user/health-passport")
async def get_my_health_passport(
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    passport = await HealthPassportService(db).get_for_user(current_user.id)
    return success_response("berhasil menampilkan health passport", HealthPassportRead.model_validate(passport))


@router.get("/admin/health-passports")
async def list_health_passports(
    query: HealthPassportListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    passports, total = await HealthPassportService(db).list(query)
    return paginated_response("berhasil mendapatkan health passport", passports, total, query, HealthPassportRead)


@router.get("/admin/health-passports/{passport_id}")
async def get_health_passport(
    passport_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    passport = await HealthPassportService(db).get(passport_id)
    return success_response("berhasil menampilkan health passport", HealthPassportRead.model_validate(passport))


@router.patch("/admin/health-passports/{passport_id}/status")
async def change_health_passport_status(
    passport_id: int,
    payload: HealthPassportStatusUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    passport = await HealthPassportService(db).change_status(passport_id, payload.status, payload.renew)
    return success_response("berhasil memperbarui health passport", HealthPassportRead.model_validate(passport))


@router.delete("/admin/health-passports/{passport_id}")
async def delete_health_passport(
    passport_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await HealthPassportService(db).delete(passport_id)
    return success_response("berhasil menghapus health passport")
