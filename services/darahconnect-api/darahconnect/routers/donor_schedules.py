from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import TokenClaims, require_admin, require_member
from ..models.database import get_db
from ..models.schemas import (
    DonorScheduleCreate,
    DonorScheduleListQuery,
    DonorScheduleRead,
    DonorScheduleStatusUpdate,
    DonorScheduleUpdate,
)
from ..services.donor_schedule_service import DonorScheduleService
from ..utils.responses import paginated_response, success_response

router = APIRouter(tags=["donor-schedules"])


@router.get("/schedules")
async def list_schedules(
    query: DonorScheduleListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    schedules, total = await DonorScheduleService(db).list(query)
    return paginated_response("berhasil menampilkan semua jadwal donor", schedules, total, query, DonorScheduleRead)


@router.get("/schedules/{schedule_id}")
async def get_schedule(
    schedule_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    schedule = await DonorScheduleService(db).get(schedule_id)
    return success_response("berhasil menampilkan jadwal donor", DonorScheduleRead.model_validate(schedule))


@router.post("/admin/schedules", status_code=201)
async def create_schedule(
    payload: DonorScheduleCreate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    schedule = await DonorScheduleService(db).create(payload)
    return success_response("berhasil membuat jadwal donor", DonorScheduleRead.model_validate(schedule), 201)


@router.put("/admin/schedules/{schedule_id}")
async def update_schedule(
    schedule_id: int,
    payload: DonorScheduleUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    schedule = await DonorScheduleService(db).update(schedule_id, payload)
    return success_response("berhasil memperbarui jadwal donor", DonorScheduleRead.model_validate(schedule))


@router.patch("/admin/schedules/{schedule_id}/status")
async def change_schedule_status(
    schedule_id: int,
    payload: DonorScheduleStatusUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    schedule = await DonorScheduleService(db).change_status(schedule_id, payload.status)
    return success_response("berhasil memperbarui status jadwal donor", DonorScheduleRead.model_validate(schedule))


@router.delete("/admin/schedules/{schedule_id}")
async def delete_schedule(
    schedule_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await DonorScheduleService(db).delete(schedule_id)
    return success_response("berhasil menghapus jadwal donor")
