from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import TokenClaims, require_admin
from ..models.database import get_db
from ..models.schemas import HospitalCreate, HospitalListQuery, HospitalRead, HospitalUpdate
from ..services.hospital_service import HospitalService
from ..utils.responses import paginated_response, success_response

router = APIRouter(tags=["hospitals"])


@router.get("/hospitals")
async def list_hospitals(query: HospitalListQuery = Depends(), db: AsyncSession = Depends(get_db)):
    hospitals, total = await HospitalService(db).list(query)
    return paginated_response("berhasil mengambil semua rumah sakit", hospitals, total, query, HospitalRead)


@router.get("/hospitals/{hospital_id}")
async def get_hospital(hospital_id: int, db: AsyncSession = Depends(get_db)):
    hospital = await HospitalService(db).get(hospital_id)
    return success_response("berhasil mengambil rumah sakit berdasarkan id", HospitalRead.model_validate(hospital))


@router.post("/admin/hospitals", status_code=201)
async def create_hospital(
    payload: HospitalCreate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    hospital = await HospitalService(db).create(payload)
    return success_response("berhasil membuat rumah sakit", HospitalRead.model_validate(hospital), 201)


@router.put("/admin/hospitals/{hospital_id}")
async def update_hospital(
    hospital_id: int,
    payload: HospitalUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    hospital = await HospitalService(db).update(hospital_id, payload)
    return success_response("berhasil memperbarui rumah sakit", HospitalRead.model_validate(hospital))


@router.delete("/admin/hospitals/{hospital_id}")
async def delete_hospital(
    hospital_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await HospitalService(db).delete(hospital_id)
    return success_response("berhasil menghapus rumah sakit")
