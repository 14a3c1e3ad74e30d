from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import DarahConnectError
from ..core.security import TokenClaims, require_admin, require_member, require_user
from ..models.database import BloodRequest, get_db
from ..models.schemas import (
    BloodRequestCreate,
    BloodRequestListQuery,
    BloodRequestRead,
    BloodRequestStatusUpdate,
    BloodRequestUpdate,
    CampaignCreate,
    CampaignUpdate,
    EventType,
)
from ..services.blood_request_service import BloodRequestService
from ..utils.responses import paginated_response, success_response

logger = structlog.get_logger()
router = APIRouter(tags=["blood-requests"])

PUBLIC_REQUEST_STATUSES = ("verified", "registered")


def _read(blood_request: BloodRequest) -> BloodRequestRead:
    return BloodRequestRead.model_validate(blood_request)


# Campaigns (public)

@router.get("/campaigns")
async def list_campaigns(query: BloodRequestListQuery = Depends(), db: AsyncSession = Depends(get_db)):
    campaigns, total = await BloodRequestService(db).list(
        query, BloodRequest.event_type == EventType.CAMPAIGN.value
    )
    return paginated_response("berhasil menampilkan semua kampanye", campaigns, total, query, BloodRequestRead)


@router.get("/campaigns/{campaign_id}")
async def get_campaign(campaign_id: int, db: AsyncSession = Depends(get_db)):
    campaign = await BloodRequestService(db).get(campaign_id, EventType.CAMPAIGN.value)
    return success_response("berhasil menampilkan kampanye", _read(campaign))


# Blood requests

@router.post("/user/blood-requests", status_code=201)
async def create_blood_request(
    payload: BloodRequestCreate,
    current_user: TokenClaims = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a blood request.

    The request starts ``pending`` with one donor slot per requested unit
    and becomes visible to donors once an administrator verifies it.
    """
    try:
        blood_request = await BloodRequestService(db).create_request(current_user, payload)
        return success_response("berhasil membuat permintaan darah", _read(blood_request), 201)
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Failed to create blood request", user_id=current_user.id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal membuat permintaan darah")


@router.get("/user/blood-requests")
async def list_my_blood_requests(
    query: BloodRequestListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    blood_requests, total = await BloodRequestService(db).list(
        query,
        BloodRequest.user_id == current_user.id,
        BloodRequest.event_type == EventType.BLOOD_REQUEST.value,
    )
    return paginated_response(
        "berhasil menampilkan semua permintaan darah", blood_requests, total, query, BloodRequestRead
    )


@router.put("/user/blood-requests/{request_id}")
async def update_blood_request(
    request_id: int,
    payload: BloodRequestUpdate,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    try:
        blood_request = await BloodRequestService(db).update_request(request_id, current_user, payload)
        return success_response("berhasil memperbarui permintaan darah", _read(blood_request))
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Failed to update blood request", request_id=request_id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal memperbarui permintaan darah")


@router.delete("/user/blood-requests/{request_id}")
async def delete_blood_request(
    request_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    await BloodRequestService(db).delete(request_id, current_user, EventType.BLOOD_REQUEST.value)
    return success_response("berhasil menghapus permintaan darah")


@router.get("/blood-requests")
async def list_open_blood_requests(
    query: BloodRequestListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    """Blood requests that donors can currently sign up for."""
    blood_requests, total = await BloodRequestService(db).list(
        query,
        BloodRequest.event_type == EventType.BLOOD_REQUEST.value,
        BloodRequest.status.in_(PUBLIC_REQUEST_STATUSES),
    )
    return paginated_response(
        "berhasil menampilkan semua permintaan darah", blood_requests, total, query, BloodRequestRead
    )


@router.get("/blood-requests/{request_id}")
async def get_blood_request(
    request_id: int,
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    blood_request = await BloodRequestService(db).get(request_id)
    return success_response("berhasil menampilkan permintaan darah", _read(blood_request))


# Administration

@router.get("/admin/blood-requests")
async def list_all_blood_requests(
    query: BloodRequestListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    blood_requests, total = await BloodRequestService(db).list(query)
    return paginated_response(
        "berhasil menampilkan semua permintaan darah", blood_requests, total, query, BloodRequestRead
    )


@router.patch("/admin/blood-requests/{request_id}/status")
async def change_blood_request_status(
    request_id: int,
    payload: BloodRequestStatusUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    blood_request = await BloodRequestService(db).change_status(request_id, payload.status)
    return success_response("berhasil memperbarui status permintaan darah", _read(blood_request))


@router.post("/admin/campaigns", status_code=201)
async def create_campaign(
    payload: CampaignCreate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        campaign = await BloodRequestService(db).create_campaign(current_user, payload)
        return success_response("berhasil membuat kampanye", _read(campaign), 201)
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Failed to create campaign", error=str(e))
        raise HTTPException(status_code=500, detail="Gagal membuat kampanye")


@router.put("/admin/campaigns/{campaign_id}")
async def update_campaign(
    campaign_id: int,
    payload: CampaignUpdate,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    campaign = await BloodRequestService(db).update_campaign(campaign_id, payload)
    return success_response("berhasil memperbarui kampanye", _read(campaign))


@router.delete("/admin/campaigns/{campaign_id}")
async def delete_campaign(
    campaign_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await BloodRequestService(db).delete(campaign_id, current_user, EventType.CAMPAIGN.value)
    return success_response("berhasil menghapus kampanye")
