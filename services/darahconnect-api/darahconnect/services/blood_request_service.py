from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.security import TokenClaims
from ..models.database import BloodRequest
from ..models.schemas import (
    BloodRequestCreate,
    BloodRequestListQuery,
    BloodRequestUpdate,
    CampaignCreate,
    CampaignUpdate,
    EventType,
)
from ..repositories import BloodRequestRepository, HospitalRepository
from .base import collect_changes
from .notification_service import NotificationService
from .workflow import BLOOD_REQUEST_TRANSITIONS, ensure_transition, reconcile_slot_status

logger = structlog.get_logger()

LOCKED_STATUSES = {"completed", "verified"}


class BloodRequestService:
    """Blood requests raised by users and donation campaigns run by admins."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.requests = BloodRequestRepository(db)
        self.hospitals = HospitalRepository(db)
        self.notifications = NotificationService(db)

    async def get(self, request_id: int, event_type: Optional[str] = None) -> BloodRequest:
        blood_request = await self.requests.get(request_id)
        if blood_request is None or (event_type and blood_request.event_type != event_type):
            if event_type == EventType.CAMPAIGN:
                raise NotFoundError("Campaign tidak ditemukan")
            raise NotFoundError("Permintaan darah tidak ditemukan")
        return blood_request

    async def _ensure_hospital(self, hospital_id: int) -> None:
        if await self.hospitals.get(hospital_id) is None:
            raise NotFoundError("Rumah sakit tidak ditemukan")

    async def create_request(self, claims: TokenClaims, payload: BloodRequestCreate) -> BloodRequest:
        """
        Create a blood request on behalf of the caller.

        The request starts ``pending`` with one donor slot per requested
        unit and waits for an administrator to verify it.
        """
        await self._ensure_hospital(payload.hospital_id)

        data = payload.model_dump()
        if not data.get("event_name"):
            data["event_name"] = f"Permintaan darah untuk {payload.patient_name}"
        blood_request = BloodRequest(
            **data,
            user_id=claims.id,
            event_type=EventType.BLOOD_REQUEST.value,
            status="pending",
            slots_available=payload.quantity,
            slots_booked=0,
        )
        await self.requests.add(blood_request)
        await self.notifications.notify(
            claims.id,
            "Pemberitahuan Permintaan Darah",
            f"Permintaan darah untuk {payload.patient_name} berhasil dibuat dan menunggu verifikasi admin.",
            "Request",
        )
        await self.db.commit()
        logger.info("Blood request created", request_id=blood_request.id, user_id=claims.id)
        return await self.get(blood_request.id)

    async def create_campaign(self, claims: TokenClaims, payload: CampaignCreate) -> BloodRequest:
        """Campaigns are created by administrators and open for registration at once."""
        await self._ensure_hospital(payload.hospital_id)

        campaign = BloodRequest(
            **payload.model_dump(),
            user_id=claims.id,
            event_type=EventType.CAMPAIGN.value,
            status="verified",
            quantity=payload.slots_available,
            slots_booked=0,
        )
        await self.requests.add(campaign)
        await self.db.commit()
        logger.info("Campaign created", campaign_id=campaign.id, admin_id=claims.id)
        return await self.get(campaign.id)

    async def list(self, query: BloodRequestListQuery, *conditions) -> Tuple[List[BloodRequest], int]:
        return await self.requests.list(query, *conditions)

    async def update_request(
        self,
        request_id: int,
        claims: TokenClaims,
        payload: BloodRequestUpdate
    ) -> BloodRequest:
        blood_request = await self.get(request_id, EventType.BLOOD_REQUEST.value)
        if not claims.is_admin and blood_request.user_id != claims.id:
            raise ForbiddenError("Anda tidak memiliki izin untuk memperbarui permintaan ini")
        if blood_request.status in LOCKED_STATUSES:
            raise BadRequestError("Permintaan Sudah tidak bisa diupdate")

        changes = collect_changes(payload)
        status = changes.pop("status", None)
        if status and status != blood_request.status:
            if not claims.is_admin and status != "cancelled":
                raise BadRequestError("Anda hanya bisa membatalkan permintaan")
            ensure_transition(BLOOD_REQUEST_TRANSITIONS, blood_request.status, status)
            changes["status"] = status

        if "quantity" in changes:
            if changes["quantity"] < blood_request.slots_booked:
                raise BadRequestError("Jumlah tidak boleh kurang dari pendonor yang sudah terdaftar")
            changes["slots_available"] = changes["quantity"] - blood_request.slots_booked

        await self.requests.update(blood_request, changes)
        if "slots_available" in changes:
            reconcile_slot_status(blood_request)
        await self.db.commit()
        logger.info("Blood request updated", request_id=request_id, fields=sorted(changes))
        return await self.get(request_id)

    async def update_campaign(self, campaign_id: int, payload: CampaignUpdate) -> BloodRequest:
        campaign = await self.get(campaign_id, EventType.CAMPAIGN.value)
        changes = collect_changes(payload)
        if "hospital_id" in changes:
            await self._ensure_hospital(changes["hospital_id"])
        if "slots_available" in changes:
            changes["quantity"] = changes["slots_available"] + campaign.slots_booked

        await self.requests.update(campaign, changes)
        if "slots_available" in changes:
            reconcile_slot_status(campaign)
        await self.db.commit()
        return await self.get(campaign_id)

    async def change_status(self, request_id: int, status: str) -> BloodRequest:
        """Administrative status change; the requester is notified."""
        blood_request = await self.get(request_id)
        ensure_transition(BLOOD_REQUEST_TRANSITIONS, blood_request.status, status)

        blood_request.status = status
        if blood_request.event_type == EventType.BLOOD_REQUEST:
            await self.notifications.notify(
                blood_request.user_id,
                "Status Permintaan Darah",
                f"Permintaan darah anda telah di{status}",
                "Request",
            )
        await self.db.commit()
        logger.info("Blood request status changed", request_id=request_id, status=status)
        return await self.get(request_id)

    async def delete(self, request_id: int, claims: TokenClaims, event_type: Optional[str] = None) -> None:
        blood_request = await self.get(request_id, event_type)
        if not claims.is_admin:
            if blood_request.user_id != claims.id:
                raise ForbiddenError("Anda tidak memiliki izin untuk menghapus permintaan ini")
            if blood_request.status != "pending":
                raise BadRequestError("Permintaan hanya bisa dihapus saat masih pending")

        try:
            await self.requests.delete(blood_request)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise BadRequestError("Permintaan sudah memiliki pendaftar donor")
        logger.info("Blood request deleted", request_id=request_id)
