from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import DarahConnectError
from ..core.security import TokenClaims, require_admin, require_member, require_user
from ..models.database import Donation, get_db
from ..models.schemas import DonationListQuery, DonationRead, PaymentNotification, PaymentRequest
from ..services.donation_service import DonationService
from ..utils.responses import paginated_response, success_response

logger = structlog.get_logger()
router = APIRouter(tags=["donations"])


@router.post("/user/donations", status_code=201)
async def create_donation(
    payload: PaymentRequest,
    current_user: TokenClaims = Depends(require_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Start a monetary donation.

    Opens a payment page with the gateway and returns the order id, Snap
    token and redirect URL. The donation stays ``pending`` until the
    gateway notifies us.
    """
    try:
        transaction = await DonationService(db).create_transaction(current_user, payload)
        return success_response("berhasil membuat transaksi", transaction, 201)
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Failed to create donation transaction", user_id=current_user.id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal membuat transaksi")


@router.post("/donations/webhook")
async def payment_webhook(payload: PaymentNotification, db: AsyncSession = Depends(get_db)):
    """Payment gateway HTTP notification. Authenticated by its signature only."""
    try:
        donation = await DonationService(db).handle_notification(payload)
        return success_response("berhasil memperbarui status donasi", DonationRead.model_validate(donation))
    except DarahConnectError:
        raise
    except Exception as e:
        logger.error("Payment notification failed", order_id=payload.order_id, error=str(e))
        raise HTTPException(status_code=500, detail="Gagal memproses notifikasi pembayaran")


@router.get("/user/donations")
async def list_my_donations(
    query: DonationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_member),
    db: AsyncSession = Depends(get_db)
):
    donations, total = await DonationService(db).list(query, Donation.user_id == current_user.id)
    return paginated_response("berhasil menampilkan semua donasi", donations, total, query, DonationRead)


@router.get("/admin/donations")
async def list_donations(
    query: DonationListQuery = Depends(),
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    donations, total = await DonationService(db).list(query)
    return paginated_response("berhasil menampilkan semua donasi", donations, total, query, DonationRead)


@router.get("/admin/donations/{donation_id}")
async def get_donation(
    donation_id: int,
    current_user: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    donation = await DonationService(db).get(donation_id)
    return success_response("berhasil mendapatkan data", DonationRead.model_validate(donation))
