from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.config import settings
from ..core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..core.security import TokenClaims
from ..models.database import Donation
from ..models.schemas import DonationListQuery, PaymentNotification, PaymentRequest, PaymentResponse
from ..repositories import DonationRepository, UserRepository
from ..utils.clock import local_now
from ..utils.monitoring import track_payment_notification
from .notification_service import NotificationService
from .payment_gateway import MidtransClient

logger = structlog.get_logger()

MIDTRANS_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def generate_order_id(user_id: int) -> str:
    return f"ORDER-{user_id}-{local_now():%Y%m%d%H%M%S}"


def parse_order_user_id(order_id: str) -> Optional[int]:
    """Recover the payer from ``ORDER-{user_id}-{timestamp}``."""
    parts = order_id.split("-")
    if len(parts) == 3 and parts[0] == "ORDER" and parts[1].isdigit():
        return int(parts[1])
    return None


def parse_transaction_time(value: Optional[str]) -> Optional[datetime]:
    """Midtrans reports local (WIB) wall-clock time; store it as naive UTC."""
    if not value:
        return None
    try:
        local = datetime.strptime(value, MIDTRANS_TIME_FORMAT)
    except ValueError:
        logger.warning("Unparseable transaction_time", transaction_time=value)
        return None
    return local - timedelta(hours=settings.TIMEZONE_OFFSET_HOURS)


def parse_gross_amount(value: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


class DonationService:
    """Monetary donations paid through the payment gateway."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.donations = DonationRepository(db)
        self.users = UserRepository(db)
        self.notifications = NotificationService(db)

    async def get(self, donation_id: int) -> Donation:
        donation = await self.donations.get(donation_id)
        if donation is None:
            raise NotFoundError("Donasi tidak ditemukan")
        return donation

    async def create_transaction(self, claims: TokenClaims, payload: PaymentRequest) -> PaymentResponse:
        """
        Open a Snap payment page and record the pending donation.

        Returns:
            PaymentResponse: order id, Snap token and redirect URL
        """
        user = await self.users.get(claims.id)
        if user is None:
            raise NotFoundError("User tidak ditemukan")

        order_id = generate_order_id(user.id)
        customer = {
            "first_name": user.name,
            "email": user.email,
            "phone": payload.phone or user.phone or "",
        }
        async with MidtransClient() as gateway:
            transaction = await gateway.create_transaction(order_id, payload.amount, customer)

        donation = Donation(
            user_id=user.id,
            order_id=order_id,
            amount=payload.amount,
            status="pending",
            redirect_url=transaction.get("redirect_url"),
        )
        try:
            await self.donations.add(donation)
            await self.notifications.notify(
                user.id,
                "Donasi",
                f"Terima kasih, donasi sebesar Rp{payload.amount} sedang menunggu pembayaran.",
                "Donation",
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Transaksi dengan order id tersebut sudah ada")

        logger.info("Donation transaction created", order_id=order_id, user_id=user.id, amount=payload.amount)
        return PaymentResponse(
            order_id=order_id,
            token=transaction.get("token"),
            redirect_url=transaction.get("redirect_url", ""),
        )

    async def handle_notification(self, notification: PaymentNotification) -> Donation:
        """
        Apply a payment gateway HTTP notification.

        The record is upserted by order id. A donation that already
        succeeded is never moved back to another status.

        Raises:
            ForbiddenError: Signature does not match
            BadRequestError: Unknown transaction status
        """
        if not MidtransClient.verify_signature(
            notification.order_id,
            notification.status_code,
            notification.gross_amount,
            notification.signature_key,
        ):
            logger.warning("Payment notification signature mismatch", order_id=notification.order_id)
            raise ForbiddenError("Signature tidak valid")

        status = MidtransClient.map_transaction_status(
            notification.transaction_status, notification.fraud_status
        )
        if status is None:
            raise BadRequestError("Invalid transaction status")

        donation = await self.donations.get_by_order_id(notification.order_id)
        if donation is None:
            user_id = parse_order_user_id(notification.order_id)
            if user_id is not None and await self.users.get(user_id) is None:
                user_id = None
            donation = Donation(
                user_id=user_id,
                order_id=notification.order_id,
                amount=parse_gross_amount(notification.gross_amount),
                status=status,
            )
            await self.donations.add(donation)
        elif donation.status == "success" and status != "success":
            logger.warning(
                "Ignoring status downgrade of settled donation",
                order_id=notification.order_id,
                status=status
            )
        else:
            donation.status = status

        if notification.payment_type:
            donation.payment_type = notification.payment_type
        transaction_time = parse_transaction_time(notification.transaction_time)
        if transaction_time is not None:
            donation.transaction_time = transaction_time

        await self.db.commit()
        track_payment_notification(status)
        logger.info("Payment notification applied", order_id=notification.order_id, status=donation.status)
        return await self.get(donation.id)

    async def list(self, query: DonationListQuery, *conditions) -> Tuple[List[Donation], int]:
        return await self.donations.list(query, *conditions)
