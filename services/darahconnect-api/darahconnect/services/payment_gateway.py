import hashlib
import hmac
from typing import Any, Dict, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.exceptions import ExternalServiceError

logger = structlog.get_logger()

# Midtrans transaction_status -> local payment status
TRANSACTION_STATUS_MAP = {
    "settlement": "success",
    "capture": "success",
    "pending": "pending",
    "deny": "failed",
    "cancel": "failed",
    "failure": "failed",
    "expire": "expired",
}


class MidtransClient:
    """Midtrans Snap API client used to open payment pages for monetary donations."""

    SANDBOX_URL = "https://app.sandbox.midtrans.com"
    PRODUCTION_URL = "https://app.midtrans.com"

    def __init__(self):
        self.server_key = settings.MIDTRANS_SERVER_KEY
        self.base_url = self.PRODUCTION_URL if settings.MIDTRANS_IS_PRODUCTION else self.SANDBOX_URL
        self.session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.server_key, ""),
            timeout=settings.HTTP_TIMEOUT,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json"
            }
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.aclose()

    @retry(
        stop=stop_after_attempt(settings.MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.session.post(path, json=payload)
        response.raise_for_status()
        return response.json()

    async def create_transaction(
        self,
        order_id: str,
        amount: int,
        customer: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create a Snap transaction.

        Args:
            order_id: Unique merchant order id
            amount: Gross amount in rupiah
            customer: first_name, email and phone of the payer

        Returns:
            Dict[str, Any]: ``token`` and ``redirect_url`` from Snap
        """
        payload = {
            "transaction_details": {"order_id": order_id, "gross_amount": amount},
            "customer_details": customer,
        }
        try:
            result = await self._post("/snap/v1/transactions", payload)
            logger.info("Midtrans transaction created", order_id=order_id, amount=amount)
            return result
        except httpx.HTTPError as e:
            logger.error("Failed to create Midtrans transaction", order_id=order_id, error=str(e))
            raise ExternalServiceError("Gagal membuat transaksi pembayaran")

    @staticmethod
    def expected_signature(order_id: str, status_code: str, gross_amount: str) -> str:
        raw = f"{order_id}{status_code}{gross_amount}{settings.MIDTRANS_SERVER_KEY}"
        return hashlib.sha512(raw.encode()).hexdigest()

    @classmethod
    def verify_signature(cls, order_id: str, status_code: str, gross_amount: str, signature_key: str) -> bool:
        """Check the ``signature_key`` Midtrans attaches to HTTP notifications."""
        expected = cls.expected_signature(order_id, status_code, gross_amount)
        return hmac.compare_digest(expected.encode(), (signature_key or "").encode())

    @staticmethod
    def map_transaction_status(transaction_status: str, fraud_status: Optional[str] = None) -> Optional[str]:
        if transaction_status == "capture" and fraud_status == "challenge":
            return "pending"
        return TRANSACTION_STATUS_MAP.get(transaction_status)
