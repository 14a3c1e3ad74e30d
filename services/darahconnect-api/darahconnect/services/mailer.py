from pathlib import Path
from typing import Optional

import httpx
import structlog
from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings

logger = structlog.get_logger()

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def render_template(template_name: str, **context) -> str:
    return templates.get_template(template_name).render(**context)


class Mailer:
    """Mailjet v3.1 send API client."""

    BASE_URL = "https://api.mailjet.com"

    def __init__(self):
        self.api_key = settings.MAILJET_API_KEY
        self.secret_key = settings.MAILJET_SECRET_KEY
        self.session: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.secret_key)

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = httpx.AsyncClient(
            base_url=self.BASE_URL,
            auth=(self.api_key, self.secret_key),
            timeout=settings.HTTP_TIMEOUT,
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
    async def _send(self, payload: dict) -> None:
        response = await self.session.post("/v3.1/send", json=payload)
        response.raise_for_status()

    async def send(self, to_email: str, to_name: str, subject: str, template_name: str, **context) -> bool:
        """Render ``template_name`` and send it. Failures are logged and reported as False."""
        if not self.configured:
            logger.warning("Mailer not configured, email skipped", to=to_email, subject=subject)
            return False

        try:
            html = render_template(template_name, **context)
            payload = {
                "Messages": [{
                    "From": {"Email": settings.MAIL_SENDER_EMAIL, "Name": settings.MAIL_SENDER_NAME},
                    "To": [{"Email": to_email, "Name": to_name}],
                    "Subject": subject,
                    "HTMLPart": html,
                }]
            }
            await self._send(payload)
            logger.info("Email sent", to=to_email, subject=subject)
            return True
        except (httpx.HTTPError, TemplateError) as e:
            logger.error("Failed to send email", to=to_email, subject=subject, error=str(e))
            return False


async def send_verify_email(email: str, name: str, token: str) -> bool:
    async with Mailer() as mailer:
        return await mailer.send(
            email,
            name,
            "Verifikasi Email DarahConnect",
            "verify-email.html",
            name=name,
            link=f"{settings.FRONTEND_URL}/verify-email/{token}",
        )


async def send_reset_password_email(email: str, name: str, token: str) -> bool:
    async with Mailer() as mailer:
        return await mailer.send(
            email,
            name,
            "Reset Password DarahConnect",
            "reset-password.html",
            name=name,
            link=f"{settings.FRONTEND_URL}/reset-password/{token}",
            expire_minutes=settings.RESET_TOKEN_EXPIRE_MINUTES,
        )
