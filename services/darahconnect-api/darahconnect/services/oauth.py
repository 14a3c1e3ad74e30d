from typing import Any, Dict, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.exceptions import ExternalServiceError

logger = structlog.get_logger()


class GoogleOAuthClient:
    """Google OAuth2 authorization-code flow."""

    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
    SCOPES = "openid email profile"

    def __init__(self):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET
        self.redirect_url = settings.GOOGLE_REDIRECT_URL
        self.session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.aclose()

    def authorization_url(self, state: str) -> str:
        url = httpx.URL(self.AUTH_URL, params={
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": self.SCOPES,
            "access_type": "online",
            "state": state,
        })
        return str(url)

    @retry(
        stop=stop_after_attempt(settings.MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        response = await self.session.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def fetch_user(self, code: str) -> Dict[str, Any]:
        """
        Exchange an authorization code and return the Google profile.

        Returns:
            Dict[str, Any]: userinfo claims (sub, email, name, picture, email_verified)
        """
        try:
            token = await self._request("POST", self.TOKEN_URL, data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_url,
                "grant_type": "authorization_code",
            })
            return await self._request(
                "GET",
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {token['access_token']}"},
            )
        except (httpx.HTTPError, KeyError) as e:
            logger.error("Google OAuth exchange failed", error=str(e))
            raise ExternalServiceError("Login dengan Google gagal")
