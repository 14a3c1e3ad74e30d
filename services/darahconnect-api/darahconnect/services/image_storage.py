import hashlib
import os
import time
from typing import Any, Dict, Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.exceptions import BadRequestError, ExternalServiceError

logger = structlog.get_logger()

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "bmp"}
ROOT_FOLDER = "darahconnect"


def validate_image_filename(filename: Optional[str]) -> str:
    """Return the lower-cased extension, or raise if it is not an image type we accept."""
    extension = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise BadRequestError("Format file tidak didukung")
    return extension


class CloudinaryClient:
    """Signed Cloudinary upload API client for profile pictures."""

    def __init__(self):
        self.cloud_name = settings.CLOUDINARY_CLOUD_NAME
        self.api_key = settings.CLOUDINARY_API_KEY
        self.api_secret = settings.CLOUDINARY_API_SECRET
        self.session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self.session = httpx.AsyncClient(
            base_url=f"https://api.cloudinary.com/v1_1/{self.cloud_name}",
            timeout=settings.HTTP_TIMEOUT,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.aclose()

    def sign(self, params: Dict[str, Any]) -> str:
        """Cloudinary signature: sha1 of the sorted ``k=v`` pairs followed by the API secret."""
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode()).hexdigest()

    def _signed_form(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params, timestamp=int(time.time()))
        form = dict(params)
        form["signature"] = self.sign(params)
        form["api_key"] = self.api_key
        return form

    @retry(
        stop=stop_after_attempt(settings.MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, path: str, data: Dict[str, Any], files=None) -> Dict[str, Any]:
        response = await self.session.post(path, data=data, files=files)
        response.raise_for_status()
        return response.json()

    async def upload_image(self, content: bytes, filename: str, folder: str) -> Dict[str, str]:
        """
        Upload an image into ``darahconnect/<folder>``.

        Returns:
            Dict[str, str]: ``secure_url`` and ``public_id`` of the stored image
        """
        validate_image_filename(filename)
        form = self._signed_form({"folder": f"{ROOT_FOLDER}/{folder}"})
        try:
            result = await self._post("/image/upload", form, files={"file": (filename, content)})
            logger.info("Image uploaded", public_id=result.get("public_id"), folder=folder)
            return {"secure_url": result["secure_url"], "public_id": result["public_id"]}
        except (httpx.HTTPError, KeyError) as e:
            logger.error("Failed to upload image", filename=filename, error=str(e))
            raise ExternalServiceError("Gagal mengunggah gambar")

    async def delete_image(self, public_id: str) -> bool:
        form = self._signed_form({"public_id": public_id})
        try:
            result = await self._post("/image/destroy", form)
            return result.get("result") == "ok"
        except httpx.HTTPError as e:
            logger.error("Failed to delete image", public_id=public_id, error=str(e))
            raise ExternalServiceError("Gagal menghapus gambar")
