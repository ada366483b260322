"""Blob Storage - scratch object storage for images that providers fetch by URL."""

import base64
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import httpx

from reelforge.core.config import Settings
from reelforge.core.errors import AuthError, TransientError
from reelforge.models.schemas import ImageData
from reelforge.utils.error_handler import classify_http_error

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/webp": "webp",
    "image/jpeg": "jpg",
}


class BlobStorage:
    """Uploads bytes to public scratch storage and deletes them again."""

    def __init__(self, settings: Settings, logger: Any, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize blob storage.

        Args:
            settings: Application settings (blob_api_url, blob_token)
            logger: Logger instance
            client: HTTP client (created on demand if omitted)
        """
        self.settings = settings
        self.logger = logger
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.http_timeout_seconds))
        return self._client

    def _headers(self) -> dict[str, str]:
        if not self.settings.blob_api_url or not self.settings.blob_token:
            raise AuthError("Blob storage is not configured (BLOB_API_URL / BLOB_TOKEN)", "blob")
        return {"Authorization": f"Bearer {self.settings.blob_token}"}

    async def put(self, data: bytes, content_type: str = "image/png", prefix: str = "flux") -> str:
        """
        Upload bytes under a unique name.

        Args:
            data: Raw bytes
            content_type: MIME type of the bytes
            prefix: Path prefix

        Returns:
            Public URL of the blob
        """
        headers = self._headers()
        extension = MIME_EXTENSIONS.get(content_type, "jpg")
        pathname = f"{prefix}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:10]}.{extension}"

        try:
            response = await self._get_client().put(
                f"{self.settings.blob_api_url.rstrip('/')}/{pathname}",
                content=data,
                headers={**headers, "Content-Type": content_type, "x-access": "public"},
            )
        except httpx.HTTPError as e:
            raise TransientError(f"Blob upload failed: {e}", "blob") from e

        if response.status_code >= 400:
            raise classify_http_error(response.status_code, response.text, response.headers, "blob")

        url = response.json().get("url")
        if not url:
            raise TransientError("Blob upload response had no url", "blob")
        self.logger.debug(f"Uploaded {len(data)} bytes to {url}")
        return url

    async def put_image(self, image: ImageData) -> str:
        """Upload a base64 image and return its public URL."""
        return await self.put(base64.b64decode(image.data), image.mime_type)

    async def delete(self, url: str) -> None:
        """Delete a blob by URL."""
        headers = self._headers()
        try:
            response = await self._get_client().post(
                f"{self.settings.blob_api_url.rstrip('/')}/delete",
                json={"urls": [url]},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise TransientError(f"Blob delete failed: {e}", "blob") from e

        if response.status_code >= 400:
            raise classify_http_error(response.status_code, response.text, response.headers, "blob")
        self.logger.debug(f"Deleted {url}")

    @asynccontextmanager
    async def staged(self, images: Sequence[ImageData]) -> AsyncIterator[list[str]]:
        """
        Upload images for the duration of a block, then delete them.

        Cleanup runs however the block exits (success, error or cancellation)
        and covers images uploaded before a failing upload. Cleanup failures
        are logged, never raised.

        Args:
            images: Images to stage

        Yields:
            Public URLs, in the order of images
        """
        urls: list[str] = []
        try:
            for image in images:
                urls.append(await self.put_image(image))
            yield urls
        finally:
            for url in urls:
                try:
                    await self.delete(url)
                except Exception as e:
                    self.logger.warning(f"Blob cleanup failed for {url}: {e}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
