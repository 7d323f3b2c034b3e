import asyncio
import io
from dataclasses import dataclass
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import httpx

from inventory_agent.config import settings
from inventory_agent.logging_config import get_logger

logger = get_logger("media_gateway")

MAX_IMAGE_BYTES = 2 * 1024 * 1024
MAX_VIDEO_BYTES = 50 * 1024 * 1024
MAX_VIDEO_SECONDS = 20

UPLOAD_OPTIONS = {
    # Stored images are capped at 1200px and auto-compressed.
    "image": {
        "allowed_formats": ["jpg", "jpeg", "png", "webp"],
        "transformation": [{"width": 1200, "height": 1200, "crop": "limit", "quality": "auto"}],
    },
    "video": {
        "allowed_formats": ["mp4", "mov", "webm"],
    },
}


class MediaGatewayError(Exception):
    """Download, upload or delete against WhatsApp or the media host failed."""


class MediaTooLargeError(MediaGatewayError):
    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(f"Media is {size_bytes} bytes, limit is {limit_bytes}")

    @property
    def size_mb(self) -> float:
        return round(self.size_bytes / 1024 / 1024, 2)


@dataclass
class DownloadedMedia:
    content: bytes
    size_bytes: int
    mime_type: Optional[str] = None


@dataclass
class UploadedMedia:
    url: str
    external_id: str
    duration_seconds: Optional[float] = None


class MediaGateway:
    """Moves media from WhatsApp Cloud to Cloudinary and deletes it again.

    The Graph API download goes through httpx; upload and destroy go through
    the Cloudinary SDK, which is blocking and therefore runs in a worker thread.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        graph_api_base: Optional[str] = None,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.whatsapp_access_token
        self.graph_api_base = (graph_api_base or settings.graph_api_base).rstrip("/")
        self.cloud_name = cloud_name if cloud_name is not None else settings.cloudinary_cloud_name
        self.api_key = api_key if api_key is not None else settings.cloudinary_api_key
        self.api_secret = api_secret if api_secret is not None else settings.cloudinary_api_secret
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds
        self._transport = transport

        if self.cloud_name and self.api_key and self.api_secret:
            cloudinary.config(
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                secure=True,
            )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    def _require_cloudinary(self) -> None:
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise MediaGatewayError("Cloudinary credentials are not configured")

    async def download(self, media_id: str, max_bytes: Optional[int] = None) -> DownloadedMedia:
        """Fetch media bytes for a WhatsApp media id.

        The size reported by the metadata call is checked before the body is
        fetched; the body length is checked again afterwards.
        """
        if not self.access_token:
            raise MediaGatewayError("WhatsApp access token is not configured")
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            async with self._client() as client:
                meta_response = await client.get(f"{self.graph_api_base}/{media_id}", headers=headers)
                meta_response.raise_for_status()
                meta = meta_response.json()
                url = meta.get("url")
                if not url:
                    raise MediaGatewayError(f"No download url for media {media_id}")

                declared = int(meta.get("file_size") or 0)
                if max_bytes is not None and declared > max_bytes:
                    raise MediaTooLargeError(declared, max_bytes)

                body_response = await client.get(url, headers=headers)
                body_response.raise_for_status()
                content = body_response.content
        except MediaGatewayError:
            raise
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "WhatsApp media download failed",
                extra={"context": {"media_id": media_id, "error": str(e)}},
            )
            raise MediaGatewayError(f"Download failed for media {media_id}: {e}") from e

        size_bytes = len(content)
        if max_bytes is not None and size_bytes > max_bytes:
            raise MediaTooLargeError(size_bytes, max_bytes)

        logger.info(
            "Downloaded media",
            extra={"context": {"media_id": media_id, "size_bytes": size_bytes}},
        )
        return DownloadedMedia(content=content, size_bytes=size_bytes, mime_type=meta.get("mime_type"))

    async def upload(self, content: bytes, folder: str, resource_type: str = "image") -> UploadedMedia:
        self._require_cloudinary()
        options = UPLOAD_OPTIONS.get(resource_type, {})

        try:
            payload = await asyncio.to_thread(
                cloudinary.uploader.upload,
                io.BytesIO(content),
                folder=folder,
                resource_type=resource_type,
                **options,
            )
        except cloudinary.exceptions.Error as e:
            logger.error(
                "Media upload failed",
                extra={"context": {"folder": folder, "resource_type": resource_type, "error": str(e)}},
            )
            raise MediaGatewayError(f"Upload failed: {e}") from e

        if not payload.get("secure_url") or not payload.get("public_id"):
            raise MediaGatewayError("Upload response is missing secure_url/public_id")

        duration = payload.get("duration")
        return UploadedMedia(
            url=payload["secure_url"],
            external_id=payload["public_id"],
            duration_seconds=float(duration) if duration is not None else None,
        )

    async def delete(self, external_id: str, resource_type: str = "image") -> bool:
        self._require_cloudinary()
        try:
            payload = await asyncio.to_thread(
                cloudinary.uploader.destroy,
                external_id,
                resource_type=resource_type,
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            logger.error(
                "Media delete failed",
                extra={"context": {"external_id": external_id, "error": str(e)}},
            )
            raise MediaGatewayError(f"Delete failed for {external_id}: {e}") from e

        result = payload.get("result")
        logger.info("Deleted media", extra={"context": {"external_id": external_id, "result": result}})
        return result == "ok"
