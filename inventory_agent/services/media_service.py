from dataclasses import dataclass
from typing import Iterable, Optional

from inventory_agent.config import settings
from inventory_agent.logging_config import get_logger
from inventory_agent.models import Product, Seller
from inventory_agent.models.product import MAX_IMAGES
from inventory_agent.services.aggregator import MediaRef
from inventory_agent.services.catalog_store import CatalogError, CatalogStore
from inventory_agent.services.media_gateway import (
    MAX_IMAGE_BYTES,
    MAX_VIDEO_BYTES,
    MAX_VIDEO_SECONDS,
    MediaGateway,
    MediaGatewayError,
    MediaTooLargeError,
)
from inventory_agent.services.result import INVALID_VALUE, LIMIT_REACHED, NOT_FOUND, TOO_LARGE, TOO_LONG, Result

logger = get_logger("media_service")


@dataclass
class AttachedMedia:
    product: Product
    image_count: int = 0
    duration_seconds: Optional[float] = None

    @property
    def images_full(self) -> bool:
        return self.image_count >= MAX_IMAGES


class MediaService:
    """Product media rules on top of the gateway: size, count and duration limits."""

    def __init__(
        self,
        gateway: MediaGateway,
        store: CatalogStore,
        image_folder: Optional[str] = None,
        video_folder: Optional[str] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.image_folder = image_folder or settings.media_folder_images
        self.video_folder = video_folder or settings.media_folder_videos

    async def upload_image(self, media_id: str) -> MediaRef:
        """Download a WhatsApp image (2 MB ceiling) and store it on the media host."""
        downloaded = await self.gateway.download(media_id, max_bytes=MAX_IMAGE_BYTES)
        uploaded = await self.gateway.upload(downloaded.content, self.image_folder, "image")
        return MediaRef(url=uploaded.url, external_id=uploaded.external_id)

    async def release(self, external_id: Optional[str], resource_type: str = "image") -> bool:
        if not external_id:
            return False
        try:
            return await self.gateway.delete(external_id, resource_type)
        except MediaGatewayError as e:
            logger.warning(
                "Could not release media",
                extra={"context": {"external_id": external_id, "resource_type": resource_type, "error": str(e)}},
            )
            return False

    async def release_refs(self, refs: Iterable[MediaRef]) -> None:
        for ref in refs:
            await self.release(ref.external_id, "image")

    async def release_product_media(self, product: Product) -> int:
        """Release every image and the video of a product. Returns the failure count."""
        failures = 0
        for image in product.images or []:
            if not await self.release(image.get("external_id"), "image"):
                failures += 1
        if product.video and product.video.get("external_id"):
            if not await self.release(product.video["external_id"], "video"):
                failures += 1
        if failures:
            logger.warning(
                "Some product media was not released",
                extra={"context": {"product_id": str(product.id), "failures": failures}},
            )
        return failures

    async def attach_image(self, seller: Seller, product_id: str, media_id: str) -> Result[AttachedMedia]:
        product = self.store.get_product(seller, product_id)
        if product is None:
            return Result.failure("Product not found.", NOT_FOUND)

        images = list(product.images or [])
        if len(images) >= MAX_IMAGES:
            return Result.failure(
                f"*{product.name}* already has {MAX_IMAGES} images (maximum allowed).", LIMIT_REACHED
            )

        try:
            ref = await self.upload_image(media_id)
        except MediaTooLargeError as e:
            return Result.failure(f"Image is too large ({e.size_mb}MB). Maximum allowed: 2MB", TOO_LARGE)

        try:
            updated = self.store.update_product(product, images=images + [ref.to_dict()])
        except CatalogError:
            # Another delivery filled the last slot first.
            await self.release(ref.external_id, "image")
            return Result.failure(
                f"*{product.name}* already has {MAX_IMAGES} images (maximum allowed).", LIMIT_REACHED
            )

        logger.info(
            "Image attached",
            extra={"context": {"product_id": str(product.id), "images": len(updated.images)}},
        )
        return Result.success(AttachedMedia(product=updated, image_count=len(updated.images)))

    async def attach_video(self, seller: Seller, product_id: str, media_id: str) -> Result[AttachedMedia]:
        product = self.store.get_product(seller, product_id)
        if product is None:
            return Result.failure("Product not found.", NOT_FOUND)

        try:
            downloaded = await self.gateway.download(media_id, max_bytes=MAX_VIDEO_BYTES)
        except MediaTooLargeError as e:
            return Result.failure(f"Video is too large ({e.size_mb}MB). Maximum allowed: 50MB", TOO_LARGE)

        uploaded = await self.gateway.upload(downloaded.content, self.video_folder, "video")
        duration = uploaded.duration_seconds or 0
        if duration > MAX_VIDEO_SECONDS:
            await self.release(uploaded.external_id, "video")
            return Result.failure(
                f"Video is too long ({round(duration)} seconds). Maximum allowed: {MAX_VIDEO_SECONDS} seconds",
                TOO_LONG,
            )

        previous = product.video or {}
        if previous.get("external_id"):
            await self.release(previous["external_id"], "video")

        updated = self.store.update_product(
            product, video={"url": uploaded.url, "external_id": uploaded.external_id}
        )
        logger.info(
            "Video attached",
            extra={"context": {"product_id": str(product.id), "duration": duration}},
        )
        return Result.success(AttachedMedia(product=updated, duration_seconds=duration))

    async def remove_images(
        self, seller: Seller, product_id: str, positions: Optional[list[int]] = None
    ) -> Result[AttachedMedia]:
        """Drop images by 1-based position, or all of them when positions is None.

        The product row is updated before the host copies are released, so a
        failed release leaves an orphaned upload rather than a broken link.
        """
        product = self.store.get_product(seller, product_id)
        if product is None:
            return Result.failure("Product not found.", NOT_FOUND)

        images = list(product.images or [])
        if not images:
            return Result.failure(f"*{product.name}* has no photos.", INVALID_VALUE)

        if positions is None:
            removed, kept = images, []
        else:
            wanted = set(positions)
            if any(position < 1 or position > len(images) for position in wanted):
                return Result.failure("That photo is no longer on the product.", INVALID_VALUE)
            removed = [image for index, image in enumerate(images, 1) if index in wanted]
            kept = [image for index, image in enumerate(images, 1) if index not in wanted]

        updated = self.store.update_product(product, images=kept)
        for image in removed:
            await self.release(image.get("external_id"), "image")

        logger.info(
            "Images removed",
            extra={"context": {"product_id": str(product.id), "removed": len(removed), "remaining": len(kept)}},
        )
        return Result.success(AttachedMedia(product=updated, image_count=len(kept)))

    async def remove_video(self, seller: Seller, product_id: str) -> Result[AttachedMedia]:
        product = self.store.get_product(seller, product_id)
        if product is None:
            return Result.failure("Product not found.", NOT_FOUND)
        if not product.has_video:
            return Result.failure(f"*{product.name}* has no video.", INVALID_VALUE)

        external_id = product.video.get("external_id")
        updated = self.store.update_product(product, video=None)
        await self.release(external_id, "video")

        logger.info("Video removed", extra={"context": {"product_id": str(product.id)}})
        return Result.success(AttachedMedia(product=updated, image_count=len(updated.images or [])))
