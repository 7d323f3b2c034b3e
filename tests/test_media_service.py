import asyncio

from inventory_agent.services.result import INVALID_VALUE, LIMIT_REACHED, NOT_FOUND, TOO_LARGE, TOO_LONG


def _product(store, seller, images=0, video=None):
    return store.create_product(
        seller,
        name="Yonex Astrox 88D",
        price=15000,
        category="rackets",
        images=[{"url": f"u{i}", "external_id": f"img-{i}"} for i in range(images)],
        video=video,
    )


class TestAttachImage:
    def test_appends_image(self, media, store, seller, gateway):
        product = _product(store, seller, images=1)
        result = asyncio.run(media.attach_image(seller, str(product.id), "media-1"))
        assert result.ok
        assert result.value.image_count == 2
        assert not result.value.images_full
        assert len(store.get_product(seller, product.id).images) == 2

    def test_fifth_image_fills_product(self, media, store, seller):
        product = _product(store, seller, images=4)
        result = asyncio.run(media.attach_image(seller, str(product.id), "media-1"))
        assert result.value.images_full

    def test_full_product_rejected_without_upload(self, media, store, seller, gateway):
        product = _product(store, seller, images=5)
        result = asyncio.run(media.attach_image(seller, str(product.id), "media-1"))
        assert result.error_code == LIMIT_REACHED
        assert gateway.uploads == []
        assert len(store.get_product(seller, product.id).images) == 5

    def test_too_large(self, media, store, seller, gateway):
        product = _product(store, seller)
        gateway.size_bytes = 3 * 1024 * 1024
        result = asyncio.run(media.attach_image(seller, str(product.id), "media-1"))
        assert result.error_code == TOO_LARGE
        assert gateway.uploads == []

    def test_missing_product(self, media, seller):
        result = asyncio.run(media.attach_image(seller, "6f1c1f3e-4c3a-4c9a-9a53-6f0c1d7f2b11", "media-1"))
        assert result.error_code == NOT_FOUND


class TestAttachVideo:
    def test_replacing_video_releases_previous(self, media, store, seller, gateway):
        product = _product(store, seller, video={"url": "old", "external_id": "videos/old"})
        result = asyncio.run(media.attach_video(seller, str(product.id), "video-1"))
        assert result.ok
        assert ("videos/old", "video") in gateway.deleted
        stored = store.get_product(seller, product.id)
        assert stored.video["external_id"] == "videos/video-1"

    def test_too_long_video_is_deleted_and_rejected(self, media, store, seller, gateway):
        product = _product(store, seller, video={"url": "old", "external_id": "videos/old"})
        gateway.video_duration = 25
        result = asyncio.run(media.attach_video(seller, str(product.id), "video-1"))
        assert result.error_code == TOO_LONG
        assert gateway.deleted == [("videos/video-1", "video")]
        assert store.get_product(seller, product.id).video["external_id"] == "videos/old"


class TestRemoveMedia:
    def test_remove_by_position(self, media, store, seller, gateway):
        product = _product(store, seller, images=3)
        result = asyncio.run(media.remove_images(seller, str(product.id), [1, 3]))
        assert result.ok
        assert result.value.image_count == 1
        assert store.get_product(seller, product.id).images == [{"url": "u1", "external_id": "img-1"}]
        assert gateway.deleted == [("img-0", "image"), ("img-2", "image")]

    def test_remove_all(self, media, store, seller, gateway):
        product = _product(store, seller, images=2)
        result = asyncio.run(media.remove_images(seller, str(product.id)))
        assert result.value.image_count == 0
        assert store.get_product(seller, product.id).images == []
        assert len(gateway.deleted) == 2

    def test_out_of_range_position_changes_nothing(self, media, store, seller, gateway):
        product = _product(store, seller, images=1)
        result = asyncio.run(media.remove_images(seller, str(product.id), [2]))
        assert result.error_code == INVALID_VALUE
        assert len(store.get_product(seller, product.id).images) == 1
        assert gateway.deleted == []

    def test_release_failure_still_detaches(self, media, store, seller, gateway):
        product = _product(store, seller, images=1)
        gateway.fail_delete = True
        result = asyncio.run(media.remove_images(seller, str(product.id), [1]))
        assert result.ok
        assert store.get_product(seller, product.id).images == []

    def test_no_photos(self, media, store, seller):
        product = _product(store, seller)
        assert asyncio.run(media.remove_images(seller, str(product.id))).error_code == INVALID_VALUE

    def test_remove_video(self, media, store, seller, gateway):
        product = _product(store, seller, images=1, video={"url": "v", "external_id": "videos/v"})
        result = asyncio.run(media.remove_video(seller, str(product.id)))
        assert result.ok
        stored = store.get_product(seller, product.id)
        assert stored.video is None
        assert len(stored.images) == 1
        assert gateway.deleted == [("videos/v", "video")]

    def test_remove_missing_video(self, media, store, seller, gateway):
        product = _product(store, seller)
        result = asyncio.run(media.remove_video(seller, str(product.id)))
        assert result.error_code == INVALID_VALUE
        assert gateway.deleted == []

    def test_missing_product(self, media, seller):
        missing = "6f1c1f3e-4c3a-4c9a-9a53-6f0c1d7f2b11"
        assert asyncio.run(media.remove_images(seller, missing)).error_code == NOT_FOUND
        assert asyncio.run(media.remove_video(seller, missing)).error_code == NOT_FOUND


class TestRelease:
    def test_release_product_media_tolerates_failures(self, media, store, seller, gateway):
        product = _product(store, seller, images=2, video={"url": "v", "external_id": "videos/v"})
        gateway.fail_delete = True
        failures = asyncio.run(media.release_product_media(product))
        assert failures == 3
        assert len(gateway.deleted) == 3
