import asyncio
from unittest.mock import patch

import cloudinary.exceptions
import httpx
import pytest

from inventory_agent.services.media_gateway import (
    MediaGateway,
    MediaGatewayError,
    MediaTooLargeError,
)


def _gateway(handler=None, **kwargs):
    options = {
        "access_token": "wa-token",
        "graph_api_base": "https://graph.test/v17.0",
        "cloud_name": "demo",
        "api_key": "key",
        "api_secret": "secret",
        "transport": httpx.MockTransport(handler or (lambda request: httpx.Response(200))),
    }
    options.update(kwargs)
    return MediaGateway(**options)


class TestDownload:
    def test_two_step_download(self):
        seen = []

        def handler(request: httpx.Request):
            seen.append((str(request.url), request.headers.get("Authorization")))
            if request.url.host == "graph.test":
                return httpx.Response(
                    200, json={"url": "https://lookaside.test/file", "file_size": 6, "mime_type": "image/jpeg"}
                )
            return httpx.Response(200, content=b"binary")

        media = asyncio.run(_gateway(handler).download("media-1", max_bytes=1024))
        assert media.content == b"binary"
        assert media.size_bytes == 6
        assert media.mime_type == "image/jpeg"
        assert seen[0] == ("https://graph.test/v17.0/media-1", "Bearer wa-token")
        assert seen[1][0] == "https://lookaside.test/file"

    def test_declared_size_over_limit_skips_body(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"url": "https://lookaside.test/file", "file_size": 3 * 1024 * 1024})

        with pytest.raises(MediaTooLargeError) as exc_info:
            asyncio.run(_gateway(handler).download("media-1", max_bytes=2 * 1024 * 1024))
        assert exc_info.value.size_mb == 3.0
        assert len(seen) == 1

    def test_http_failure_raises_gateway_error(self):
        with pytest.raises(MediaGatewayError):
            asyncio.run(_gateway(lambda request: httpx.Response(404, json={})).download("missing"))

    def test_missing_token(self):
        with pytest.raises(MediaGatewayError):
            asyncio.run(_gateway(lambda request: httpx.Response(200), access_token="").download("media-1"))


class TestUploadAndDelete:
    def test_image_upload_uses_folder_and_transformation(self):
        response = {"secure_url": "https://res.test/p.jpg", "public_id": "products/abc"}
        with patch("cloudinary.uploader.upload", return_value=response) as upload:
            uploaded = asyncio.run(_gateway().upload(b"data", "products"))

        args, kwargs = upload.call_args
        assert args[0].read() == b"data"
        assert kwargs["folder"] == "products"
        assert kwargs["resource_type"] == "image"
        assert kwargs["transformation"] == [{"width": 1200, "height": 1200, "crop": "limit", "quality": "auto"}]
        assert uploaded.url == "https://res.test/p.jpg"
        assert uploaded.external_id == "products/abc"
        assert uploaded.duration_seconds is None

    def test_video_upload_returns_duration(self):
        response = {"secure_url": "https://res.test/v.mp4", "public_id": "videos/abc", "duration": 14.2}
        with patch("cloudinary.uploader.upload", return_value=response) as upload:
            uploaded = asyncio.run(_gateway().upload(b"data", "videos", "video"))

        assert upload.call_args.kwargs["resource_type"] == "video"
        assert "transformation" not in upload.call_args.kwargs
        assert uploaded.duration_seconds == 14.2

    def test_upload_without_credentials(self):
        with patch("cloudinary.uploader.upload") as upload:
            with pytest.raises(MediaGatewayError):
                asyncio.run(_gateway(api_secret="").upload(b"data", "products"))
        upload.assert_not_called()

    def test_upload_bad_response(self):
        with patch("cloudinary.uploader.upload", return_value={"error": "nope"}):
            with pytest.raises(MediaGatewayError):
                asyncio.run(_gateway().upload(b"data", "products"))

    def test_upload_sdk_error_is_wrapped(self):
        with patch("cloudinary.uploader.upload", side_effect=cloudinary.exceptions.Error("Invalid image file")):
            with pytest.raises(MediaGatewayError):
                asyncio.run(_gateway().upload(b"data", "products"))

    def test_delete(self):
        with patch("cloudinary.uploader.destroy", return_value={"result": "ok"}) as destroy:
            assert asyncio.run(_gateway().delete("products/abc", "image")) is True

        args, kwargs = destroy.call_args
        assert args == ("products/abc",)
        assert kwargs["resource_type"] == "image"

    def test_delete_not_found(self):
        with patch("cloudinary.uploader.destroy", return_value={"result": "not found"}):
            assert asyncio.run(_gateway().delete("products/gone")) is False

    def test_delete_failure_raises(self):
        with patch("cloudinary.uploader.destroy", side_effect=cloudinary.exceptions.Error("boom")):
            with pytest.raises(MediaGatewayError):
                asyncio.run(_gateway().delete("products/abc"))
