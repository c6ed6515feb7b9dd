"""Tests for image payload decoding and the S3 media store."""
import base64
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from app.utils.errors import UploadError, ValidationError
from app.utils.media_store import S3MediaStore, decode_image_payload


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"
PNG_B64 = base64.b64encode(PNG_BYTES).decode()


class TestDecodeImagePayload:

    def test_data_uri_keeps_content_type(self):
        body, content_type = decode_image_payload(f"data:image/png;base64,{PNG_B64}")

        assert body == PNG_BYTES
        assert content_type == "image/png"

    def test_bare_base64_defaults_to_jpeg(self):
        body, content_type = decode_image_payload(PNG_B64)

        assert body == PNG_BYTES
        assert content_type == "image/jpeg"

    @pytest.mark.parametrize("payload", ["not base64 at all!", "data:image/png;base64,", "   "])
    def test_invalid_payload_is_rejected(self, payload):
        with pytest.raises(ValidationError):
            decode_image_payload(payload)


class TestS3MediaStore:

    def _store(self, **kwargs):
        store = S3MediaStore(bucket_name="chat-bucket", region="eu-west-1", prefix="chat-media", **kwargs)
        store._s3_client = MagicMock()
        return store

    @pytest.mark.asyncio
    async def test_upload_puts_object_and_returns_url(self):
        store = self._store()

        url = await store.upload(f"data:image/png;base64,{PNG_B64}")

        kwargs = store._s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "chat-bucket"
        assert kwargs["Body"] == PNG_BYTES
        assert kwargs["ContentType"] == "image/png"
        assert kwargs["Key"].startswith("chat-media/")
        assert kwargs["Key"].endswith(".png")
        assert url == f"https://chat-bucket.s3.eu-west-1.amazonaws.com/{kwargs['Key']}"

    @pytest.mark.asyncio
    async def test_public_base_url_overrides_bucket_url(self):
        store = self._store(public_base_url="https://cdn.example.com/")

        url = await store.upload(PNG_B64)

        key = store._s3_client.put_object.call_args.kwargs["Key"]
        assert url == f"https://cdn.example.com/{key}"

    @pytest.mark.asyncio
    async def test_client_error_is_upload_error(self):
        store = self._store()
        store._s3_client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )

        with pytest.raises(UploadError):
            await store.upload(PNG_B64)

    @pytest.mark.asyncio
    async def test_unconfigured_bucket_is_upload_error(self):
        store = S3MediaStore(bucket_name=None, region="eu-west-1")

        with pytest.raises(UploadError):
            await store.upload(PNG_B64)
