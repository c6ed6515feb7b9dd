"""Attachment storage for chat images.

Clients send images inline as base64 (optionally a ``data:`` URI). The
payload is decoded here, written to S3 and replaced by a durable URL before
the message is persisted.
"""
import asyncio
import base64
import binascii
import logging
import mimetypes
import re
import uuid
from typing import Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.utils.errors import UploadError, ValidationError


logger = logging.getLogger(__name__)

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)
DEFAULT_CONTENT_TYPE = "image/jpeg"


def decode_image_payload(raw_image: str) -> Tuple[bytes, str]:
    """Return ``(bytes, content_type)`` for a base64 string or data URI."""
    content_type = DEFAULT_CONTENT_TYPE
    data = raw_image.strip()
    match = DATA_URI_RE.match(data)
    if match:
        content_type = match.group("mime")
        data = match.group("data")
    try:
        body = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image payload is not valid base64")
    if not body:
        raise ValidationError("Image payload is empty")
    return body, content_type


class S3MediaStore:

    def __init__(
        self,
        bucket_name: Optional[str],
        region: str,
        prefix: str = "chat-media",
        public_base_url: Optional[str] = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.prefix = prefix.strip("/")
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._s3_client = None

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client("s3", region_name=self.region)
        return self._s3_client

    def _generate_key(self, content_type: str) -> str:
        ext = mimetypes.guess_extension(content_type) or ""
        return f"{self.prefix}/{uuid.uuid4().hex}{ext}"

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    async def upload(self, raw_image: str) -> str:
        """Store the image and return its durable URL."""
        if not self.bucket_name:
            raise UploadError("Media storage is not configured")
        body, content_type = decode_image_payload(raw_image)
        key = self._generate_key(content_type)
        try:
            # boto3 is blocking
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket_name,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Image upload to s3://%s/%s failed: %s", self.bucket_name, key, exc)
            raise UploadError(f"Image upload failed: {exc}") from exc
        logger.info("Uploaded %d bytes to s3://%s/%s", len(body), self.bucket_name, key)
        return self.public_url(key)


_media_store = None


def get_media_store() -> S3MediaStore:
    global _media_store
    if _media_store is None:
        _media_store = S3MediaStore(
            bucket_name=settings.MEDIA_BUCKET,
            region=settings.MEDIA_REGION,
            prefix=settings.MEDIA_PREFIX,
            public_base_url=settings.MEDIA_PUBLIC_BASE_URL,
        )
    return _media_store
