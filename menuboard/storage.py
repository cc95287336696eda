"""
Media storage for menu photos: S3-compatible buckets, inline data URIs and
an in-memory double for tests.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from menuboard.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class StoredImage:
    url: str
    inline: bool = False


class MediaStore(Protocol):
    """Defines the operations the API needs from image storage."""

    def upload_image(self, data: bytes, content_type: str, key: str) -> StoredImage:
        ...


def to_data_uri(data: bytes, content_type: str | None) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type or DEFAULT_CONTENT_TYPE};base64,{encoded}"


class InlineMediaStore:
    """Fallback used when no bucket credential is configured."""

    def upload_image(self, data: bytes, content_type: str, key: str) -> StoredImage:
        logger.info("Media storage not configured; inlining %s as data URI", key)
        return StoredImage(url=to_data_uri(data, content_type), inline=True)


@dataclass
class InMemoryMediaStore:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/media"
    stored_objects: dict = field(default_factory=dict)

    def upload_image(self, data: bytes, content_type: str, key: str) -> StoredImage:
        self.stored_objects[key] = (data, content_type)
        return StoredImage(url=f"{self.base_url}/{key}")


@dataclass
class S3MediaStore:
    """
    S3-compatible media store (AWS S3, Tencent COS, MinIO, R2...).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint:
            scheme, _, host = self.endpoint.partition("://")
            return f"{scheme}://{self.bucket}.{host.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{self.region or 'us-east-1'}.amazonaws.com/{key}"

    def upload_image(self, data: bytes, content_type: str, key: str) -> StoredImage:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or DEFAULT_CONTENT_TYPE,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ExternalServiceError(f"Media upload failed: {exc}") from exc
        return StoredImage(url=self.public_url(key))
