"""
S3 blob storage for user thumbnails, result photos and generated images.

Only keys are stored in the database; readers get short-lived presigned
GET URLs and browsers upload directly with presigned PUT URLs.
"""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlsplit

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from watchdo.settings import Settings, get_settings

logger = logging.getLogger(__name__)

UPLOAD_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class StorageConfig:
    bucket: str | None
    region: str | None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    endpoint_url: str | None = None
    get_expires_sec: int = 600
    put_expires_sec: int = 300

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageConfig":
        return cls(
            bucket=settings.aws_bucket,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
            get_expires_sec=settings.presign_get_expires_sec,
            put_expires_sec=settings.presign_put_expires_sec,
        )


@dataclass(frozen=True)
class PresignedUpload:
    upload_url: str
    key: str
    content_type: str
    expires_in: int


def extract_storage_key(url_or_key: str | None) -> str | None:
    """Strip scheme and host from a stored URL, leaving the object key."""
    if not url_or_key:
        return None
    value = url_or_key.strip()
    if value.startswith(("http://", "https://")):
        value = urlsplit(value).path
    return value.lstrip("/") or None


class BlobStorage(ABC):
    @abstractmethod
    def presign(self, key: str | None, expires_in: int | None = None) -> str | None:
        ...

    @abstractmethod
    def presign_upload(self, user_id: int, content_type: str) -> PresignedUpload | None:
        ...

    @abstractmethod
    def put_object(self, key: str, data: bytes, content_type: str) -> bool:
        ...


class S3BlobStorage(BlobStorage):
    def __init__(self, config: StorageConfig):
        self.config = config
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.config.region,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
                endpoint_url=self.config.endpoint_url,
                config=Config(signature_version="s3v4", retries={"max_attempts": 2}),
            )
        return self._client

    def presign(self, key: str | None, expires_in: int | None = None) -> str | None:
        key = extract_storage_key(key)
        if not key or not self.config.bucket:
            return None
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.config.bucket, "Key": key},
                ExpiresIn=expires_in or self.config.get_expires_sec,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning(f"[storage] presign GET failed for {key}: {exc}")
            return None

    def presign_upload(self, user_id: int, content_type: str) -> PresignedUpload | None:
        ext = UPLOAD_CONTENT_TYPES.get(content_type)
        if ext is None:
            raise ValueError(f"Unsupported content type: {content_type}")
        if not self.config.bucket:
            logger.warning("[storage] AWS_BUCKET not configured, cannot presign upload")
            return None
        key = f"user_thumbnails/{user_id}/{uuid.uuid4()}.{ext}"
        try:
            url = self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.config.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=self.config.put_expires_sec,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning(f"[storage] presign PUT failed for user {user_id}: {exc}")
            return None
        return PresignedUpload(upload_url=url, key=key, content_type=content_type, expires_in=self.config.put_expires_sec)

    def put_object(self, key: str, data: bytes, content_type: str) -> bool:
        if not self.config.bucket:
            logger.warning("[storage] AWS_BUCKET not configured, skipping upload")
            return False
        try:
            self.client.put_object(Bucket=self.config.bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"[storage] upload failed for {key}: {exc}")
            return False
        logger.info(f"[storage] uploaded {key} ({len(data)} bytes)")
        return True


_storage: BlobStorage | None = None


def get_storage() -> BlobStorage:
    global _storage
    if _storage is None:
        _storage = S3BlobStorage(StorageConfig.from_settings(get_settings()))
    return _storage


def set_storage(storage: BlobStorage | None) -> None:
    global _storage
    _storage = storage
