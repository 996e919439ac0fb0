from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass
from functools import lru_cache

import boto3
from botocore.config import Config
from fastapi import HTTPException

from marketplace.core.config import settings


UPLOAD_FOLDERS = ("listings", "developments", "avatars", "documents")


@dataclass(frozen=True)
class PresignedUpload:
    upload_url: str
    key: str
    public_url: str
    content_type: str
    expires_in: int

    @property
    def headers(self) -> dict[str, str]:
        # the PUT must repeat the signed content type
        return {"Content-Type": self.content_type}


def build_object_key(folder: str, file_name: str, *, owner_id: str) -> str:
    ext = ""
    if "." in file_name:
        ext = "." + file_name.rsplit(".", 1)[1].lower()[:10]
    return f"{folder}/{owner_id}/{uuid.uuid4().hex}{ext}"


def guess_content_type(file_name: str) -> str | None:
    return mimetypes.guess_type(file_name)[0]


class S3Presigner:
    """Issues presigned PUT URLs; the bytes never pass through the API."""

    def __init__(self, *, bucket: str, region: str, access_key_id: str, secret_access_key: str,
                 public_base_url: str | None = None, expires_in: int = 900):
        self.bucket = bucket
        self.expires_in = expires_in
        self.public_base_url = (public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com").rstrip("/")
        self._s3 = boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(signature_version="s3v4"),
        )

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def presign_put(self, *, key: str, content_type: str) -> PresignedUpload:
        url = self._s3.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=self.expires_in,
        )
        return PresignedUpload(
            upload_url=url,
            key=key,
            public_url=self.public_url(key),
            content_type=content_type,
            expires_in=self.expires_in,
        )


@lru_cache(maxsize=1)
def _build_presigner() -> S3Presigner:
    return S3Presigner(
        bucket=settings.s3_bucket,
        region=settings.aws_region,
        access_key_id=settings.aws_access_key_id,
        secret_access_key=settings.aws_secret_access_key.get_secret_value(),
        public_base_url=settings.s3_public_base_url,
        expires_in=settings.upload_url_expires_seconds,
    )


def get_presigner() -> S3Presigner:
    """FastAPI dependency: 503 when S3 is not configured."""
    if not settings.s3_configured:
        raise HTTPException(status_code=503, detail="File uploads are not configured")
    return _build_presigner()
