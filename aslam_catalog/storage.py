from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from aslam_catalog.db import settings
from aslam_catalog.errors import StoreUnavailable
from aslam_catalog.media import build_public_url, ensure_dir, media_root, resolve_media_path, validate_image

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    def save(self, key: str, contents: bytes, content_type: str | None) -> str: ...
    def delete(self, key: str) -> None: ...


@dataclass(frozen=True)
class MediaRef:
    url: str
    handle: str


@dataclass(frozen=True)
class LocalStorage:
    def save(self, key: str, contents: bytes, content_type: str | None) -> str:
        dest_path = resolve_media_path(key)
        if dest_path is None:
            raise StoreUnavailable(f"Invalid media key: {key}")
        try:
            ensure_dir(dest_path.parent)
            dest_path.write_bytes(contents)
        except OSError as exc:
            raise StoreUnavailable(f"Failed to write media file: {exc}") from exc
        return build_public_url(dest_path.relative_to(media_root()).as_posix())

    def delete(self, key: str) -> None:
        old_path = resolve_media_path(key)
        if old_path is None:
            return
        try:
            old_path.unlink(missing_ok=True)
        except OSError as exc:
            raise StoreUnavailable(f"Failed to delete media file: {exc}") from exc


@dataclass(frozen=True)
class S3Storage:
    bucket: str
    region: str | None
    endpoint_url: str | None
    public_base_url: str | None
    acl: str | None
    timeout_seconds: float = 30.0

    def _client(self):
        options: dict = {
            "connect_timeout": self.timeout_seconds,
            "read_timeout": self.timeout_seconds,
            "retries": {"max_attempts": 2},
        }
        if self.endpoint_url:
            options["signature_version"] = "s3v4"
            options["s3"] = {
                "addressing_style": "path",
                "payload_signing_enabled": False,
            }
        return boto3.client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
            config=Config(**options),
        )

    def save(self, key: str, contents: bytes, content_type: str | None) -> str:
        extra: dict[str, int | str] = {"ContentLength": len(contents)}
        if content_type:
            extra["ContentType"] = content_type
        if self.acl:
            extra["ACL"] = self.acl
        try:
            self._client().put_object(Bucket=self.bucket, Key=key, Body=contents, **extra)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") != "MissingContentLength":
                raise StoreUnavailable(f"S3 upload failed: {exc}") from exc
            self._put_object_via_presigned_url(key, contents, content_type)
        except BotoCoreError as exc:
            raise StoreUnavailable(f"S3 upload failed: {exc}") from exc
        return self._build_public_url(key)

    def delete(self, key: str) -> None:
        # delete_object nao falha para chave inexistente
        try:
            self._client().delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StoreUnavailable(f"S3 delete failed: {exc}") from exc

    def _build_public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def _put_object_via_presigned_url(
        self,
        key: str,
        contents: bytes,
        content_type: str | None,
    ) -> None:
        params: dict[str, str] = {"Bucket": self.bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        try:
            url = self._client().generate_presigned_url(
                "put_object",
                Params=params,
                ExpiresIn=600,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StoreUnavailable(f"S3 presign failed: {exc}") from exc
        headers = {"Content-Length": str(len(contents))}
        if content_type:
            headers["Content-Type"] = content_type
        try:
            response = httpx.put(url, content=contents, headers=headers, timeout=self.timeout_seconds)
        except httpx.HTTPError as exc:
            raise StoreUnavailable(f"Presigned upload failed: {exc}") from exc
        if response.status_code >= 400:
            raise StoreUnavailable(f"Presigned upload failed with status {response.status_code}")


def build_media_key(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


@lru_cache(maxsize=1)
def get_storage_backend() -> StorageBackend:
    backend = os.getenv("STORAGE_BACKEND", "local").strip().lower()
    if backend == "s3":
        bucket = os.getenv("S3_BUCKET")
        if not bucket:
            raise RuntimeError("S3_BUCKET must be set when STORAGE_BACKEND=s3")
        return S3Storage(
            bucket=bucket,
            region=os.getenv("S3_REGION"),
            endpoint_url=os.getenv("S3_ENDPOINT_URL"),
            public_base_url=os.getenv("S3_PUBLIC_BASE_URL"),
            acl=os.getenv("S3_UPLOAD_ACL", "public-read"),
            timeout_seconds=settings.media_upload_timeout_seconds,
        )
    return LocalStorage()


def is_local_storage() -> bool:
    return isinstance(get_storage_backend(), LocalStorage)


class MediaStore:
    """
    Adaptador do media store: valida o conteudo, grava sob uma chave nova e
    devolve (url, handle). O handle e a propria chave e serve para o delete.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    def upload(self, contents: bytes, target: str) -> MediaRef:
        content_type, ext = validate_image(contents)
        key = build_media_key(target, f"{uuid.uuid4()}.{ext}")
        url = self.backend.save(key, contents, content_type)
        logger.info("Media uploaded key=%s size=%s", key, len(contents))
        return MediaRef(url=url, handle=key)

    def delete(self, handle: str | None) -> None:
        if not handle:
            return
        self.backend.delete(handle)
        logger.info("Media deleted key=%s", handle)


def get_media_store() -> MediaStore:
    return MediaStore(get_storage_backend())
