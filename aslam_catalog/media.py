from __future__ import annotations

import os
from pathlib import Path

from aslam_catalog.errors import InvalidContent, SizeExceeded

DEFAULT_MEDIA_ROOT = "uploads"
DEFAULT_MEDIA_URL = "/media"
DEFAULT_PUBLIC_BASE_URL = "http://127.0.0.1:8000"

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
MAX_IMAGE_BYTES = 5 * 1024 * 1024

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xFF\xD8\xFF"
RIFF_SIGNATURE = b"RIFF"
WEBP_SIGNATURE = b"WEBP"


def media_root() -> Path:
    root = os.getenv("MEDIA_ROOT", DEFAULT_MEDIA_ROOT)
    return Path(root).resolve()


def media_url() -> str:
    return os.getenv("MEDIA_URL", DEFAULT_MEDIA_URL).rstrip("/")


def public_base_url() -> str:
    base = os.getenv("PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL)
    return base.rstrip("/")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def build_public_url(relative_path: str) -> str:
    rel = relative_path.lstrip("/")
    return f"{public_base_url()}{media_url()}/{rel}"


def resolve_media_path(key: str) -> Path | None:
    """Caminho local da chave, ou None se ela escapar de MEDIA_ROOT."""
    rel = (key or "").lstrip("/")
    if not rel:
        return None
    root_resolved = media_root()
    try:
        resolved = (root_resolved / rel).resolve()
    except OSError:
        return None
    if root_resolved in resolved.parents:
        return resolved
    return None


def detect_image_type(contents: bytes) -> str | None:
    if contents.startswith(PNG_SIGNATURE):
        return "image/png"
    if contents.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    if contents.startswith(RIFF_SIGNATURE) and contents[8:12] == WEBP_SIGNATURE:
        return "image/webp"
    return None


def validate_image(contents: bytes) -> tuple[str, str]:
    """Returns (content_type, extension) for an accepted image payload."""
    if not contents:
        raise InvalidContent("Empty image file")
    content_type = detect_image_type(contents)
    if content_type is None:
        raise InvalidContent("Invalid image file (allowed: JPEG, PNG, WebP)")
    if len(contents) > MAX_IMAGE_BYTES:
        raise SizeExceeded("Image too large (max 5MB)")
    return content_type, ALLOWED_IMAGE_TYPES[content_type]
