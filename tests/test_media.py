import pytest

from aslam_catalog import media
from aslam_catalog.errors import InvalidContent, SizeExceeded
from aslam_catalog.storage import LocalStorage, MediaStore, S3Storage, build_media_key
from conftest import JPEG_BYTES, PNG_BYTES

WEBP_BYTES = b"RIFF\x00\x00\x00\x00WEBPVP8 " + b"\x00" * 16


def test_validate_image_detects_supported_types():
    assert media.validate_image(PNG_BYTES) == ("image/png", "png")
    assert media.validate_image(JPEG_BYTES) == ("image/jpeg", "jpg")
    assert media.validate_image(WEBP_BYTES) == ("image/webp", "webp")


def test_validate_image_rejects_empty_and_unknown_payloads():
    with pytest.raises(InvalidContent):
        media.validate_image(b"")
    with pytest.raises(InvalidContent):
        media.validate_image(b"GIF89a" + b"\x00" * 10)


def test_validate_image_rejects_oversized_payload():
    with pytest.raises(SizeExceeded):
        media.validate_image(PNG_BYTES + b"\x00" * media.MAX_IMAGE_BYTES)


def test_resolve_media_path_refuses_keys_outside_root(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path))
    assert media.resolve_media_path("products/a.png") == tmp_path.resolve() / "products" / "a.png"
    assert media.resolve_media_path("../escape.png") is None
    assert media.resolve_media_path("") is None


def test_build_media_key_skips_empty_parts():
    assert build_media_key("variants", "", "/12/", "x.png") == "variants/12/x.png"


def test_media_store_uploads_and_deletes_on_local_storage(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path))
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://catalog.test")
    store = MediaStore(LocalStorage())

    ref = store.upload(PNG_BYTES, "products/brk-001")

    assert ref.handle.startswith("products/brk-001/")
    assert ref.handle.endswith(".png")
    assert ref.url == f"http://catalog.test/media/{ref.handle}"
    stored = tmp_path / ref.handle
    assert stored.read_bytes() == PNG_BYTES

    store.delete(ref.handle)
    assert not stored.exists()
    # apagar de novo nao falha
    store.delete(ref.handle)
    store.delete(None)


def test_media_store_generates_distinct_handles(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path))
    store = MediaStore(LocalStorage())
    first = store.upload(JPEG_BYTES, "variants/1")
    second = store.upload(JPEG_BYTES, "variants/1")
    assert first.handle != second.handle


def test_media_store_rejects_invalid_content_before_writing(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path))
    store = MediaStore(LocalStorage())
    with pytest.raises(InvalidContent):
        store.upload(b"not an image", "products/x")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"public_base_url": "https://cdn.example.com/"}, "https://cdn.example.com/products/a.png"),
        ({"endpoint_url": "https://minio.local"}, "https://minio.local/catalog/products/a.png"),
        ({"region": "ap-southeast-1"}, "https://catalog.s3.ap-southeast-1.amazonaws.com/products/a.png"),
        ({}, "https://catalog.s3.amazonaws.com/products/a.png"),
    ],
)
def test_s3_public_url(kwargs, expected):
    options = {"region": None, "endpoint_url": None, "public_base_url": None, "acl": None}
    options.update(kwargs)
    storage = S3Storage(bucket="catalog", **options)
    assert storage._build_public_url("products/a.png") == expected
