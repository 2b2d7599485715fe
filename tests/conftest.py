import os
import tempfile
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_SECRET"] = "test-secret-key-with-at-least-32-characters"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="aslam-media-")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from aslam_catalog import models
from aslam_catalog.db import Base, get_db
from aslam_catalog.domain.catalog.slug import generate_slug
from aslam_catalog.errors import StoreUnavailable
from aslam_catalog.media import validate_image
from aslam_catalog.security import create_access_token, hash_password
from aslam_catalog.storage import MediaRef, get_media_store

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


class FakeMediaStore:
    """Media store em memoria; registra uploads e deletes e permite injetar falhas."""

    def __init__(self) -> None:
        self.stored: dict[str, bytes] = {}
        self.uploads: list[str] = []
        self.deleted: list[str] = []
        self.fail_upload_at: int | None = None
        self.fail_deletes = False

    def upload(self, contents: bytes, target: str) -> MediaRef:
        validate_image(contents)
        if self.fail_upload_at is not None and len(self.uploads) + 1 >= self.fail_upload_at:
            raise StoreUnavailable("media store is down")
        handle = f"{target}/{len(self.uploads) + 1}"
        self.uploads.append(handle)
        self.stored[handle] = contents
        return MediaRef(url=f"https://cdn.test/{handle}", handle=handle)

    def delete(self, handle: str | None) -> None:
        if not handle:
            return
        if self.fail_deletes:
            raise StoreUnavailable("media store is down")
        self.deleted.append(handle)
        self.stored.pop(handle, None)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def media_store():
    return FakeMediaStore()


@pytest.fixture
def fail_commit(db, monkeypatch):
    """fail_commit(n): o n-esimo commit a partir de agora levanta OperationalError."""

    def arm(call_number: int) -> None:
        original = db.commit
        calls = {"count": 0}

        def commit():
            calls["count"] += 1
            if calls["count"] == call_number:
                raise OperationalError("COMMIT", {}, Exception("database is gone"))
            return original()

        monkeypatch.setattr(db, "commit", commit)

    return arm


@pytest.fixture
def make_category(db):
    def make(name: str = "Kertas Bouquet") -> models.Category:
        category = models.Category(name=name, slug=generate_slug(name))
        db.add(category)
        db.commit()
        return category

    return make


@pytest.fixture
def make_product(db):
    def make(
        code: str,
        title: str = "Produto de teste",
        base_price: str = "100.00",
        category: models.Category | None = None,
        is_sold: bool = False,
        variants: list[tuple[str, str, bool]] | None = None,
    ) -> models.Product:
        product = models.Product(
            code=code,
            title=title,
            base_price=Decimal(base_price),
            is_sold=is_sold,
            category_id=category.id if category else None,
        )
        for color, adjustment, is_sale in variants or []:
            product.variants.append(
                models.ProductVariant(color=color, price_adjustment=Decimal(adjustment), is_sale=is_sale)
            )
        db.add(product)
        db.commit()
        return product

    return make


@pytest.fixture
def admin(db):
    admin = models.Admin(username="admin", password_hash=hash_password("s3cret-pass"))
    db.add(admin)
    db.commit()
    return admin


@pytest.fixture
def admin_headers(admin):
    token = create_access_token({"sub": str(admin.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, media_store):
    from aslam_catalog.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_store] = lambda: media_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
