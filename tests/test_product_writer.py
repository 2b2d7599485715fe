from decimal import Decimal

import pytest

from aslam_catalog import models
from aslam_catalog.errors import Conflict, InvalidContent, NotFound, StoreUnavailable, TransactionError, ValidationError
from aslam_catalog.services.product_writer import ProductDraft, ProductWriter
from aslam_catalog.services.variant_reconciler import VariantDraft
from conftest import JPEG_BYTES, PNG_BYTES


def draft(code="BRK-001", title="Kertas Bouquet Premium", base_price="50000", **kwargs) -> ProductDraft:
    return ProductDraft(code=code, title=title, base_price=Decimal(base_price), **kwargs)


@pytest.fixture
def writer(db, media_store):
    return ProductWriter(db, media_store)


def product_count(db) -> int:
    return db.query(models.Product).count()


def variant_count(db) -> int:
    return db.query(models.ProductVariant).count()


# --- create ---


def test_create_product_with_variants(writer, db, make_category):
    category = make_category()
    product = writer.create(
        draft(
            category_id=category.id,
            variants=[
                VariantDraft("Gold", Decimal("0")),
                VariantDraft("Silver", Decimal("-5000")),
            ],
        )
    )

    assert product.id > 0
    assert product.code == "BRK-001"
    assert product.category.slug == "kertas-bouquet"
    prices = {variant.color: variant.final_price for variant in product.variants}
    assert prices == {"Gold": Decimal("50000"), "Silver": Decimal("45000")}
    assert product_count(db) == 1
    assert variant_count(db) == 2


def test_create_strips_fields_and_uploads_images(writer, media_store):
    product = writer.create(
        draft(
            code="  BRK-002 ",
            title="  Pita Satin Merah  ",
            description="   ",
            variants=[VariantDraft("Merah", photo=JPEG_BYTES)],
        ),
        main_photo=PNG_BYTES,
    )

    assert product.code == "BRK-002"
    assert product.title == "Pita Satin Merah"
    assert product.description is None
    assert product.main_photo_id.startswith("products/brk-002/")
    assert product.main_photo_url == f"https://cdn.test/{product.main_photo_id}"
    assert product.variants[0].photo_id.startswith(f"variants/{product.id}/")
    assert len(media_store.uploads) == 2
    assert media_store.deleted == []


def test_create_with_short_title_writes_nothing(writer, db, media_store):
    with pytest.raises(ValidationError):
        writer.create(draft(title="ABCD"), main_photo=PNG_BYTES)

    assert product_count(db) == 0
    assert media_store.uploads == []


@pytest.mark.parametrize("price", ["0", "-1", "100000000.00"])
def test_create_rejects_price_out_of_range(writer, db, price):
    with pytest.raises(ValidationError):
        writer.create(draft(base_price=price))
    assert product_count(db) == 0


def test_create_rejects_blank_variant_color_before_upload(writer, db, media_store):
    with pytest.raises(ValidationError):
        writer.create(draft(variants=[VariantDraft("Gold"), VariantDraft("  ")]), main_photo=PNG_BYTES)

    assert product_count(db) == 0
    assert media_store.uploads == []


def test_create_with_unknown_category(writer, db):
    with pytest.raises(NotFound):
        writer.create(draft(category_id=999))
    assert product_count(db) == 0


def test_create_with_duplicate_code_uploads_nothing(writer, db, media_store, make_product):
    make_product("BRK-001")

    with pytest.raises(Conflict):
        writer.create(draft(), main_photo=PNG_BYTES)

    assert product_count(db) == 1
    assert media_store.uploads == []


def test_create_duplicate_code_race_compensates_uploaded_image(writer, db, media_store, monkeypatch):
    # simula outra escrita passando entre a checagem e o insert
    monkeypatch.setattr(writer, "_ensure_code_available", lambda code, exclude_id=None: None)
    db.add(models.Product(code="BRK-001", title="Outro produto", base_price=Decimal("10")))
    db.commit()

    with pytest.raises(Conflict):
        writer.create(draft(), main_photo=PNG_BYTES)

    assert product_count(db) == 1
    assert media_store.deleted == media_store.uploads
    assert len(media_store.deleted) == 1


def test_create_with_main_upload_failure_leaves_no_product(writer, db, media_store):
    media_store.fail_upload_at = 1

    with pytest.raises(StoreUnavailable):
        writer.create(draft(variants=[VariantDraft("Gold")]), main_photo=PNG_BYTES)

    assert db.query(models.Product).filter(models.Product.code == "BRK-001").count() == 0


def test_create_with_invalid_main_image(writer, db):
    with pytest.raises(InvalidContent):
        writer.create(draft(), main_photo=b"definitely not an image")
    assert product_count(db) == 0


def test_create_with_variant_upload_failure_rolls_everything_back(writer, db, media_store):
    media_store.fail_upload_at = 3

    with pytest.raises(StoreUnavailable):
        writer.create(
            draft(variants=[VariantDraft("Gold", photo=PNG_BYTES), VariantDraft("Silver", photo=PNG_BYTES)]),
            main_photo=PNG_BYTES,
        )

    assert product_count(db) == 0
    assert variant_count(db) == 0
    assert sorted(media_store.deleted) == sorted(media_store.uploads)
    assert len(media_store.uploads) == 2


def test_create_with_variant_commit_failure_removes_product_and_images(writer, db, media_store, fail_commit):
    fail_commit(2)

    with pytest.raises(TransactionError):
        writer.create(draft(variants=[VariantDraft("Gold", photo=PNG_BYTES)]), main_photo=PNG_BYTES)

    assert product_count(db) == 0
    assert variant_count(db) == 0
    assert sorted(media_store.deleted) == sorted(media_store.uploads)


# --- update ---


def test_update_keeps_image_of_resubmitted_color(writer, db, media_store):
    created = writer.create(
        draft(variants=[VariantDraft("Gold", photo=PNG_BYTES), VariantDraft("Silver", photo=JPEG_BYTES)])
    )
    gold = next(v for v in created.variants if v.color == "Gold")
    gold_url, gold_id = gold.photo_url, gold.photo_id

    updated = writer.update(
        created.id,
        draft(variants=[VariantDraft("Gold", Decimal("250")), VariantDraft("Silver")]),
    )

    new_gold = next(v for v in updated.variants if v.color == "Gold")
    assert (new_gold.photo_url, new_gold.photo_id) == (gold_url, gold_id)
    assert new_gold.price_adjustment == Decimal("250")
    assert media_store.deleted == []


def test_update_dropping_color_deletes_its_image(writer, db, media_store):
    created = writer.create(
        draft(variants=[VariantDraft("Gold"), VariantDraft("Silver", Decimal("-5000"), photo=PNG_BYTES)])
    )
    silver_handle = next(v.photo_id for v in created.variants if v.color == "Silver")

    updated = writer.update(created.id, draft(variants=[VariantDraft("Gold")]))

    assert [v.color for v in updated.variants] == ["Gold"]
    assert variant_count(db) == 1
    assert media_store.deleted == [silver_handle]


def test_update_replacing_main_image_deletes_old_one_after_commit(writer, media_store):
    created = writer.create(draft(), main_photo=PNG_BYTES)
    old_handle = created.main_photo_id

    updated = writer.update(created.id, draft(title="Kertas Bouquet Deluxe"), main_photo=JPEG_BYTES)

    assert updated.title == "Kertas Bouquet Deluxe"
    assert updated.main_photo_id != old_handle
    assert updated.main_photo_id.startswith(f"products/{created.id}/")
    assert media_store.deleted == [old_handle]


def test_update_without_new_main_image_keeps_it(writer, media_store):
    created = writer.create(draft(), main_photo=PNG_BYTES)

    updated = writer.update(created.id, draft(is_sold=True))

    assert updated.is_sold is True
    assert updated.main_photo_id == created.main_photo_id
    assert media_store.deleted == []


def test_update_unknown_product(writer):
    with pytest.raises(NotFound):
        writer.update(404, draft())


def test_update_to_code_of_another_product(writer, make_product):
    make_product("BRK-009")
    created = writer.create(draft())

    with pytest.raises(Conflict):
        writer.update(created.id, draft(code="BRK-009"))


def test_update_cleanup_failure_does_not_fail_the_update(writer, db, media_store):
    created = writer.create(draft(variants=[VariantDraft("Silver", photo=PNG_BYTES)]))
    media_store.fail_deletes = True

    updated = writer.update(created.id, draft(variants=[VariantDraft("Gold")]))

    assert [v.color for v in updated.variants] == ["Gold"]


def test_update_variant_upload_failure_restores_product(writer, db, media_store):
    created = writer.create(draft(variants=[VariantDraft("Gold", photo=PNG_BYTES)]), main_photo=PNG_BYTES)
    original_main = created.main_photo_id
    gold_handle = created.variants[0].photo_id
    media_store.fail_upload_at = 4

    with pytest.raises(StoreUnavailable):
        writer.update(
            created.id,
            draft(title="Judul baru produk", variants=[VariantDraft("Silver", photo=PNG_BYTES)]),
            main_photo=JPEG_BYTES,
        )

    db.expire_all()
    product = db.get(models.Product, created.id)
    assert product.title == "Kertas Bouquet Premium"
    assert product.main_photo_id == original_main
    assert [(v.color, v.photo_id) for v in product.variants] == [("Gold", gold_handle)]
    # apenas o novo upload principal foi compensado
    assert media_store.deleted == [media_store.uploads[2]]


# --- delete ---


def test_delete_removes_rows_and_images(writer, db, media_store):
    created = writer.create(
        draft(variants=[VariantDraft("Gold", photo=PNG_BYTES), VariantDraft("Silver")]),
        main_photo=PNG_BYTES,
    )

    writer.delete(created.id)

    assert product_count(db) == 0
    assert variant_count(db) == 0
    assert sorted(media_store.deleted) == sorted(media_store.uploads)


def test_delete_with_failing_media_store_still_deletes_rows(writer, db, media_store):
    created = writer.create(draft(), main_photo=PNG_BYTES)
    media_store.fail_deletes = True

    writer.delete(created.id)

    assert product_count(db) == 0


def test_delete_commit_failure_keeps_images(writer, db, media_store, fail_commit):
    created = writer.create(draft(), main_photo=PNG_BYTES)
    fail_commit(1)

    with pytest.raises(TransactionError):
        writer.delete(created.id)

    assert media_store.deleted == []
    assert product_count(db) == 1


def test_delete_unknown_product(writer):
    with pytest.raises(NotFound):
        writer.delete(1234)


# --- variant limits ---


def test_create_rejects_overlong_variant_color_before_any_write(writer, db, media_store):
    with pytest.raises(ValidationError):
        writer.create(draft(variants=[VariantDraft("X" * 80)]), main_photo=PNG_BYTES)

    assert product_count(db) == 0
    assert media_store.uploads == []


@pytest.mark.parametrize("adjustment", ["100000000", "-100000000", "NaN"])
def test_create_rejects_price_adjustment_out_of_range(writer, db, media_store, adjustment):
    with pytest.raises(ValidationError):
        writer.create(draft(variants=[VariantDraft("Gold", Decimal(adjustment))]), main_photo=PNG_BYTES)

    assert product_count(db) == 0
    assert media_store.uploads == []


def test_create_accepts_color_at_column_limit(writer):
    product = writer.create(draft(variants=[VariantDraft("X" * 50, Decimal("-99999999.99"))]))
    assert product.variants[0].color == "X" * 50


def test_update_rejects_overlong_variant_color_before_upload(writer, db, media_store):
    created = writer.create(draft(variants=[VariantDraft("Gold")]))

    with pytest.raises(ValidationError):
        writer.update(
            created.id,
            draft(title="Judul baru produk", variants=[VariantDraft("Gold"), VariantDraft("Y" * 51, photo=PNG_BYTES)]),
            main_photo=JPEG_BYTES,
        )

    assert media_store.uploads == []
    db.expire_all()
    product = db.get(models.Product, created.id)
    assert product.title == "Kertas Bouquet Premium"
    assert [v.color for v in product.variants] == ["Gold"]


# --- update: falha ao trocar variantes ---


def test_update_variant_commit_failure_restores_fields_and_drops_new_uploads(writer, db, media_store, fail_commit):
    created = writer.create(draft(variants=[VariantDraft("Gold", photo=PNG_BYTES)]), main_photo=PNG_BYTES)
    original_main = created.main_photo_id
    gold_handle = created.variants[0].photo_id
    fail_commit(2)

    with pytest.raises(TransactionError):
        writer.update(
            created.id,
            draft(title="Judul baru produk", variants=[VariantDraft("Silver", photo=JPEG_BYTES)]),
            main_photo=JPEG_BYTES,
        )

    new_main, new_silver = media_store.uploads[2], media_store.uploads[3]
    assert media_store.deleted == [new_silver, new_main]
    assert original_main not in media_store.deleted
    assert gold_handle not in media_store.deleted

    db.expire_all()
    product = db.get(models.Product, created.id)
    assert product.title == "Kertas Bouquet Premium"
    assert product.main_photo_id == original_main
    assert [(v.color, v.photo_id) for v in product.variants] == [("Gold", gold_handle)]
