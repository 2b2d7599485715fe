"""
Orquestrador de escrita de produtos.

Produto + variantes vivem no banco relacional; as fotos vivem no media store,
que nao participa da transacao. Cada operacao e uma saga: todo efeito fora
da transacao registra uma compensacao, executada em ordem reversa se um passo
posterior falhar. Limpezas de imagens apos o commit sao best-effort e nunca
falham a operacao.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from functools import partial

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from aslam_catalog import models
from aslam_catalog.domain.catalog.slug import generate_slug
from aslam_catalog.errors import Conflict, NotFound, TransactionError, ValidationError
from aslam_catalog.services.catalog_query import get_product
from aslam_catalog.services.saga import Saga
from aslam_catalog.services.variant_reconciler import (
    VariantDraft,
    VariantPlan,
    reconcile_variants,
    snapshot_variants,
)
from aslam_catalog.storage import MediaRef, MediaStore, build_media_key

module_logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 200
CODE_MAX_LENGTH = 50
MIN_BASE_PRICE = Decimal("0.01")
MAX_BASE_PRICE = Decimal("99999999.99")
VARIANT_COLOR_MAX_LENGTH = 50
MAX_PRICE_ADJUSTMENT = Decimal("99999999.99")


@dataclass
class ProductDraft:
    code: str
    title: str
    base_price: Decimal
    description: str | None = None
    is_sold: bool = False
    category_id: int | None = None
    variants: list[VariantDraft] = field(default_factory=list)


@dataclass(frozen=True)
class _ProductFields:
    code: str
    title: str
    description: str | None
    base_price: Decimal
    is_sold: bool
    category_id: int | None
    main_photo_url: str | None
    main_photo_id: str | None

    @classmethod
    def of(cls, product: models.Product) -> "_ProductFields":
        return cls(
            code=product.code,
            title=product.title,
            description=product.description,
            base_price=product.base_price,
            is_sold=product.is_sold,
            category_id=product.category_id,
            main_photo_url=product.main_photo_url,
            main_photo_id=product.main_photo_id,
        )

    def apply(self, product: models.Product) -> None:
        product.code = self.code
        product.title = self.title
        product.description = self.description
        product.base_price = self.base_price
        product.is_sold = self.is_sold
        product.category_id = self.category_id
        product.main_photo_url = self.main_photo_url
        product.main_photo_id = self.main_photo_id


def validate_product_draft(draft: ProductDraft) -> ProductDraft:
    code = (draft.code or "").strip()
    if not code:
        raise ValidationError("product code is required")
    if len(code) > CODE_MAX_LENGTH:
        raise ValidationError(f"product code must not exceed {CODE_MAX_LENGTH} characters")

    title = (draft.title or "").strip()
    if not title:
        raise ValidationError("product title is required")
    if len(title) < TITLE_MIN_LENGTH:
        raise ValidationError(f"product title must be at least {TITLE_MIN_LENGTH} characters")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"product title must not exceed {TITLE_MAX_LENGTH} characters")

    if draft.base_price is None:
        raise ValidationError("base price is required")
    try:
        base_price = Decimal(str(draft.base_price))
    except InvalidOperation as exc:
        raise ValidationError("base price must be a number") from exc
    if not base_price.is_finite():
        raise ValidationError("base price must be a number")
    if base_price < MIN_BASE_PRICE:
        raise ValidationError("base price must be at least 0.01")
    if base_price > MAX_BASE_PRICE:
        raise ValidationError("base price must not exceed 99,999,999.99")

    description = (draft.description or "").strip() or None
    return replace(draft, code=code, title=title, base_price=base_price, description=description)


def validate_variant_drafts(variants: list[VariantDraft], allow_blank: bool = False) -> None:
    """Checa cor e ajuste contra os limites das colunas antes de qualquer upload."""
    for variant in variants:
        color = (variant.color or "").strip()
        if not color:
            if allow_blank:
                continue
            raise ValidationError("variant color is required")
        if len(color) > VARIANT_COLOR_MAX_LENGTH:
            raise ValidationError(f"variant color must not exceed {VARIANT_COLOR_MAX_LENGTH} characters")
        try:
            adjustment = Decimal(str(variant.price_adjustment or 0))
        except InvalidOperation as exc:
            raise ValidationError("variant price adjustment must be a number") from exc
        if not adjustment.is_finite() or abs(adjustment) > MAX_PRICE_ADJUSTMENT:
            raise ValidationError("variant price adjustment must be between -99,999,999.99 and 99,999,999.99")


class ProductWriter:
    def __init__(
        self,
        db: Session,
        media_store: MediaStore,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.db = db
        self.media_store = media_store
        self.logger = logger or module_logger

    # --- API publica ---

    def create(self, draft: ProductDraft, main_photo: bytes | None = None) -> models.Product:
        draft = validate_product_draft(draft)
        validate_variant_drafts(draft.variants)
        self._ensure_category_exists(draft.category_id)
        self._ensure_code_available(draft.code)

        saga = Saga(f"create product {draft.code}", self.logger)
        with saga:
            main_ref: MediaRef | None = None
            if main_photo:
                main_ref = self._upload(saga, main_photo, build_media_key("products", generate_slug(draft.code) or "product"))

            product = models.Product(
                code=draft.code,
                title=draft.title,
                description=draft.description,
                base_price=draft.base_price,
                is_sold=draft.is_sold,
                category_id=draft.category_id,
                main_photo_url=main_ref.url if main_ref else None,
                main_photo_id=main_ref.handle if main_ref else None,
            )
            self.db.add(product)
            self._commit("create product", conflict=f"product with code {draft.code} already exists")
            product_id = product.id
            saga.add_compensation(f"delete product row {product_id}", partial(self._delete_product_row, product_id))

            plan = self._reconcile(saga, product_id, [], draft.variants)
            for row in plan.rows:
                self.db.add(self._variant_row(product_id, row))
            self._commit("create variants")
            self._schedule_deletes(saga, plan.orphan_handles)
        saga.complete()

        self.logger.info("Product created id=%s code=%s variants=%s", product_id, draft.code, len(plan.rows))
        return get_product(self.db, product_id)

    def update(
        self,
        product_id: int,
        draft: ProductDraft,
        main_photo: bytes | None = None,
    ) -> models.Product:
        product = get_product(self.db, product_id)
        draft = validate_product_draft(draft)
        validate_variant_drafts(draft.variants, allow_blank=True)
        self._ensure_category_exists(draft.category_id)
        if draft.code != product.code:
            self._ensure_code_available(draft.code, exclude_id=product.id)

        previous = _ProductFields.of(product)
        existing_variants = snapshot_variants(product.variants)

        saga = Saga(f"update product {product_id}", self.logger)
        with saga:
            main_url, main_id = previous.main_photo_url, previous.main_photo_id
            if main_photo:
                ref = self._upload(saga, main_photo, build_media_key("products", str(product_id)))
                main_url, main_id = ref.url, ref.handle

            _ProductFields(
                code=draft.code,
                title=draft.title,
                description=draft.description,
                base_price=draft.base_price,
                is_sold=draft.is_sold,
                category_id=draft.category_id,
                main_photo_url=main_url,
                main_photo_id=main_id,
            ).apply(product)
            self._commit("update product", conflict=f"product with code {draft.code} already exists")
            saga.add_compensation(
                f"restore product fields {product_id}",
                partial(self._restore_product_fields, product_id, previous),
            )

            plan = self._reconcile(saga, product_id, existing_variants, draft.variants)
            self._replace_variants(product_id, plan)

            if main_photo and previous.main_photo_id and previous.main_photo_id != main_id:
                saga.after_commit(
                    f"delete replaced main image {previous.main_photo_id}",
                    partial(self.media_store.delete, previous.main_photo_id),
                )
            self._schedule_deletes(saga, plan.orphan_handles)
        saga.complete()

        self.logger.info(
            "Product updated id=%s variants=%s preserved_photos=%s orphaned_photos=%s",
            product_id,
            len(plan.rows),
            len(plan.preserved_handles),
            len(plan.orphan_handles),
        )
        return get_product(self.db, product_id)

    def delete(self, product_id: int) -> None:
        product = get_product(self.db, product_id)
        handles = [product.main_photo_id] + [variant.photo_id for variant in product.variants]

        self.db.delete(product)
        self._commit("delete product")

        saga = Saga(f"delete product {product_id}", self.logger)
        self._schedule_deletes(saga, [handle for handle in handles if handle])
        saga.complete()
        self.logger.info("Product deleted id=%s", product_id)

    # --- passos internos ---

    def _ensure_category_exists(self, category_id: int | None) -> None:
        if category_id is None:
            return
        exists = self.db.query(models.Category.id).filter(models.Category.id == category_id).first()
        if not exists:
            raise NotFound("Category not found")

    def _ensure_code_available(self, code: str, exclude_id: int | None = None) -> None:
        query = self.db.query(models.Product.id).filter(models.Product.code == code)
        if exclude_id is not None:
            query = query.filter(models.Product.id != exclude_id)
        if query.first():
            raise Conflict(f"product with code {code} already exists")

    def _upload(self, saga: Saga, contents: bytes, target: str) -> MediaRef:
        ref = self.media_store.upload(contents, target)
        saga.add_compensation(f"delete uploaded image {ref.handle}", partial(self.media_store.delete, ref.handle))
        return ref

    def _reconcile(self, saga: Saga, product_id: int, existing, submitted: list[VariantDraft]) -> VariantPlan:
        target = build_media_key("variants", str(product_id))
        def upload(contents: bytes) -> MediaRef:
            return self._upload(saga, contents, target)

        return reconcile_variants(existing, submitted, upload)

    def _replace_variants(self, product_id: int, plan: VariantPlan) -> None:
        try:
            for variant in self.db.query(models.ProductVariant).filter(
                models.ProductVariant.product_id == product_id
            ):
                self.db.delete(variant)
            self.db.flush()
            for row in plan.rows:
                self.db.add(self._variant_row(product_id, row))
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransactionError("failed to replace variants") from exc
        self._commit("replace variants")

    @staticmethod
    def _variant_row(product_id: int, row) -> models.ProductVariant:
        return models.ProductVariant(
            product_id=product_id,
            color=row.color,
            price_adjustment=row.price_adjustment,
            is_sale=row.is_sale,
            photo_url=row.photo_url,
            photo_id=row.photo_id,
        )

    def _schedule_deletes(self, saga: Saga, handles: list[str]) -> None:
        for handle in handles:
            saga.after_commit(f"delete image {handle}", partial(self.media_store.delete, handle))

    def _commit(self, action: str, conflict: str | None = None) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if conflict:
                raise Conflict(conflict) from exc
            raise TransactionError(f"failed to {action}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransactionError(f"failed to {action}") from exc

    def _delete_product_row(self, product_id: int) -> None:
        try:
            self.db.query(models.Product).filter(models.Product.id == product_id).delete(
                synchronize_session="fetch"
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _restore_product_fields(self, product_id: int, fields: _ProductFields) -> None:
        try:
            product = self.db.get(models.Product, product_id)
            if product is None:
                return
            fields.apply(product)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
