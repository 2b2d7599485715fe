import re
from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from starlette.datastructures import FormData, UploadFile

from aslam_catalog import schemas
from aslam_catalog.auth.dependencies import require_admin
from aslam_catalog.db import get_db
from aslam_catalog.errors import ValidationError
from aslam_catalog.observability import request_logger
from aslam_catalog.routers.catalog import page_response, product_filters_from_query
from aslam_catalog.services import catalog_admin, catalog_query
from aslam_catalog.services.product_writer import ProductDraft, ProductWriter
from aslam_catalog.services.variant_reconciler import VariantDraft
from aslam_catalog.storage import MediaStore, get_media_store

router = APIRouter(prefix="/admin", tags=["admin-catalog"], dependencies=[Depends(require_admin)])

INDEXED_VARIANT_KEY = re.compile(r"^variants\[(\d+)\]\[(\w+)\]$")
TRUE_VALUES = {"true", "on", "1"}


def get_product_writer(
    request: Request,
    db: Session = Depends(get_db),
    media_store: MediaStore = Depends(get_media_store),
) -> ProductWriter:
    return ProductWriter(db, media_store, logger=request_logger(request, "aslam_catalog.services.product_writer"))


async def _read_upload(value) -> bytes | None:
    if not isinstance(value, UploadFile) or not value.filename:
        return None
    contents = await value.read()
    return contents or None


def _form_text(form: FormData, key: str) -> str:
    value = form.get(key)
    return value.strip() if isinstance(value, str) else ""


def _parse_adjustment(value: str | None) -> Decimal:
    try:
        adjustment = Decimal((value or "").strip())
    except InvalidOperation:
        return Decimal("0")
    return adjustment if adjustment.is_finite() else Decimal("0")


def _is_true(value) -> bool:
    return isinstance(value, str) and value.strip().lower() in TRUE_VALUES


async def variants_from_form(form: FormData) -> list[VariantDraft]:
    """
    O formulario manda variantes em dois formatos: variants[][campo] (linhas
    ja existentes) e variants[N][campo] (linhas adicionadas via JS). Primeiro
    os nao indexados, depois os indexados em ordem crescente de N; cores
    vazias sao descartadas.
    """
    variants: list[VariantDraft] = []

    colors = form.getlist("variants[][color]")
    adjustments = form.getlist("variants[][price_adjustment]")
    sales = form.getlist("variants[][is_sale]")
    photos = form.getlist("variants[][photo]")
    for i, color in enumerate(colors):
        color = color.strip() if isinstance(color, str) else ""
        if not color:
            continue
        variants.append(
            VariantDraft(
                color=color,
                price_adjustment=_parse_adjustment(adjustments[i] if i < len(adjustments) else None),
                is_sale=_is_true(sales[i]) if i < len(sales) else False,
                photo=await _read_upload(photos[i]) if i < len(photos) else None,
            )
        )

    indexed: dict[int, dict] = {}
    for key, value in form.multi_items():
        match = INDEXED_VARIANT_KEY.match(key)
        if not match:
            continue
        indexed.setdefault(int(match.group(1)), {})[match.group(2)] = value
    for index in sorted(indexed):
        data = indexed[index]
        color = data.get("color")
        color = color.strip() if isinstance(color, str) else ""
        if not color:
            continue
        variants.append(
            VariantDraft(
                color=color,
                price_adjustment=_parse_adjustment(data.get("price_adjustment")),
                is_sale=_is_true(data.get("is_sale")),
                photo=await _read_upload(data.get("photo")),
            )
        )
    return variants


async def product_draft_from_form(form: FormData) -> ProductDraft:
    raw_price = _form_text(form, "base_price")
    if not raw_price:
        raise ValidationError("base price is required")
    try:
        base_price = Decimal(raw_price)
    except InvalidOperation as exc:
        raise ValidationError("base price must be a number") from exc

    category_id = None
    raw_category = _form_text(form, "category_id")
    if raw_category:
        try:
            category_id = int(raw_category)
        except ValueError as exc:
            raise ValidationError("invalid category_id") from exc

    return ProductDraft(
        code=_form_text(form, "code"),
        title=_form_text(form, "title"),
        description=_form_text(form, "description") or None,
        base_price=base_price,
        is_sold=_is_true(form.get("is_sold")),
        category_id=category_id,
        variants=await variants_from_form(form),
    )


# --- Products ---


@router.get("/products", response_model=schemas.ProductListOut)
def list_products_admin(request: Request, db: Session = Depends(get_db)):
    filters = product_filters_from_query(request.query_params, catalog_query.ADMIN_PAGE_SIZE)
    return page_response(catalog_query.list_products(db, filters))


@router.post("/products", response_model=schemas.ProductOut, status_code=201)
async def create_product(request: Request, writer: ProductWriter = Depends(get_product_writer)):
    form = await request.form()
    draft = await product_draft_from_form(form)
    main_photo = await _read_upload(form.get("main_photo"))
    return await run_in_threadpool(writer.create, draft, main_photo)


@router.put("/products/{product_id}", response_model=schemas.ProductOut)
async def update_product(
    product_id: int,
    request: Request,
    writer: ProductWriter = Depends(get_product_writer),
):
    form = await request.form()
    draft = await product_draft_from_form(form)
    main_photo = await _read_upload(form.get("main_photo"))
    return await run_in_threadpool(writer.update, product_id, draft, main_photo)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, writer: ProductWriter = Depends(get_product_writer)):
    writer.delete(product_id)
    return Response(status_code=204)


@router.get("/stats", response_model=schemas.CatalogStatsOut)
def catalog_stats(db: Session = Depends(get_db)):
    return catalog_admin.catalog_stats(db)


# --- Categories ---


@router.post("/categories", response_model=schemas.CategoryOut, status_code=201)
def create_category(payload: schemas.CategoryCreate, db: Session = Depends(get_db)):
    return catalog_admin.create_category(db, payload.name)


@router.put("/categories/{category_id}", response_model=schemas.CategoryOut)
def update_category(category_id: int, payload: schemas.CategoryUpdate, db: Session = Depends(get_db)):
    return catalog_admin.update_category(db, category_id, payload.name)


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db)):
    catalog_admin.delete_category(db, category_id)
    return Response(status_code=204)
