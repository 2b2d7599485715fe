from decimal import Decimal, InvalidOperation
from typing import Mapping

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from aslam_catalog import schemas
from aslam_catalog.db import get_db
from aslam_catalog.services import catalog_admin, catalog_query

router = APIRouter(tags=["catalog"])


def _parse_positive_int(value: str | None) -> int | None:
    try:
        parsed = int((value or "").strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _parse_price(value: str | None) -> Decimal | None:
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        price = Decimal(raw)
    except InvalidOperation:
        return None
    if not price.is_finite() or price < 0:
        return None
    return price


def _parse_flag(value: str | None) -> bool | None:
    raw = (value or "").strip().lower()
    if raw == "true":
        return True
    if raw == "false":
        return False
    return None


def product_filters_from_query(params: Mapping[str, str], default_page_size: int) -> catalog_query.ProductFilters:
    return catalog_query.ProductFilters(
        category_id=_parse_positive_int(params.get("category_id")),
        min_price=_parse_price(params.get("min_price")),
        max_price=_parse_price(params.get("max_price")),
        is_sale=_parse_flag(params.get("is_sale")),
        is_sold=_parse_flag(params.get("is_sold")),
        search=(params.get("q") or "").strip() or None,
        sort=catalog_query.normalize_sort(params.get("sort")),
        page=catalog_query.normalize_page(params.get("page")),
        page_size=catalog_query.normalize_page_size(params.get("page_size"), default=default_page_size),
    )


def page_response(result: catalog_query.ProductPage) -> dict:
    return {
        "products": result.products,
        "total": result.total,
        "page": result.page,
        "page_size": result.page_size,
        "total_pages": result.total_pages,
    }


@router.get("/products", response_model=schemas.ProductListOut)
def list_products(request: Request, db: Session = Depends(get_db)):
    filters = product_filters_from_query(request.query_params, catalog_query.PUBLIC_PAGE_SIZE)
    return page_response(catalog_query.list_products(db, filters))


@router.get("/products/search", response_model=list[schemas.ProductOut])
def search_products(q: str | None = Query(default=None), db: Session = Depends(get_db)):
    return catalog_query.search_products(db, q)


@router.get("/products/{product_id}", response_model=schemas.ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    return catalog_query.get_product(db, product_id)


@router.get("/categories", response_model=list[schemas.CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return catalog_admin.list_categories(db)
