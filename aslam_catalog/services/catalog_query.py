"""
Consultas publicas do catalogo: listagem filtrada/paginada, busca livre e
leitura por id. Contagem e pagina usam exatamente os mesmos predicados.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import asc, desc, func, or_
from sqlalchemy.orm import Session, selectinload

from aslam_catalog import models
from aslam_catalog.errors import NotFound

SORT_NEWEST = "newest"
SORT_PRICE_ASC = "price_asc"
SORT_PRICE_DESC = "price_desc"
SORT_NAME_ASC = "name_asc"
VALID_SORTS = (SORT_NEWEST, SORT_PRICE_ASC, SORT_PRICE_DESC, SORT_NAME_ASC)

PUBLIC_PAGE_SIZE = 20
ADMIN_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
# offset precisa caber em BIGINT
MAX_PAGE = 1_000_000
SEARCH_LIMIT = 50


@dataclass
class ProductFilters:
    category_id: int | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    is_sale: bool | None = None
    is_sold: bool | None = None
    search: str | None = None
    sort: str = SORT_NEWEST
    page: int = 1
    page_size: int = PUBLIC_PAGE_SIZE


@dataclass
class ProductPage:
    products: list[models.Product] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = PUBLIC_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


def normalize_page(value) -> int:
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    if page < 1:
        return 1
    return min(page, MAX_PAGE)


def normalize_page_size(value, default: int = PUBLIC_PAGE_SIZE) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError):
        return default
    if size <= 0:
        return default
    return min(size, MAX_PAGE_SIZE)


def normalize_sort(value: str | None) -> str:
    sort = (value or "").strip()
    return sort if sort in VALID_SORTS else SORT_NEWEST


def _filter_conditions(filters: ProductFilters) -> list:
    conditions = []
    if filters.category_id is not None:
        conditions.append(models.Product.category_id == filters.category_id)
    if filters.min_price is not None:
        conditions.append(models.Product.base_price >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(models.Product.base_price <= filters.max_price)
    if filters.is_sale is not None:
        # EXISTS: produto sem variantes nunca casa
        conditions.append(models.Product.variants.any(models.ProductVariant.is_sale == filters.is_sale))
    if filters.is_sold is not None:
        conditions.append(models.Product.is_sold == filters.is_sold)
    if filters.search and filters.search.strip():
        token = f"%{filters.search.strip()}%"
        conditions.append(or_(models.Product.title.ilike(token), models.Product.code.ilike(token)))
    return conditions


def _order_by(sort: str) -> list:
    if sort == SORT_PRICE_ASC:
        return [asc(models.Product.base_price), asc(models.Product.id)]
    if sort == SORT_PRICE_DESC:
        return [desc(models.Product.base_price), desc(models.Product.id)]
    if sort == SORT_NAME_ASC:
        return [asc(models.Product.title), asc(models.Product.id)]
    return [desc(models.Product.created_at), desc(models.Product.id)]


def list_products(db: Session, filters: ProductFilters) -> ProductPage:
    page = normalize_page(filters.page)
    page_size = normalize_page_size(filters.page_size)
    conditions = _filter_conditions(filters)

    total = db.query(func.count(models.Product.id)).filter(*conditions).scalar() or 0
    offset = (page - 1) * page_size
    if offset >= total:
        return ProductPage(products=[], total=total, page=page, page_size=page_size)
    products = (
        db.query(models.Product)
        .options(selectinload(models.Product.variants), selectinload(models.Product.category))
        .filter(*conditions)
        .order_by(*_order_by(normalize_sort(filters.sort)))
        .limit(page_size)
        .offset(offset)
        .all()
    )
    return ProductPage(products=products, total=total, page=page, page_size=page_size)


def search_products(db: Session, query: str | None, limit: int = SEARCH_LIMIT) -> list[models.Product]:
    """Busca livre por titulo ou codigo, sem paginacao."""
    text = (query or "").strip()
    if not text:
        return []
    token = f"%{text}%"
    return (
        db.query(models.Product)
        .options(selectinload(models.Product.variants), selectinload(models.Product.category))
        .filter(or_(models.Product.title.ilike(token), models.Product.code.ilike(token)))
        .order_by(asc(models.Product.title), asc(models.Product.id))
        .limit(limit)
        .all()
    )


def get_product(db: Session, product_id: int) -> models.Product:
    if product_id is None or product_id <= 0:
        raise NotFound("Product not found")
    product = (
        db.query(models.Product)
        .options(selectinload(models.Product.variants), selectinload(models.Product.category))
        .filter(models.Product.id == product_id)
        .first()
    )
    if not product:
        raise NotFound("Product not found")
    return product
