"""
Servico de categorias e do painel do admin. O router apenas orquestra (HTTP) e chama este servico.
"""
from __future__ import annotations

import logging

from sqlalchemy import asc, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from aslam_catalog import models
from aslam_catalog.domain.catalog.slug import generate_slug
from aslam_catalog.errors import Conflict, NotFound, TransactionError, ValidationError
from aslam_catalog.services import catalog_query

logger = logging.getLogger(__name__)

CATEGORY_NAME_MIN_LENGTH = 3
CATEGORY_NAME_MAX_LENGTH = 100
RECENT_PRODUCTS_LIMIT = 5


def _normalize_category_name(value: str | None) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError("category name is required")
    if len(name) < CATEGORY_NAME_MIN_LENGTH:
        raise ValidationError(f"category name must be at least {CATEGORY_NAME_MIN_LENGTH} characters")
    if len(name) > CATEGORY_NAME_MAX_LENGTH:
        raise ValidationError(f"category name must be at most {CATEGORY_NAME_MAX_LENGTH} characters")
    return name


def _slug_for(name: str) -> str:
    slug = generate_slug(name)
    if not slug:
        raise ValidationError("invalid category name: cannot generate slug")
    return slug


def _ensure_unique(db: Session, name: str, slug: str, exclude_id: int | None = None) -> None:
    query = db.query(models.Category.id).filter(or_(models.Category.name == name, models.Category.slug == slug))
    if exclude_id is not None:
        query = query.filter(models.Category.id != exclude_id)
    if query.first():
        raise Conflict("category name already exists")


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("category name already exists") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise TransactionError(f"failed to {action} category") from exc


# --- API pública ---


def list_categories(db: Session) -> list[models.Category]:
    return db.query(models.Category).order_by(asc(models.Category.name)).all()


def get_category(db: Session, category_id: int) -> models.Category:
    category = None
    if category_id and category_id > 0:
        category = db.get(models.Category, category_id)
    if not category:
        raise NotFound("Category not found")
    return category


def create_category(db: Session, name: str) -> models.Category:
    name = _normalize_category_name(name)
    slug = _slug_for(name)
    _ensure_unique(db, name, slug)

    category = models.Category(name=name, slug=slug)
    db.add(category)
    _commit(db, "create")
    db.refresh(category)
    logger.info("Category created id=%s slug=%s", category.id, category.slug)
    return category


def update_category(db: Session, category_id: int, name: str) -> models.Category:
    name = _normalize_category_name(name)
    category = get_category(db, category_id)

    slug = category.slug
    if name != category.name:
        slug = _slug_for(name)
    _ensure_unique(db, name, slug, exclude_id=category.id)

    category.name = name
    category.slug = slug
    _commit(db, "update")
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)
    count = (
        db.query(func.count(models.Product.id))
        .filter(models.Product.category_id == category.id)
        .scalar()
    ) or 0
    if count > 0:
        raise Conflict(f"cannot delete category with {count} products")
    db.delete(category)
    _commit(db, "delete")
    logger.info("Category deleted id=%s", category_id)


def catalog_stats(db: Session) -> dict:
    """Totais do painel admin e os 5 produtos mais recentes."""
    recent = catalog_query.list_products(
        db, catalog_query.ProductFilters(sort=catalog_query.SORT_NEWEST, page=1, page_size=RECENT_PRODUCTS_LIMIT)
    )
    return {
        "total_products": recent.total,
        "total_categories": db.query(func.count(models.Category.id)).scalar() or 0,
        "recent_products": recent.products,
    }
