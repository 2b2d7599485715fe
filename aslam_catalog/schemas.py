from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# Catalog


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class VariantOut(BaseModel):
    id: int
    color: str
    photo_url: Optional[str] = None
    price_adjustment: Decimal
    is_sale: bool
    final_price: Decimal

    class Config:
        from_attributes = True


class ProductOut(BaseModel):
    id: int
    code: str
    title: str
    description: Optional[str] = None
    main_photo_url: Optional[str] = None
    category_id: Optional[int] = None
    category: Optional[CategoryOut] = None
    base_price: Decimal
    is_sold: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    variants: List[VariantOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ProductListOut(BaseModel):
    products: List[ProductOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class CatalogStatsOut(BaseModel):
    total_products: int
    total_categories: int
    recent_products: List[ProductOut]


# Admin


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)


class CategoryUpdate(BaseModel):
    name: str = Field(min_length=1)


# Auth


class LoginPayload(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)


class AdminOut(BaseModel):
    id: int
    username: str

    class Config:
        from_attributes = True


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in_seconds: int
    admin: AdminOut
