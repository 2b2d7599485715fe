from aslam_catalog.domain.admin.models import Admin
from aslam_catalog.domain.catalog.models import Category, Product, ProductVariant, final_price

__all__ = [
    "Admin",
    "Category",
    "Product",
    "ProductVariant",
    "final_price",
]
