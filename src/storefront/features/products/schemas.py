"""Product payloads.

The create body defaults its required fields to empty so the router can
answer a missing one with a single 400 "Missing required fields"."""
from typing import Optional

from pydantic import BaseModel, Field

from .models import Product


class ProductCreateRequest(BaseModel):
    name: str = ""
    description: str = ""
    price: Optional[float] = None
    category: str = ""
    images: Optional[list[str]] = None
    stock: int = Field(0, description="Units on hand; negative values are stored as 0")

    def missing_fields(self) -> bool:
        return not self.name.strip() or not self.description.strip() \
            or not self.category.strip() or self.price is None


class ProductUpdateRequest(BaseModel):
    """Partial update. Fields left out keep their stored value."""

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    images: Optional[list[str]] = None
    stock: Optional[int] = None


class ProductResponse(BaseModel):
    product: Product


class ProductListResponse(BaseModel):
    products: list[Product]
    total: int


class ProductDeleteResponse(BaseModel):
    message: str
