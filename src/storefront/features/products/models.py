"""Catalogue products.

Orders copy a product's name, image and price into their own items, so
editing or deleting a product here never changes an existing order."""
from typing import Optional

from pydantic import BaseModel, ConfigDict

DEFAULT_PRODUCT_IMAGE = "/api/placeholder/300/300"


class Product(BaseModel):
    id: str
    name: str
    description: str
    price: float
    category: str
    images: list[str]
    stock: int
    created_at: str
    updated_at: str

    def __str__(self):
        return f"Product {self.id} - {self.name}"


class NewProduct(BaseModel):
    name: str
    description: str
    price: float
    category: str
    images: Optional[list[str]] = None
    stock: int = 0


class ProductPatch(BaseModel):
    """Catalogue fields an admin may change; ``id`` and ``created_at`` never change."""

    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = None
    images: Optional[list[str]] = None
    stock: Optional[int] = None

    model_config = ConfigDict(extra="forbid")
