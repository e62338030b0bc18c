import logging
from typing import Any, Optional

from ...common.store import RecordConflictError, RecordStore
from .models import DEFAULT_PRODUCT_IMAGE, NewProduct, Product, ProductPatch

logger = logging.getLogger(__name__)

_ID_ATTEMPTS = 3


def _clean_images(images: Optional[list[str]]) -> list[str]:
    cleaned = [image.strip() for image in images or [] if image and image.strip()]
    return cleaned or [DEFAULT_PRODUCT_IMAGE]


def _sanitize(fields: dict[str, Any]) -> dict[str, Any]:
    """Trim text, clamp price and stock at zero. Only keys present are touched."""
    clean = dict(fields)
    for key in ("name", "description", "category"):
        if key in clean:
            clean[key] = clean[key].strip()
    if "price" in clean:
        clean["price"] = max(0.0, round(clean["price"], 2))
    if "stock" in clean:
        clean["stock"] = max(0, clean["stock"])
    if "images" in clean:
        clean["images"] = _clean_images(clean["images"])
    return clean


def next_product_id(records: list[dict]) -> str:
    """One more than the largest numeric id in the collection."""
    numeric = [int(r["id"]) for r in records if str(r.get("id", "")).isdigit()]
    return str(max(numeric, default=0) + 1)


class ProductRepository:
    """The product catalogue kept in a ``RecordStore``."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def create(self, data: NewProduct) -> Product:
        fields = _sanitize(data.model_dump())
        for attempt in range(_ID_ATTEMPTS):
            product_id = next_product_id(await self.store.all())
            try:
                record = await self.store.insert({"id": product_id, **fields})
            except RecordConflictError:
                # Another writer took the same id between the read and the insert.
                if attempt == _ID_ATTEMPTS - 1:
                    raise
                continue
            created = Product.model_validate(record)
            logger.info(
                "Product created",
                extra={"context": {"product_id": created.id, "category": created.category}},
            )
            return created

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        record = await self.store.get(product_id)
        return Product.model_validate(record) if record else None

    async def get_all(self, category: Optional[str] = None, search: Optional[str] = None) -> list[Product]:
        """Case-insensitive category match and name/description substring search."""
        category = category.strip().lower() if category else None
        search = search.strip().lower() if search else None

        def matches(record):
            if category and record.get("category", "").lower() != category:
                return False
            if search and search not in record.get("name", "").lower() \
                    and search not in record.get("description", "").lower():
                return False
            return True

        return [Product.model_validate(r) for r in await self.store.find(matches)]

    async def update(self, product_id: str, patch: ProductPatch) -> Optional[Product]:
        changes = _sanitize(patch.model_dump(exclude_none=True))
        record = await self.store.update(product_id, changes)
        if record is None:
            logger.warning("Update for unknown product", extra={"context": {"product_id": product_id}})
            return None
        logger.info(
            "Product updated",
            extra={"context": {"product_id": product_id, "fields": sorted(changes)}},
        )
        return Product.model_validate(record)

    async def delete(self, product_id: str) -> bool:
        deleted = await self.store.delete(product_id)
        if deleted:
            logger.info("Product deleted", extra={"context": {"product_id": product_id}})
        return deleted
