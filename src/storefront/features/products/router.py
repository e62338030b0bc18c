from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth.dependencies import ServicesDep, get_current_admin
from ..auth.session import Session
from .models import NewProduct, ProductPatch
from .schemas import (
    ProductCreateRequest,
    ProductDeleteResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdateRequest,
)

router = APIRouter(
    prefix="/products",
    tags=["Products"],
)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")


@router.get("/", response_model=ProductListResponse)
async def list_products(
    services: ServicesDep,
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    products = await services.products.get_all(category=category, search=search)
    return ProductListResponse(products=products, total=len(products))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, services: ServicesDep):
    product = await services.products.get_by_id(product_id)
    if product is None:
        raise _not_found()
    return ProductResponse(product=product)


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreateRequest,
    current_admin: Annotated[Session, Depends(get_current_admin)],
    services: ServicesDep,
):
    if body.missing_fields():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")
    product = await services.products.create(NewProduct(**body.model_dump()))
    return ProductResponse(product=product)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    body: ProductUpdateRequest,
    current_admin: Annotated[Session, Depends(get_current_admin)],
    services: ServicesDep,
):
    product = await services.products.update(product_id, ProductPatch(**body.model_dump(exclude_none=True)))
    if product is None:
        raise _not_found()
    return ProductResponse(product=product)


@router.delete("/{product_id}", response_model=ProductDeleteResponse)
async def delete_product(
    product_id: str,
    current_admin: Annotated[Session, Depends(get_current_admin)],
    services: ServicesDep,
):
    if not await services.products.delete(product_id):
        raise _not_found()
    return ProductDeleteResponse(message="Product deleted successfully")
