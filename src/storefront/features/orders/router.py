from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..auth.dependencies import ServicesDep, get_current_admin, get_current_session, get_optional_session
from ..auth.models import Role
from ..auth.session import Session
from .models import OrderStatus, OrderStatusPatch, PaymentStatus
from .schemas import OrderListResponse, OrderResponse, OrderUpdateRequest

router = APIRouter(
    prefix="/orders",
    tags=["Orders"],
)


def _parse_filter(enum_cls, value: Optional[str]):
    if not value or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown filter value '{value}'")


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    current_admin: Annotated[Session, Depends(get_current_admin)],
    services: ServicesDep,
    status_filter: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None),
):
    orders = await services.orders.get_all(
        status=_parse_filter(OrderStatus, status_filter),
        payment_status=_parse_filter(PaymentStatus, payment_status),
    )
    return OrderListResponse(orders=orders, total=len(orders))


@router.get("/mine", response_model=OrderListResponse)
async def list_my_orders(
    session: Annotated[Session, Depends(get_current_session)],
    services: ServicesDep,
):
    orders = await services.orders.get_by_user(session.user.id)
    return OrderListResponse(orders=orders, total=len(orders))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    services: ServicesDep,
    session: Annotated[Optional[Session], Depends(get_optional_session)],
):
    order = await services.orders.get_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    # Anonymous callers come from the checkout success page; signed-in
    # customers only see their own orders.
    if session is not None and session.user.role != Role.ADMIN and order.user_id != session.user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - You do not have permission to view this order",
        )
    return OrderResponse(order=order)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str,
    update: OrderUpdateRequest,
    current_admin: Annotated[Session, Depends(get_current_admin)],
    services: ServicesDep,
):
    fields = {}
    if update.status in {s.value for s in OrderStatus}:
        fields["status"] = update.status
    if update.payment_status in {s.value for s in PaymentStatus}:
        fields["payment_status"] = update.payment_status
    if "stripe_payment_id" in update.model_fields_set:
        fields["stripe_payment_id"] = update.stripe_payment_id
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid update fields provided")

    order = await services.orders.update(order_id, OrderStatusPatch(**fields))
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderResponse(order=order)
