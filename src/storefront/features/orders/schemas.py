from typing import Optional

from pydantic import BaseModel, Field

from .models import Order


class OrderUpdateRequest(BaseModel):
    """Admin update body. Unknown status values are ignored, not rejected."""

    status: Optional[str] = Field(None, description="New fulfilment status")
    payment_status: Optional[str] = Field(None, description="New payment status")
    stripe_payment_id: Optional[str] = Field(None, description="Payment reference; null clears it")


class OrderResponse(BaseModel):
    order: Order


class OrderListResponse(BaseModel):
    orders: list[Order]
    total: int
