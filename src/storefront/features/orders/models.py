"""Order records.

Customer and item fields are snapshots taken at purchase time. They are
never re-read from the live user or product, so an order keeps showing what
was actually bought even after the catalogue changes."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ShippingAddress(BaseModel):
    name: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str


class OrderItem(BaseModel):
    id: str
    product_id: str
    product_name: str
    product_image: str = ""
    quantity: int
    price_at_purchase: float


class Order(BaseModel):
    id: str
    user_id: Optional[str] = None
    customer_name: str
    customer_email: str
    total_amount: float
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    stripe_payment_id: Optional[str] = None
    shipping_address: ShippingAddress
    items: list[OrderItem]
    created_at: str
    updated_at: str

    def __str__(self):
        return f"Order {self.id} - Status: {self.status.value}"


class NewOrderItem(BaseModel):
    product_id: str
    product_name: str
    product_image: str = ""
    quantity: int = Field(..., gt=0)
    price_at_purchase: float = Field(..., ge=0)


class NewOrder(BaseModel):
    user_id: Optional[str] = None
    customer_name: str
    customer_email: str
    total_amount: float
    payment_status: PaymentStatus = PaymentStatus.PENDING
    stripe_payment_id: Optional[str] = None
    shipping_address: ShippingAddress
    items: list[NewOrderItem] = Field(..., min_length=1)


class OrderStatusPatch(BaseModel):
    """The only order fields that may change after creation."""

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    stripe_payment_id: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict:
        """Explicitly set fields. Only stripe_payment_id may be cleared to null."""
        data = self.model_dump(exclude_unset=True, mode="json")
        return {k: v for k, v in data.items() if v is not None or k == "stripe_payment_id"}
