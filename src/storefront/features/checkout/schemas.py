"""Checkout payloads.

Top-level fields default to empty values, so a missing card, email, address
or total reaches the service's own checks and comes back as
``{"success": false, "error": ...}``. Line items are different: an item
without its id, name, price or quantity, or with a negative price or a
non-positive quantity, fails request validation with a 422."""
from typing import Optional

from pydantic import BaseModel, Field


class CheckoutItem(BaseModel):
    id: str
    name: str
    image: str = ""
    price: float = Field(..., ge=0)
    quantity: int = Field(..., gt=0)


class CheckoutAddress(BaseModel):
    name: str = ""
    line1: str = ""
    line2: Optional[str] = None
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"


class CheckoutRequest(BaseModel):
    card_number: str = ""
    card_name: str = ""
    expiry_date: str = Field("", description="MM/YY")
    cvv: str = ""
    email: str = ""
    shipping_address: CheckoutAddress = Field(default_factory=CheckoutAddress)
    items: list[CheckoutItem] = Field(default_factory=list)
    total: float = 0


class CheckoutResponse(BaseModel):
    success: bool
    order_id: Optional[str] = None
    error: Optional[str] = None
