"""Mock payment flow.

No gateway is contacted. The only card accepted is the test number
``1111 1111 1111``; a successful payment records a paid order."""
import logging
import re
from typing import Optional

from ..orders.models import NewOrder, NewOrderItem, PaymentStatus, ShippingAddress
from ..orders.service import OrderRepository
from .schemas import CheckoutRequest, CheckoutResponse

logger = logging.getLogger(__name__)

TEST_CARD_NUMBER = "111111111111"
PAYMENT_ERROR = "An error occurred while processing your payment. Please try again."

_EXPIRY_PATTERN = re.compile(r"^\d{2}/\d{2}$")
_CVV_PATTERN = re.compile(r"^\d{3,4}$")
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Tolerance when comparing the client total with the line items.
_TOTAL_TOLERANCE = 0.01


def validate_card_number(card_number: str) -> bool:
    return re.sub(r"\D", "", card_number or "") == TEST_CARD_NUMBER


def line_items_total(request: CheckoutRequest) -> float:
    return round(sum(item.price * item.quantity for item in request.items), 2)


def validate_checkout(request: CheckoutRequest) -> Optional[str]:
    """First problem with the request, or None when it can be charged."""
    if not validate_card_number(request.card_number):
        return "Invalid card number. Please use 1111 1111 1111 for testing."
    if not request.card_name.strip():
        return "Card name is required"
    if not _EXPIRY_PATTERN.match(request.expiry_date or ""):
        return "Invalid expiry date format. Use MM/YY"
    if not _CVV_PATTERN.match(request.cvv or ""):
        return "Invalid CVV. Must be 3-4 digits"
    if not _EMAIL_PATTERN.match(request.email or ""):
        return "Invalid email address"
    address = request.shipping_address
    if not all(part.strip() for part in (address.line1, address.city, address.state, address.postal_code)):
        return "Complete shipping address is required"
    if not request.items:
        return "Cart is empty"
    if request.total <= 0:
        return "Invalid order total"
    if abs(line_items_total(request) - request.total) > _TOTAL_TOLERANCE:
        return "Order total does not match cart"
    return None


class CheckoutService:
    def __init__(self, orders: OrderRepository):
        self.orders = orders

    async def process(self, request: CheckoutRequest, user_id: Optional[str] = None) -> CheckoutResponse:
        error = validate_checkout(request)
        if error:
            logger.info("Checkout rejected", extra={"context": {"email": request.email, "reason": error}})
            return CheckoutResponse(success=False, error=error)

        address = request.shipping_address
        customer_name = address.name.strip() or request.card_name.strip()
        new_order = NewOrder(
            user_id=user_id,
            customer_name=customer_name,
            customer_email=request.email,
            total_amount=request.total,
            payment_status=PaymentStatus.PAID,
            shipping_address=ShippingAddress(
                name=customer_name,
                line1=address.line1,
                line2=address.line2 or None,
                city=address.city,
                state=address.state,
                postal_code=address.postal_code,
                country=address.country or "US",
            ),
            items=[
                NewOrderItem(
                    product_id=item.id,
                    product_name=item.name,
                    product_image=item.image,
                    quantity=item.quantity,
                    price_at_purchase=item.price,
                )
                for item in request.items
            ],
        )
        try:
            order = await self.orders.create(new_order)
        except Exception:
            logger.error("Payment processing error", exc_info=True, extra={"context": {"email": request.email}})
            return CheckoutResponse(success=False, error=PAYMENT_ERROR)
        return CheckoutResponse(success=True, order_id=order.id)
