import logging
import secrets
import string
import time
from typing import Optional

from ...common.models import utc_now_iso
from ...common.store import RecordConflictError, RecordStore
from .models import (
    NewOrder,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusPatch,
    PaymentStatus,
    ShippingAddress,
)

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_ATTEMPTS = 3


def generate_order_id() -> str:
    """``ORDER-<epoch millis>-<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"ORDER-{int(time.time() * 1000)}-{suffix}"


def _snapshot_address(address: ShippingAddress) -> ShippingAddress:
    return ShippingAddress(
        name=address.name.strip(),
        line1=address.line1.strip(),
        line2=address.line2.strip() if address.line2 is not None else None,
        city=address.city.strip(),
        state=address.state.strip(),
        postal_code=address.postal_code.strip(),
        country=address.country.strip(),
    )


class OrderRepository:
    """Orders kept in a ``RecordStore``. Orders are never deleted."""

    def __init__(self, store: RecordStore):
        self.store = store

    def _build(self, order_id: str, data: NewOrder) -> Order:
        now = utc_now_iso()
        items = [
            OrderItem(
                id=f"item-{order_id}-{index}",
                product_id=item.product_id.strip(),
                product_name=item.product_name.strip(),
                product_image=item.product_image.strip(),
                quantity=item.quantity,
                price_at_purchase=item.price_at_purchase,
            )
            for index, item in enumerate(data.items)
        ]
        return Order(
            id=order_id,
            user_id=data.user_id or None,
            customer_name=data.customer_name.strip(),
            customer_email=data.customer_email.strip().lower(),
            total_amount=max(0.0, round(data.total_amount, 2)),
            status=OrderStatus.PENDING,
            payment_status=data.payment_status,
            stripe_payment_id=data.stripe_payment_id or None,
            shipping_address=_snapshot_address(data.shipping_address),
            items=items,
            created_at=now,
            updated_at=now,
        )

    async def create(self, data: NewOrder) -> Order:
        for attempt in range(_ID_ATTEMPTS):
            order = self._build(generate_order_id(), data)
            try:
                record = await self.store.insert(order.model_dump(mode="json"))
            except RecordConflictError:
                if attempt == _ID_ATTEMPTS - 1:
                    raise
                continue
            created = Order.model_validate(record)
            logger.info(
                "Order created successfully",
                extra={"context": {
                    "order_id": created.id,
                    "customer_email": created.customer_email,
                    "total_amount": created.total_amount,
                }},
            )
            return created

    async def update(self, order_id: str, patch: OrderStatusPatch) -> Optional[Order]:
        """Apply a status/payment change; None when the order does not exist."""
        changes = patch.changes()
        record = await self.store.update(order_id, changes)
        if record is None:
            logger.warning("Update for unknown order", extra={"context": {"order_id": order_id}})
            return None
        logger.info(
            "Order updated successfully",
            extra={"context": {"order_id": order_id, "updates": changes}},
        )
        return Order.model_validate(record)

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        record = await self.store.get(order_id)
        return Order.model_validate(record) if record else None

    async def get_all(
        self,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> list[Order]:
        def matches(record):
            if status is not None and record.get("status") != status.value:
                return False
            if payment_status is not None and record.get("payment_status") != payment_status.value:
                return False
            return True

        return [Order.model_validate(r) for r in await self.store.find(matches)]

    async def get_by_user(self, user_id: str) -> list[Order]:
        records = await self.store.find(lambda r: r.get("user_id") == user_id)
        return [Order.model_validate(r) for r in records]
