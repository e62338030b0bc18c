import re
from datetime import datetime

import pytest
from pydantic import ValidationError

from storefront.features.orders.models import (
    NewOrder,
    NewOrderItem,
    OrderStatus,
    OrderStatusPatch,
    PaymentStatus,
    ShippingAddress,
)
from storefront.features.orders.service import generate_order_id

pytestmark = pytest.mark.asyncio


def _new_order(**overrides) -> NewOrder:
    data = dict(
        user_id="user_alice",
        customer_name="  Alice  ",
        customer_email=" Alice@Example.com ",
        total_amount=43.0,
        shipping_address=ShippingAddress(
            name="Alice", line1="1 Rabbit Hole ", city="Oxford", state="OXF", postal_code="OX1", country="GB"
        ),
        items=[
            NewOrderItem(product_id="mug", product_name="Tea Mug", product_image="/mug.png", quantity=2, price_at_purchase=12.50),
            NewOrderItem(product_id="hat", product_name="Top Hat", quantity=1, price_at_purchase=18.00),
        ],
    )
    data.update(overrides)
    return NewOrder(**data)


async def test_generate_order_id_format():
    order_id = generate_order_id()
    assert re.fullmatch(r"ORDER-\d{13}-[0-9a-z]{9}", order_id)
    assert generate_order_id() != order_id


async def test_create_order(memory_services):
    order = await memory_services.orders.create(_new_order())

    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.customer_name == "Alice"
    assert order.customer_email == "alice@example.com"
    assert order.total_amount == 43.0
    assert order.shipping_address.line1 == "1 Rabbit Hole"
    assert [item.id for item in order.items] == [f"item-{order.id}-0", f"item-{order.id}-1"]
    assert order.created_at == order.updated_at


async def test_total_is_rounded_and_never_negative(memory_services):
    rounded = await memory_services.orders.create(_new_order(total_amount=10.005001))
    negative = await memory_services.orders.create(_new_order(total_amount=-5))
    assert rounded.total_amount == 10.01
    assert negative.total_amount == 0.0


async def test_order_needs_items():
    with pytest.raises(ValidationError):
        _new_order(items=[])


async def test_get_by_id_returns_identical_snapshot(memory_services):
    created = await memory_services.orders.create(_new_order())

    fetched = await memory_services.orders.get_by_id(created.id)

    assert fetched == created
    assert await memory_services.orders.get_by_id("ORDER-missing") is None


async def test_item_snapshot_survives_profile_change(memory_services):
    user = await memory_services.auth.create_user("Alice", "alice@example.com", "Passw0rd!")
    order = await memory_services.orders.create(_new_order(user_id=user.user.id))

    await memory_services.auth.update_profile(user.user.id, name="Alice Liddell", email="liddell@example.com")

    fetched = await memory_services.orders.get_by_id(order.id)
    assert fetched.customer_name == "Alice"
    assert fetched.customer_email == "alice@example.com"


async def test_status_update_preserves_identity(memory_services):
    created = await memory_services.orders.create(_new_order())

    updated = await memory_services.orders.update(created.id, OrderStatusPatch(status=OrderStatus.SHIPPED))

    assert updated.status == OrderStatus.SHIPPED
    assert updated.id == created.id
    assert updated.created_at == created.created_at
    assert datetime.fromisoformat(updated.updated_at) > datetime.fromisoformat(created.updated_at)
    assert updated.items == created.items
    assert updated.payment_status == created.payment_status


async def test_any_status_transition_is_allowed(memory_services):
    created = await memory_services.orders.create(_new_order())
    await memory_services.orders.update(created.id, OrderStatusPatch(status=OrderStatus.DELIVERED))

    back = await memory_services.orders.update(created.id, OrderStatusPatch(status=OrderStatus.PENDING))

    assert back.status == OrderStatus.PENDING


async def test_update_unknown_order(memory_services):
    assert await memory_services.orders.update("ORDER-missing", OrderStatusPatch(status=OrderStatus.SHIPPED)) is None


async def test_patch_forbids_immutable_fields():
    with pytest.raises(ValidationError):
        OrderStatusPatch(id="ORDER-other")
    with pytest.raises(ValidationError):
        OrderStatusPatch(created_at="1970-01-01T00:00:00+00:00")
    with pytest.raises(ValidationError):
        OrderStatusPatch(total_amount=0)


async def test_patch_changes():
    assert OrderStatusPatch(status=OrderStatus.SHIPPED).changes() == {"status": "shipped"}
    assert OrderStatusPatch(status=None, payment_status=PaymentStatus.REFUNDED).changes() == {"payment_status": "refunded"}
    assert OrderStatusPatch(stripe_payment_id=None).changes() == {"stripe_payment_id": None}


async def test_filters_and_user_lookup(memory_services):
    first = await memory_services.orders.create(_new_order(user_id="user_alice"))
    second = await memory_services.orders.create(_new_order(user_id="user_bob", payment_status=PaymentStatus.PAID))
    await memory_services.orders.update(second.id, OrderStatusPatch(status=OrderStatus.SHIPPED))

    assert {o.id for o in await memory_services.orders.get_all()} == {first.id, second.id}
    assert [o.id for o in await memory_services.orders.get_all(status=OrderStatus.SHIPPED)] == [second.id]
    assert [o.id for o in await memory_services.orders.get_all(payment_status=PaymentStatus.PENDING)] == [first.id]
    assert [o.id for o in await memory_services.orders.get_by_user("user_alice")] == [first.id]
    assert await memory_services.orders.get_by_user("user_carol") == []


async def test_orders_persist_to_file(services, data_dir):
    created = await services.orders.create(_new_order())

    assert created.id in (data_dir / "orders.json").read_text()
