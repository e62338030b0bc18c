"""Process-wide service wiring.

Stores are built once at startup and handed to the repositories and services
by reference. Tests build their own ``Services`` around in-memory or temp-dir
stores."""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..common.store import RecordStore, build_store
from ..features.auth.service import AuthService, UserRepository
from ..features.auth.session import SessionManager
from ..features.checkout.service import CheckoutService
from ..features.orders.service import OrderRepository
from ..features.products.service import ProductRepository


@dataclass
class Services:
    users: UserRepository
    orders: OrderRepository
    products: ProductRepository
    auth: AuthService
    sessions: SessionManager
    checkout: CheckoutService

    def stores(self) -> list[RecordStore]:
        return [self.users.store, self.orders.store, self.products.store]

    def health(self) -> dict:
        stores = [store.describe() for store in self.stores()]
        degraded = any(store["mode"] != "durable" for store in stores)
        return {"status": "degraded" if degraded else "ok", "stores": stores}


def build_services(
    user_store: Optional[RecordStore] = None,
    order_store: Optional[RecordStore] = None,
    product_store: Optional[RecordStore] = None,
    admin_setup_password: Optional[str] = None,
    secret_key: Optional[str] = None,
) -> Services:
    users = UserRepository(user_store or build_store("users"))
    orders = OrderRepository(order_store or build_store("orders"))
    return Services(
        users=users,
        orders=orders,
        products=ProductRepository(product_store or build_store("products")),
        auth=AuthService(users, admin_setup_password=admin_setup_password),
        sessions=SessionManager(users, secret_key=secret_key),
        checkout=CheckoutService(orders),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
