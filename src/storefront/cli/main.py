import asyncio
import logging
from typing import Optional

import typer
from tortoise import Tortoise

from storefront.common.store import StoreError
from storefront.core import config
from storefront.core.services import Services, build_services
from storefront.features.orders.models import OrderStatus, OrderStatusPatch, PaymentStatus
from storefront.main import TORTOISE_ORM_CONFIG, _ensure_sqlite_dir

logger = logging.getLogger(__name__)

app = typer.Typer(name="storefront-cli", help="CLI for managing storefront accounts and orders.")


def _run(coro) -> None:
    """Run a command coroutine; store failures end the command with exit code 1."""
    try:
        asyncio.run(coro)
    except StoreError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


# Shared async context manager for the stores
class ServiceContext:
    async def __aenter__(self) -> Services:
        self._uses_tortoise = config.STORE_BACKEND == "sqlite"
        if self._uses_tortoise:
            _ensure_sqlite_dir(config.DATABASE_URL)
            await Tortoise.init(config=TORTOISE_ORM_CONFIG)
            await Tortoise.generate_schemas(safe=True)
        return build_services()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._uses_tortoise:
            await Tortoise.close_connections()


# User management commands
user_app = typer.Typer(name="users", help="Manage user accounts.")
app.add_typer(user_app)

order_app = typer.Typer(name="orders", help="Inspect and update orders.")
app.add_typer(order_app)

product_app = typer.Typer(name="products", help="Inspect the product catalogue.")
app.add_typer(product_app)


@user_app.command("create-admin")
def create_admin_user_command(
    email: str = typer.Option(..., prompt=True, help="Email for the new admin."),
    name: str = typer.Option(..., prompt=True, help="Display name for the new admin."),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password for the new admin."),
    setup_password: str = typer.Option(..., prompt=True, hide_input=True, help="Admin setup password (ADMIN_SETUP_PASSWORD)."),
):
    """Creates the first admin account. Refused once an admin exists."""
    _run(_create_admin_user(email, name, password, setup_password))


async def _create_admin_user(email: str, name: str, password: str, setup_password: str):
    async with ServiceContext() as services:
        typer.echo(f"Attempting to create admin account: {name} ({email})...")
        result = await services.auth.create_admin_account(email, password, name, setup_password)
        if not result.success:
            typer.secho(f"Error: {result.error}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.secho(f"Admin account created successfully with ID: {result.user.id}", fg=typer.colors.GREEN)


@user_app.command("list")
def list_users_command():
    """Lists all user accounts."""
    _run(_list_users())


async def _list_users():
    async with ServiceContext() as services:
        users = await services.users.all()
        typer.echo(f"Found {len(users)} user(s).")
        for user in users:
            typer.echo(f"{user.id}  {user.email:<32} {user.role.value:<9} {user.name}")


@order_app.command("list")
def list_orders_command(
    status: Optional[OrderStatus] = typer.Option(None, help="Only orders with this status."),
):
    """Lists orders, optionally filtered by status."""
    _run(_list_orders(status))


async def _list_orders(status: Optional[OrderStatus]):
    async with ServiceContext() as services:
        orders = await services.orders.get_all(status=status)
        typer.echo(f"Found {len(orders)} order(s).")
        for order in orders:
            typer.echo(
                f"{order.id}  {order.status.value:<10} {order.payment_status.value:<8} "
                f"{order.total_amount:>9.2f}  {order.customer_email}"
            )


@order_app.command("set-status")
def set_order_status_command(
    order_id: str = typer.Argument(..., help="The order to update."),
    status: Optional[OrderStatus] = typer.Option(None, help="New fulfilment status."),
    payment_status: Optional[PaymentStatus] = typer.Option(None, help="New payment status."),
):
    """Updates an order's status and/or payment status."""
    if status is None and payment_status is None:
        typer.secho("Error: pass --status and/or --payment-status.", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _run(_set_order_status(order_id, status, payment_status))


async def _set_order_status(order_id: str, status: Optional[OrderStatus], payment_status: Optional[PaymentStatus]):
    fields = {}
    if status is not None:
        fields["status"] = status
    if payment_status is not None:
        fields["payment_status"] = payment_status
    async with ServiceContext() as services:
        order = await services.orders.update(order_id, OrderStatusPatch(**fields))
        if order is None:
            typer.secho(f"Error: Order '{order_id}' not found.", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.secho(f"{order}", fg=typer.colors.GREEN)


@product_app.command("list")
def list_products_command(
    category: Optional[str] = typer.Option(None, help="Only products in this category."),
    search: Optional[str] = typer.Option(None, help="Text to look for in name or description."),
):
    """Lists catalogue products."""
    _run(_list_products(category, search))


async def _list_products(category: Optional[str], search: Optional[str]):
    async with ServiceContext() as services:
        products = await services.products.get_all(category=category, search=search)
        typer.echo(f"Found {len(products)} product(s).")
        for product in products:
            typer.echo(f"{product.id:>4}  {product.category:<14} {product.price:>8.2f} {product.stock:>5}  {product.name}")


@app.command("store-health")
def store_health_command():
    """Shows whether each record store is persisting to disk."""
    _run(_store_health())


async def _store_health():
    async with ServiceContext() as services:
        health = services.health()
        for store in health["stores"]:
            colour = typer.colors.GREEN if store["mode"] == "durable" else typer.colors.YELLOW
            typer.secho(f"{store['collection']:<8} {store['mode']}  {store.get('file', '')}", fg=colour)
        if health["status"] != "ok":
            raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
