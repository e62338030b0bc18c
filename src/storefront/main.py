import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from tortoise import Tortoise

from .common.store import RecordConflictError, StoreError
from .core import config
from .core import logging_config  # noqa: F401  (configures the "storefront" logger)
from .core.services import build_services
from .features.auth.router import router as auth_router
from .features.auth.router import user_router
from .features.checkout.router import router as checkout_router
from .features.orders.router import router as orders_router
from .features.products.router import router as products_router

logger = logging.getLogger("storefront.main")  # This logger will inherit from 'storefront'

TORTOISE_ORM_CONFIG = {
    "connections": {"default": config.DATABASE_URL},
    "apps": {
        "models": {
            "models": ["storefront.common.models"],
            "default_connection": "default",
        }
    },
}


def _ensure_sqlite_dir(db_url: str) -> None:
    path = db_url.split("sqlite://", 1)[-1]
    if path and not path.startswith(":memory:"):
        Path(path).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Builds the stores and services once per process unless they were
    provided up front, and opens the database when the SQLite backend is used.
    """
    logger.info("Starting application...")
    for name in config.insecure_defaults():
        logger.warning(f"{name} is using its insecure development fallback; set it in the environment")

    uses_tortoise = config.STORE_BACKEND == "sqlite"
    if uses_tortoise:
        _ensure_sqlite_dir(config.DATABASE_URL)
        await Tortoise.init(config=TORTOISE_ORM_CONFIG)
        await Tortoise.generate_schemas(safe=True)
        logger.info("Tortoise-ORM has been initialized.")

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()
    for store in app.state.services.stores():
        logger.info("Record store ready", extra={"context": store.describe()})

    yield

    if uses_tortoise:
        await Tortoise.close_connections()
        logger.info("Tortoise-ORM connections have been closed.")


app = FastAPI(
    title="Storefront API",
    description="Accounts, sessions, products, checkout and orders for the print shop.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/")
async def read_root(request: Request):
    """
    Root endpoint for the API.
    """
    client_host = request.client.host if request.client else "unknown client"
    logger.info(f"Root endpoint '/' accessed by {client_host}")
    return {"message": "Welcome to the Storefront API!"}


@app.get("/health")
async def health(request: Request):
    """Persistence mode of every record store; "degraded" means data will not survive a restart."""
    return request.app.state.services.health()


app.include_router(auth_router, prefix="/api/v1")
app.include_router(user_router, prefix="/api/v1")
app.include_router(products_router, prefix="/api/v1")
app.include_router(orders_router, prefix="/api/v1")
app.include_router(checkout_router, prefix="/api/v1")


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """Store failures that escaped a service become a JSON error, not a bare 500."""
    if isinstance(exc, RecordConflictError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})
    logger.error(
        "Request failed on an unavailable store",
        extra={"context": {"path": request.url.path, "error": str(exc)}},
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage is temporarily unavailable. Please try again."},
    )
