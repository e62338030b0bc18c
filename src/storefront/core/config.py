import os
import tempfile
from pathlib import Path

# In a real deployment every secret below must come from the environment.
_DEV_SECRET_KEY = "fallback-secret-key-change-in-production"
_DEV_ADMIN_SETUP_PASSWORD = "AdminSetup2025!"

SECRET_KEY: str = os.getenv("SESSION_SECRET", _DEV_SECRET_KEY)
ALGORITHM: str = "HS256"
SESSION_MAX_AGE_SECONDS: int = int(
    os.getenv("SESSION_MAX_AGE_SECONDS", str(30 * 24 * 60 * 60))
)

ADMIN_SETUP_PASSWORD: str = os.getenv("ADMIN_SETUP_PASSWORD", _DEV_ADMIN_SETUP_PASSWORD)

BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

# "file" (JSON files under the data dir), "sqlite" (Tortoise) or "memory"
STORE_BACKEND: str = os.getenv("STORE_BACKEND", "file").lower()
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite://./data/storefront.sqlite3")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


def resolve_data_dir() -> Path:
    """Directory holding users.json and orders.json.

    DATABASE_PATH wins when set. Serverless hosts (VERCEL) only allow writes
    under the temp dir, and data kept there does not survive a restart.
    """
    custom = os.getenv("DATABASE_PATH")
    if custom:
        return Path(custom).resolve()
    if os.getenv("VERCEL"):
        return Path(tempfile.gettempdir()) / "data"
    return Path.cwd() / "data"


def insecure_defaults() -> list[str]:
    """Names of settings still running on their development fallback."""
    insecure = []
    if SECRET_KEY == _DEV_SECRET_KEY:
        insecure.append("SESSION_SECRET")
    if ADMIN_SETUP_PASSWORD == _DEV_ADMIN_SETUP_PASSWORD:
        insecure.append("ADMIN_SETUP_PASSWORD")
    return insecure
