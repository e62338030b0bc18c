import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from jose import JWTError, jwt

from ...core import config

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return (password or "").encode("utf-8")[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    hashed = bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check ``plain_password`` against a stored bcrypt hash.

    A missing or malformed hash verifies as False instead of raising.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except (ValueError, TypeError):
        logger.warning("Password verification against a malformed hash")
        return False


def create_access_token(
    data: dict[str, Any],
    expires_delta: Optional[timedelta] = None,
    secret_key: Optional[str] = None,
) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(seconds=config.SESSION_MAX_AGE_SECONDS)
    to_encode.setdefault("iat", int(now.timestamp()))
    to_encode.setdefault("exp", int((now + expires_delta).timestamp()))
    return jwt.encode(to_encode, secret_key or config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_access_token(token: str, secret_key: Optional[str] = None) -> Optional[dict[str, Any]]:
    """Claims of a valid, unexpired token, or None."""
    try:
        return jwt.decode(token, secret_key or config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError as e:
        logger.info(f"Rejected session token: {e}")
        return None
