"""Session tokens.

A session token is a signed cache of the user's identity. It is filled at
login and copied into the session on every request without touching the
store. When the client reports a profile change it asks for a forced
refresh (``trigger="update"``), which re-reads the user and overwrites the
name, email and role claims. Without that refresh the token keeps its
login-time values until it expires."""
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ValidationError

from ...core import config
from .models import Identity, Role
from .security import create_access_token, decode_access_token
from .service import UserRepository

logger = logging.getLogger(__name__)

UPDATE_TRIGGER = "update"


class SessionToken(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Role
    iat: int
    exp: int


class SessionUser(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Role


class Session(BaseModel):
    user: SessionUser
    expires: datetime


class SessionManager:
    def __init__(
        self,
        users: UserRepository,
        secret_key: Optional[str] = None,
        max_age_seconds: Optional[int] = None,
    ):
        self.users = users
        self.secret_key = secret_key or config.SECRET_KEY
        self.max_age_seconds = max_age_seconds or config.SESSION_MAX_AGE_SECONDS

    def issue(self, identity: Identity) -> SessionToken:
        now = int(time.time())
        return SessionToken(
            id=identity.id,
            email=identity.email,
            name=identity.name,
            role=identity.role,
            iat=now,
            exp=now + self.max_age_seconds,
        )

    async def jwt_callback(
        self,
        token: SessionToken,
        user: Optional[Identity] = None,
        trigger: Optional[str] = None,
    ) -> SessionToken:
        """Runs whenever a token is created or read.

        ``user`` is only given right after a successful login.
        """
        if user is not None:
            token = token.model_copy(
                update={"id": user.id, "email": user.email, "name": user.name, "role": user.role}
            )
        if trigger == UPDATE_TRIGGER and token.id:
            fresh = await self.users.find_by_id(token.id)
            if fresh is None:
                logger.warning("Session refresh for unknown user", extra={"context": {"user_id": token.id}})
            else:
                token = token.model_copy(
                    update={"name": fresh.name, "email": fresh.email, "role": fresh.role}
                )
                logger.info("Session claims refreshed", extra={"context": {"user_id": token.id}})
        return token

    async def refresh(self, token: SessionToken) -> SessionToken:
        return await self.jwt_callback(token, trigger=UPDATE_TRIGGER)

    def session_callback(self, token: SessionToken) -> Session:
        return Session(
            user=SessionUser(id=token.id, email=token.email, name=token.name, role=token.role),
            expires=datetime.fromtimestamp(token.exp, tz=timezone.utc),
        )

    def encode(self, token: SessionToken) -> str:
        claims = token.model_dump(mode="json")
        claims["sub"] = token.id
        return create_access_token(claims, secret_key=self.secret_key)

    def decode(self, raw_token: str) -> Optional[SessionToken]:
        claims = decode_access_token(raw_token, secret_key=self.secret_key)
        if claims is None:
            return None
        try:
            return SessionToken.model_validate(claims)
        except ValidationError:
            logger.warning("Session token with unexpected claims")
            return None
