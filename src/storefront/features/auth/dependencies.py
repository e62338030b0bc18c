import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from ...core.services import Services, get_services
from .models import Role
from .session import Session, SessionToken

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)

ServicesDep = Annotated[Services, Depends(get_services)]


async def get_current_token(
    token: Annotated[str, Depends(oauth2_scheme)], services: ServicesDep
) -> SessionToken:
    session_token = services.sessions.decode(token)
    if session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await services.sessions.jwt_callback(session_token)


async def get_current_session(
    token: Annotated[SessionToken, Depends(get_current_token)], services: ServicesDep
) -> Session:
    return services.sessions.session_callback(token)


async def get_optional_session(
    token: Annotated[Optional[str], Depends(optional_oauth2_scheme)], services: ServicesDep
) -> Optional[Session]:
    """Session when a valid bearer token is present; anonymous callers get None."""
    if not token:
        return None
    session_token = services.sessions.decode(token)
    if session_token is None:
        logger.info("Ignoring invalid bearer token on an anonymous-friendly route")
        return None
    return services.sessions.session_callback(session_token)


async def get_current_admin(
    session: Annotated[Session, Depends(get_current_session)]
) -> Session:
    if session.user.role != Role.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - Admin access required",
        )
    return session
