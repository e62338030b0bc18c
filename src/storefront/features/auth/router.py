"""API routes for sign-in, registration, admin bootstrap, sessions and the caller's own account."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from . import schemas
from .dependencies import ServicesDep, get_current_session, get_current_token
from .session import Session, SessionToken

logger = logging.getLogger(__name__)
router = APIRouter(
    tags=["Authentication"],
    prefix="/auth"
)
user_router = APIRouter(
    tags=["Account"],
    prefix="/user"
)


def _token_response(services, token: SessionToken) -> schemas.Token:
    return schemas.Token(
        access_token=services.sessions.encode(token),
        token_type="bearer",
        expires_at=token.exp,
    )


@router.post("/token", response_model=schemas.Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    services: ServicesDep,
):
    identity = await services.auth.authenticate(form_data.username, form_data.password)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = await services.sessions.jwt_callback(services.sessions.issue(identity), user=identity)
    return _token_response(services, token)


@router.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(user_in: schemas.UserCreate, services: ServicesDep):
    result = await services.auth.create_user(user_in.name, str(user_in.email), user_in.password)
    if result.error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return schemas.UserResponse.model_validate(result.user.model_dump())


@router.post("/create-admin", response_model=schemas.AdminSetupResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(admin_in: schemas.AdminCreate, services: ServicesDep):
    logger.info("Admin account creation attempt", extra={"context": {"email": str(admin_in.email)}})
    result = await services.auth.create_admin_account(
        str(admin_in.email), admin_in.password, admin_in.name, admin_in.admin_setup_password
    )
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return schemas.AdminSetupResponse(
        message="Admin account created successfully",
        email=result.user.email,
        name=result.user.name or "",
    )


@router.get("/session", response_model=Session)
async def read_session(session: Annotated[Session, Depends(get_current_session)]):
    return session


@router.post("/session/refresh", response_model=schemas.Token)
async def refresh_session(
    token: Annotated[SessionToken, Depends(get_current_token)],
    services: ServicesDep,
):
    """Re-read name, email and role from the store after a profile change."""
    refreshed = await services.sessions.refresh(token)
    return _token_response(services, refreshed)


@user_router.get("", response_model=schemas.UserResponse)
async def read_current_user(
    session: Annotated[Session, Depends(get_current_session)],
    services: ServicesDep,
):
    user = await services.auth.get_profile(session.user.id)
    if user is None:
        logger.warning("Session exists but user not found", extra={"context": {"user_id": session.user.id}})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return schemas.UserResponse.model_validate(user, from_attributes=True)


@user_router.put("", response_model=schemas.UserResponse)
async def update_current_user(
    update: schemas.UserUpdate,
    session: Annotated[Session, Depends(get_current_session)],
    services: ServicesDep,
):
    result = await services.auth.update_profile(
        session.user.id,
        name=update.name,
        email=str(update.email) if update.email is not None else None,
    )
    if result.not_found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.error)
    if result.error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
    return schemas.UserResponse.model_validate(result.user, from_attributes=True)


@user_router.post("/password")
async def change_password(
    change: schemas.PasswordChange,
    session: Annotated[Session, Depends(get_current_session)],
    services: ServicesDep,
):
    result = await services.auth.change_password(
        session.user.id, change.current_password, change.new_password
    )
    if not result.success:
        code = status.HTTP_404_NOT_FOUND if result.error == "User not found" else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=result.error)
    return {"success": True, "message": "Password changed successfully"}
