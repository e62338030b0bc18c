"""Pydantic schemas for authentication, defining the structure for request and response data."""
import re
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator

from .models import Role


def check_password_strength(value: str) -> str:
    rules = (
        (r"[A-Z]", "Password must contain at least one uppercase letter"),
        (r"[a-z]", "Password must contain at least one lowercase letter"),
        (r"[0-9]", "Password must contain at least one number"),
        (r"[^a-zA-Z0-9]", "Password must contain at least one special character"),
    )
    for pattern, message in rules:
        if not re.search(pattern, value):
            raise ValueError(message)
    return value


# Whitespace is stripped before the length check, so "   " is rejected.
DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]

class UserCreate(BaseModel):
    name: DisplayName = Field(..., description="Display name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, max_length=100, description="User password")


class AdminCreate(BaseModel):
    name: DisplayName
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    admin_setup_password: str = Field(..., min_length=1, description="Out-of-band setup secret")

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: Role
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    name: Optional[DisplayName] = None
    email: Optional[EmailStr] = None


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class Token(BaseModel):
    access_token: str
    token_type: str
    expires_at: int


class AdminSetupResponse(BaseModel):
    message: str
    email: str
    name: str
