from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class User(BaseModel):
    """A stored account. ``password_hash`` never leaves the auth feature."""

    id: str
    email: str
    name: str
    password_hash: str
    role: Role = Role.CUSTOMER
    created_at: str
    updated_at: str

    def to_identity(self) -> "Identity":
        return Identity(id=self.id, email=self.email, name=self.name, role=self.role)


class Identity(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: Role


class UserProfilePatch(BaseModel):
    """Fields of a user that may change after creation."""

    name: Optional[str] = None
    email: Optional[str] = None
    password_hash: Optional[str] = None
    role: Optional[Role] = None

    model_config = ConfigDict(extra="forbid")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserResult(BaseModel):
    user: Optional[Identity] = None
    error: Optional[str] = None


class AdminSetupResult(BaseModel):
    success: bool
    error: Optional[str] = None
    user: Optional[Identity] = None


class ProfileResult(BaseModel):
    user: Optional[User] = None
    error: Optional[str] = None
    not_found: bool = Field(False, description="True when the account no longer exists")


class PasswordChangeResult(BaseModel):
    success: bool
    error: Optional[str] = None
