"""Business logic for accounts: the user repository and credential checks.

Every public ``AuthService`` method returns a result value. Failures are
logged and converted, so HTTP handlers can always answer with a structured
error instead of a 500."""
import hmac
import logging
from typing import Optional

from ...common.models import generate_ksuid, utc_now_iso
from ...common.store import RecordConflictError, RecordStore
from ...core import config
from .models import (
    AdminSetupResult,
    Identity,
    PasswordChangeResult,
    ProfileResult,
    Role,
    User,
    UserProfilePatch,
    UserResult,
    normalize_email,
)
from .security import get_password_hash, verify_password

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred"
EMAIL_TAKEN = "User with this email already exists"
ADMIN_EXISTS = "Admin account already exists"


class UserRepository:
    """Users kept in a ``RecordStore``; email is unique, case-insensitively."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def find_by_email(self, email: str) -> Optional[User]:
        """Retrieves a user by email address, ignoring case and surrounding spaces.

        Args:
            email: The email address to look up.

        Returns:
            The User if found, otherwise None.
        """
        normalized = normalize_email(email or "")
        record = await self.store.find_one(
            lambda r: normalize_email(r.get("email", "")) == normalized
        )
        return User.model_validate(record) if record else None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        record = await self.store.get(user_id)
        return User.model_validate(record) if record else None

    async def has_admin_account(self) -> bool:
        record = await self.store.find_one(lambda r: r.get("role") == Role.ADMIN.value)
        return record is not None

    async def all(self) -> list[User]:
        return [User.model_validate(r) for r in await self.store.all()]

    async def create(
        self, email: str, name: str, password_hash: str, role: Role, sole_admin: bool = False
    ) -> User:
        """Stores a new user.

        With ``sole_admin`` the insert is refused while any admin exists; the
        check runs inside the store insert, against freshly loaded records.

        Raises:
            RecordConflictError: the email is taken, or an admin exists when
                ``sole_admin`` is set.
        """
        now = utc_now_iso()
        user = User(
            id=f"user_{generate_ksuid()}",
            email=normalize_email(email),
            name=name.strip(),
            password_hash=password_hash,
            role=role,
            created_at=now,
            updated_at=now,
        )

        def conflicts(record):
            if normalize_email(record.get("email", "")) == user.email:
                return True
            return sole_admin and record.get("role") == Role.ADMIN.value

        try:
            record = await self.store.insert(user.model_dump(mode="json"), conflicts_with=conflicts)
        except RecordConflictError as exc:
            message = ADMIN_EXISTS if sole_admin and await self.has_admin_account() else EMAIL_TAKEN
            raise RecordConflictError(exc.collection, message) from exc
        return User.model_validate(record)

    async def update(self, user_id: str, patch: UserProfilePatch) -> Optional[User]:
        changes = patch.model_dump(exclude_none=True, mode="json")
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        record = await self.store.update(user_id, changes)
        return User.model_validate(record) if record else None

    async def delete(self, user_id: str) -> bool:
        return await self.store.delete(user_id)


class AuthService:
    def __init__(self, users: UserRepository, admin_setup_password: Optional[str] = None):
        self.users = users
        self.admin_setup_password = (
            admin_setup_password if admin_setup_password is not None else config.ADMIN_SETUP_PASSWORD
        )

    async def authenticate(self, email: Optional[str], password: Optional[str]) -> Optional[Identity]:
        """Identity for valid credentials, None otherwise.

        Unknown email and wrong password are indistinguishable to the caller.
        """
        if not email or not password:
            logger.warning("Authentication attempt with missing credentials")
            return None
        context = {"email": normalize_email(email)}
        try:
            user = await self.users.find_by_email(email)
            if user is None:
                logger.warning("Authentication attempt for non-existent user", extra={"context": context})
                return None
            if not verify_password(password, user.password_hash):
                logger.warning("Invalid password attempt", extra={"context": context})
                return None
        except Exception:
            logger.error("Unexpected error during authentication", exc_info=True, extra={"context": context})
            return None
        logger.info(
            "Successful authentication",
            extra={"context": {**context, "user_id": user.id, "role": user.role.value}},
        )
        return user.to_identity()

    async def create_user(
        self, name: str, email: str, password: str, role: Role = Role.CUSTOMER
    ) -> UserResult:
        return await self._create_user(name, email, password, role, user_type="regular")

    async def create_admin_user(
        self, name: str, email: str, password: str, role: Role = Role.ADMIN
    ) -> UserResult:
        return await self._create_user(name, email, password, role, user_type="admin")

    async def _create_user(
        self, name: str, email: str, password: str, role: Role, user_type: str
    ) -> UserResult:
        context = {"email": normalize_email(email or ""), "role": getattr(role, "value", role)}
        if not (name or "").strip() or not (email or "").strip() or not password:
            return UserResult(error="Name, email and password are required")
        try:
            user = await self.users.create(email, name, get_password_hash(password), Role(role))
        except RecordConflictError as exc:
            logger.warning(f"{user_type.capitalize()} user creation failed", extra={"context": {**context, "error": exc.message}})
            return UserResult(error=exc.message)
        except Exception:
            logger.error(f"Unexpected error during {user_type} user creation", exc_info=True, extra={"context": context})
            return UserResult(error=UNEXPECTED_ERROR)
        logger.info(
            f"{user_type.capitalize()} user created successfully",
            extra={"context": {**context, "user_id": user.id}},
        )
        return UserResult(user=user.to_identity())

    async def create_admin_account(
        self, email: str, password: str, name: str, setup_secret: str
    ) -> AdminSetupResult:
        """One-time bootstrap of the first admin.

        Refused once any admin exists, whatever secret is supplied.
        """
        context = {"email": normalize_email(email or ""), "name": (name or "").strip()}
        if not (name or "").strip() or not (email or "").strip() or not password:
            return AdminSetupResult(success=False, error="Name, email and password are required")
        try:
            if await self.users.has_admin_account():
                logger.warning("Admin account creation refused - admin already exists", extra={"context": context})
                return AdminSetupResult(success=False, error=ADMIN_EXISTS)
            if not hmac.compare_digest(
                (setup_secret or "").encode("utf-8"), self.admin_setup_password.encode("utf-8")
            ):
                logger.warning("Admin account creation failed - invalid setup password", extra={"context": context})
                return AdminSetupResult(success=False, error="Invalid admin setup password")
            user = await self.users.create(
                email, name, get_password_hash(password), Role.ADMIN, sole_admin=True
            )
        except RecordConflictError as exc:
            logger.warning("Admin account creation failed", extra={"context": {**context, "error": exc.message}})
            return AdminSetupResult(success=False, error=exc.message)
        except Exception:
            logger.error("Unexpected error during admin account creation", exc_info=True, extra={"context": context})
            return AdminSetupResult(success=False, error=UNEXPECTED_ERROR)
        logger.info("Admin account created successfully", extra={"context": {**context, "user_id": user.id}})
        return AdminSetupResult(success=True, user=user.to_identity())

    async def get_profile(self, user_id: str) -> Optional[User]:
        try:
            return await self.users.find_by_id(user_id)
        except Exception:
            logger.error("Error fetching user data", exc_info=True, extra={"context": {"user_id": user_id}})
            return None

    async def update_profile(
        self, user_id: str, name: Optional[str] = None, email: Optional[str] = None
    ) -> ProfileResult:
        context = {"user_id": user_id}
        if name is not None and not name.strip():
            return ProfileResult(error="Name cannot be empty")
        if email is not None and not email.strip():
            return ProfileResult(error="Email cannot be empty")
        try:
            user = await self.users.find_by_id(user_id)
            if user is None:
                return ProfileResult(error="User not found", not_found=True)
            if email is not None and normalize_email(email) != user.email:
                other = await self.users.find_by_email(email)
                if other is not None and other.id != user_id:
                    return ProfileResult(error="Email already in use by another account")
            updated = await self.users.update(user_id, UserProfilePatch(name=name, email=email))
        except Exception:
            logger.error("Error updating user profile", exc_info=True, extra={"context": context})
            return ProfileResult(error="Failed to update profile")
        if updated is None:
            return ProfileResult(error="User not found", not_found=True)
        logger.info(
            "User profile updated",
            extra={"context": {**context, "fields": [f for f, v in (("name", name), ("email", email)) if v is not None]}},
        )
        return ProfileResult(user=updated)

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> PasswordChangeResult:
        context = {"user_id": user_id}
        try:
            user = await self.users.find_by_id(user_id)
            if user is None:
                return PasswordChangeResult(success=False, error="User not found")
            if not verify_password(current_password, user.password_hash):
                logger.warning("Password change with incorrect current password", extra={"context": context})
                return PasswordChangeResult(success=False, error="Current password is incorrect")
            await self.users.update(user_id, UserProfilePatch(password_hash=get_password_hash(new_password)))
        except Exception:
            logger.error("Error changing password", exc_info=True, extra={"context": context})
            return PasswordChangeResult(success=False, error="Failed to change password")
        logger.info("User password changed", extra={"context": context})
        return PasswordChangeResult(success=True)
