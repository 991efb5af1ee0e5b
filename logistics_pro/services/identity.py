"""
Identity Gate and account helpers

The gate turns a bearer token into a Principal. Registration and login are
thin wrappers over bcrypt + JWT so the service can issue its own tokens.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from logistics_pro.core.exceptions import ConflictError, StoreFailureError, UnauthorizedError
from logistics_pro.core.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from logistics_pro.models.user import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller. Derived per request, never persisted."""
    id: int
    role: UserRole

    @property
    def is_company(self) -> bool:
        return self.role == UserRole.COMPANY

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER


def principal_for(user: User) -> Principal:
    return Principal(id=user.id, role=UserRole(user.role))


def issue_token(user: User) -> str:
    return create_access_token(user.id, user.role)


class IdentityGate:
    """Verifies bearer credentials."""

    async def authenticate(self, token: Optional[str], db: Optional[AsyncSession] = None) -> Principal:
        """
        Resolve a token to a Principal.

        With a session, the user row is authoritative: it must exist and be
        active, and its current role wins over the role claim.
        """
        if not token:
            raise UnauthorizedError("Not authenticated")

        payload = decode_token(token)
        if not payload:
            raise UnauthorizedError("Invalid or expired token")

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise UnauthorizedError("Invalid or expired token")

        if db is None:
            try:
                return Principal(id=user_id, role=UserRole(payload.get("role")))
            except ValueError:
                raise UnauthorizedError("Invalid or expired token")

        try:
            result = await db.execute(select(User).where(User.id == user_id))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.exception(f"Store failure while authenticating user {user_id}")
            raise StoreFailureError() from exc

        if not user:
            raise UnauthorizedError("User not found")
        if not user.is_active:
            raise UnauthorizedError("Account is disabled")

        return principal_for(user)


class AccountService:
    """Registration, login and push-token bookkeeping."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(
        self,
        phone: str,
        password: str,
        name: str,
        role: UserRole = UserRole.CLIENT,
        email: Optional[str] = None,
    ) -> Tuple[User, str]:
        existing = await self.db.execute(select(User.id).where(User.phone == phone))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Phone number already registered", code="PHONE_TAKEN")

        user = User(
            phone=phone,
            hashed_password=get_password_hash(password),
            name=name,
            role=UserRole(role).value,
            email=email,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # Concurrent registration with the same phone
            raise ConflictError("Phone number already registered", code="PHONE_TAKEN") from exc

        logger.info(f"Registered user {user.id} with role {user.role}")
        return user, issue_token(user)

    async def login(self, phone: str, password: str) -> Tuple[User, str]:
        result = await self.db.execute(select(User).where(User.phone == phone))
        user = result.scalar_one_or_none()

        if not user or not verify_password(password, user.hashed_password):
            raise UnauthorizedError("Invalid phone number or password")
        if not user.is_active:
            raise UnauthorizedError("Account is disabled")

        return user, issue_token(user)

    async def update_push_token(self, principal: Principal, fcm_token: Optional[str]) -> User:
        result = await self.db.execute(select(User).where(User.id == principal.id))
        user = result.scalar_one_or_none()
        if not user:
            raise UnauthorizedError("User not found")

        user.fcm_token = fcm_token
        await self.db.flush()
        return user
