from typing import Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.core.exceptions import ConflictError
from app.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
)
from app.schemas.auth import UserCreate
from app.config import settings


logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for user login and token management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def authenticate_user(
        self,
        email: str,
        password: str
    ) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Args:
            email: User's email address
            password: Plain text password

        Returns:
            User object if authentication successful, None otherwise
        """
        user = await self.get_user_by_email(email)

        if user is None:
            return None

        if not verify_password(password, user.password_hash):
            return None

        if not user.is_active:
            return None

        return user

    def create_token(self, user: User) -> Tuple[str, int]:
        """
        Create an access token for a user.

        Returns:
            Tuple of (access_token, expires_in_seconds)
        """
        return create_access_token(user.id, user.role), settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    async def create_user(self, data: UserCreate) -> User:
        """Create a user. Emails are stored lowercased and must be unique."""
        if await self.get_user_by_email(data.email):
            raise ConflictError(f"User with email {data.email} already exists", {"email": data.email})

        user = User(
            email=data.email.strip().lower(),
            name=data.name.strip(),
            password_hash=get_password_hash(data.password),
            role=data.role.value,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("User created: %s (%s)", user.email, user.role)
        return user
