from typing import Annotated, Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.security import read_access_token
from app.models.user import User, UserRole
from app.services.invoice_calculations import InvoiceConfig
from app.services.settings_service import SettingsService


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; a missing header is reported as 401 below, not 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    if credentials is None:
        raise UnauthorizedError("Not authenticated")

    user_id = read_access_token(credentials.credentials)

    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise UnauthorizedError()

    user = await db.get(User, user_id)

    if user is None:
        logger.warning("User %s not found", user_id)
        raise UnauthorizedError()

    if not user.is_active:
        raise ForbiddenError("User account is deactivated")

    return user


def require_roles(*roles: UserRole):
    """
    Dependency factory to restrict a route to some roles.

    Usage:
        @router.post("", dependencies=[Depends(require_roles(UserRole.SUPERADMIN))])
        async def create_invoice():
            ...
    """
    allowed = {role.value for role in roles}

    async def role_dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in allowed:
            raise ForbiddenError(
                f"Access denied. Required role: {', '.join(sorted(allowed))}",
                {"role": user.role},
            )
        return user

    return role_dependency


async def get_invoice_config(db: Annotated[AsyncSession, Depends(get_db)]) -> InvoiceConfig:
    """Business settings snapshot for this request's invoice writes."""
    return await SettingsService(db).load_invoice_config()


# Role groups used across routers
ALL_ROLES = (UserRole.SUPERADMIN, UserRole.ADMIN, UserRole.EMPLOYEE)
MANAGERS = (UserRole.SUPERADMIN, UserRole.ADMIN)
SUPERADMIN_ONLY = (UserRole.SUPERADMIN,)

# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
Config = Annotated[InvoiceConfig, Depends(get_invoice_config)]
