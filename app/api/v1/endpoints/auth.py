from fastapi import APIRouter, Depends

from app.api.deps import DB, CurrentUser, SUPERADMIN_ONLY, require_roles
from app.core.exceptions import UnauthorizedError
from app.schemas.auth import LoginRequest, TokenResponse, UserCreate, UserResponse
from app.services.auth_service import AuthService

router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: DB):
    """
    Authenticate user and return an access token.
    """
    auth_service = AuthService(db)

    user = await auth_service.authenticate_user(data.email, data.password)

    if not user:
        raise UnauthorizedError("Invalid email or password")

    access_token, expires_in = auth_service.create_token(user)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser):
    """Get the authenticated user."""
    return UserResponse.model_validate(current_user)


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=201,
    dependencies=[Depends(require_roles(*SUPERADMIN_ONLY))],
)
async def create_user(data: UserCreate, db: DB):
    """Create a staff account. Superadmin only."""
    user = await AuthService(db).create_user(data)
    return UserResponse.model_validate(user)
