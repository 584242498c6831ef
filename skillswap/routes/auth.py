"""Authentication endpoints: register, login, refresh, logout."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth import (
    REFRESH_TOKEN_TTL,
    create_access_token,
    create_refresh_token,
    decode_jwt,
    get_current_user,
)
from skillswap.database import get_db
from skillswap.exceptions import AuthenticationError, AuthorizationError
from skillswap.logging_config import get_logger
from skillswap.models import User
from skillswap.redis import (
    get_redis,
    refresh_token_matches,
    revoke_refresh_token,
    store_refresh_token,
)
from skillswap.schemas import (
    ApiResponse,
    AuthData,
    TokenRefreshRequest,
    UserLoginRequest,
    UserProfile,
    UserRegisterRequest,
)
from skillswap.services import user_service

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


async def _issue_tokens(user: User) -> AuthData:
    user_id = str(user.id)
    access_token = create_access_token(user_id)
    refresh_token = create_refresh_token(user_id)
    await store_refresh_token(get_redis(), user_id, refresh_token, REFRESH_TOKEN_TTL)
    return AuthData(
        token=access_token,
        refresh_token=refresh_token,
        user=UserProfile.model_validate(user),
    )


@router.post("/register", response_model=ApiResponse[AuthData], status_code=201)
@router.post("/signup", response_model=ApiResponse[AuthData], status_code=201, include_in_schema=False)
async def register(
    body: UserRegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register a new user and log them in."""
    user = await user_service.register(db, body)
    return ApiResponse(message="User registered successfully", data=await _issue_tokens(user))


@router.post("/login", response_model=ApiResponse[AuthData])
async def login(
    body: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.authenticate(db, body.email, body.password)
    logger.info("user_login", user_id=str(user.id))
    return ApiResponse(message="Login successful", data=await _issue_tokens(user))


@router.post("/refresh", response_model=ApiResponse[AuthData])
async def refresh(
    body: TokenRefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange a live refresh token for a new token pair."""
    user_id = decode_jwt(body.refresh_token, expected_type="refresh")
    if not await refresh_token_matches(get_redis(), str(user_id), body.refresh_token):
        raise AuthenticationError("Refresh token revoked or expired", "invalid_token")

    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Invalid token. User not found.", "invalid_token")
    if user.is_blocked:
        raise AuthorizationError("Your account has been blocked", "account_blocked")

    return ApiResponse(message="Token refreshed", data=await _issue_tokens(user))


@router.post("/logout", response_model=ApiResponse[None])
async def logout(
    user: User = Depends(get_current_user),
):
    await revoke_refresh_token(get_redis(), str(user.id))
    logger.info("user_logout", user_id=str(user.id))
    return ApiResponse(message="Logged out")
