"""JWT auth for users: token issue/verify, password hashing, FastAPI dependencies."""

import os
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from fastapi import Depends, Request
from passlib.hash import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.database import get_db
from skillswap.exceptions import AdminRequiredError, AuthenticationError, AuthorizationError
from skillswap.logging_config import bind_request_context, get_logger
from skillswap.models import User

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# JWT Configuration
# ---------------------------------------------------------------------------

JWT_SECRET = os.getenv("JWT_SECRET_KEY", "")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET_KEY environment variable is required")
JWT_ALGORITHM = "HS256"
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
JWT_REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("JWT_REFRESH_TOKEN_EXPIRE_DAYS", "7"))
REFRESH_TOKEN_TTL = JWT_REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600


def create_access_token(user_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": user_id, "exp": expire, "type": "access"}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {
        "sub": user_id,
        "exp": expire,
        "type": "refresh",
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str, expected_type: str = "access") -> UUID:
    """Verify a token and return the user id it was issued for."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired", "token_expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token", "invalid_token")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type", "invalid_token")
    try:
        return UUID(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid token payload", "invalid_token")


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# FastAPI Auth Dependencies
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency: extract and validate the Bearer access token.

    Returns the User ORM object. Missing or invalid tokens raise 401,
    blocked accounts raise 403.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Access denied. No token provided.", "missing_token")

    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        raise AuthenticationError("Access denied. No token provided.", "missing_token")

    user_id = decode_jwt(token, expected_type="access")
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Invalid token. User not found.", "invalid_token")
    if user.is_blocked:
        raise AuthorizationError("Your account has been blocked", "account_blocked")

    request_id = getattr(request.state, "request_id", None)
    if request_id:
        bind_request_context(request_id, user_id=str(user.id))
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency: the caller must hold the admin role."""
    if not user.is_admin:
        logger.warning("admin_access_denied", user_id=str(user.id))
        raise AdminRequiredError()
    return user
