"""Unit tests for token handling and the auth dependencies."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import jwt
import pytest

from skillswap.auth import (
    JWT_ALGORITHM,
    JWT_SECRET,
    create_access_token,
    create_refresh_token,
    decode_jwt,
    get_current_user,
    hash_password,
    require_admin,
    verify_password,
)
from skillswap.exceptions import AdminRequiredError, AuthenticationError, AuthorizationError


def _request(authorization: str | None = None):
    request = MagicMock()
    request.headers = {"Authorization": authorization} if authorization else {}
    request.state = MagicMock(spec=[])
    return request


class TestTokens:
    def test_access_token_round_trip(self):
        user_id = uuid4()
        token = create_access_token(str(user_id))
        assert decode_jwt(token) == user_id

    def test_refresh_tokens_are_unique(self):
        user_id = str(uuid4())
        assert create_refresh_token(user_id) != create_refresh_token(user_id)

    def test_refresh_token_rejected_as_access(self):
        token = create_refresh_token(str(uuid4()))
        with pytest.raises(AuthenticationError, match="Invalid token type"):
            decode_jwt(token, expected_type="access")

    def test_access_token_rejected_as_refresh(self):
        token = create_access_token(str(uuid4()))
        with pytest.raises(AuthenticationError):
            decode_jwt(token, expected_type="refresh")

    def test_expired_token(self):
        token = jwt.encode(
            {
                "sub": str(uuid4()),
                "type": "access",
                "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
            },
            JWT_SECRET,
            algorithm=JWT_ALGORITHM,
        )
        with pytest.raises(AuthenticationError) as exc_info:
            decode_jwt(token)
        assert exc_info.value.error_type == "token_expired"

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "access"}, "another-secret", algorithm=JWT_ALGORITHM
        )
        with pytest.raises(AuthenticationError):
            decode_jwt(token)

    def test_garbage_subject(self):
        token = jwt.encode(
            {"sub": "not-a-uuid", "type": "access"}, JWT_SECRET, algorithm=JWT_ALGORITHM
        )
        with pytest.raises(AuthenticationError, match="payload"):
            decode_jwt(token)


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = hash_password("secret123")
        assert verify_password("secret123", hashed)
        assert not verify_password("secret124", hashed)

    def test_malformed_hash(self):
        assert verify_password("secret123", "not-a-bcrypt-hash") is False


class TestGetCurrentUser:
    @pytest.mark.asyncio
    async def test_missing_header(self, db_session):
        with pytest.raises(AuthenticationError, match="No token provided"):
            await get_current_user(_request(), db_session)

    @pytest.mark.asyncio
    async def test_non_bearer_header(self, db_session):
        with pytest.raises(AuthenticationError):
            await get_current_user(_request("Basic abc"), db_session)

    @pytest.mark.asyncio
    async def test_resolves_user(self, db_session, make_user):
        user = await make_user()
        token = create_access_token(str(user.id))

        found = await get_current_user(_request(f"Bearer {token}"), db_session)

        assert found.id == user.id

    @pytest.mark.asyncio
    async def test_deleted_user(self, db_session):
        token = create_access_token(str(uuid4()))
        with pytest.raises(AuthenticationError, match="User not found"):
            await get_current_user(_request(f"Bearer {token}"), db_session)

    @pytest.mark.asyncio
    async def test_blocked_user(self, db_session, make_user):
        user = await make_user(is_blocked=True)
        token = create_access_token(str(user.id))
        with pytest.raises(AuthorizationError) as exc_info:
            await get_current_user(_request(f"Bearer {token}"), db_session)
        assert exc_info.value.status_code == 403


class TestRequireAdmin:
    @pytest.mark.asyncio
    async def test_admin_passes(self, make_admin):
        admin = await make_admin()
        assert await require_admin(admin) is admin

    @pytest.mark.asyncio
    async def test_regular_user_rejected(self, make_user):
        user = await make_user()
        with pytest.raises(AdminRequiredError):
            await require_admin(user)
