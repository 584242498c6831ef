"""Unit tests for registration, credentials, profiles and search."""

from uuid import uuid4

import pytest

from skillswap.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    UserNotFoundError,
    ValidationError,
)
from skillswap.models import RequestStatus
from skillswap.schemas import ProfileUpdateRequest, UserRegisterRequest, UserSearchQuery
from skillswap.services import user_service
from skillswap.services.user_service import normalize_phone, normalize_skills

TEST_PASSWORD = "secret123"


def _registration(**overrides) -> UserRegisterRequest:
    fields = {
        "name": "Ada Lovelace",
        "email": "Ada@Example.com",
        "phone": "+44 (20) 7946-0958",
        "password": "secret123",
    }
    fields.update(overrides)
    return UserRegisterRequest(**fields)


# ===========================================
# FIELD VALIDATION
# ===========================================


class TestFieldValidation:
    def test_phone_accepts_formatting(self):
        assert normalize_phone(" +1 (555) 000-1234 ") == "+1 (555) 000-1234"

    @pytest.mark.parametrize("phone", ["0123", "phone", "+", "1" * 17])
    def test_phone_rejects_invalid(self, phone):
        with pytest.raises(ValidationError):
            normalize_phone(phone)

    def test_skills_trimmed_and_blank_dropped(self):
        assert normalize_skills([" Python ", "", "  ", "React"]) == ["Python", "React"]

    def test_too_many_skills(self):
        with pytest.raises(ValidationError):
            normalize_skills([f"s{i}" for i in range(21)])


# ===========================================
# REGISTRATION & LOGIN
# ===========================================


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_normalizes_email(self, db_session):
        user = await user_service.register(db_session, _registration())

        assert user.email == "ada@example.com"
        assert user.xp == 0
        assert user.badge == "Beginner"
        assert user.is_public is True
        assert user.role == "user"
        assert user.password_hash != "secret123"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, db_session):
        await user_service.register(db_session, _registration())
        with pytest.raises(ConflictError):
            await user_service.register(db_session, _registration(email="ada@example.com"))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "A"},
            {"email": "not-an-email"},
            {"phone": "abc"},
            {"password": "short"},
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_fields(self, db_session, overrides):
        with pytest.raises(ValidationError):
            await user_service.register(db_session, _registration(**overrides))


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_valid_credentials(self, db_session, make_user):
        user = await make_user(email="ada@example.com")
        found = await user_service.authenticate(db_session, "ADA@example.com", TEST_PASSWORD)
        assert found.id == user.id

    @pytest.mark.asyncio
    async def test_wrong_password(self, db_session, make_user):
        await make_user(email="ada@example.com")
        with pytest.raises(AuthenticationError):
            await user_service.authenticate(db_session, "ada@example.com", "wrong-password")

    @pytest.mark.asyncio
    async def test_unknown_email(self, db_session):
        with pytest.raises(AuthenticationError):
            await user_service.authenticate(db_session, "ghost@example.com", TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_blocked_account(self, db_session, make_user):
        await make_user(email="ada@example.com", is_blocked=True)
        with pytest.raises(AuthorizationError):
            await user_service.authenticate(db_session, "ada@example.com", TEST_PASSWORD)


# ===========================================
# PROFILES
# ===========================================


class TestProfiles:
    @pytest.mark.asyncio
    async def test_partial_update(self, db_session, make_user):
        user = await make_user(name="Ada", bio="old bio")

        updated = await user_service.update_profile(
            db_session,
            user,
            ProfileUpdateRequest(skills=[" Python ", "SQL"], is_public=False),
        )

        assert updated.name == "Ada"
        assert updated.bio == "old bio"
        assert updated.skills == ["Python", "SQL"]
        assert updated.is_public is False

    @pytest.mark.asyncio
    async def test_update_to_taken_email(self, db_session, make_user):
        await make_user(email="taken@example.com")
        user = await make_user()
        with pytest.raises(ConflictError):
            await user_service.update_profile(
                db_session, user, ProfileUpdateRequest(email="taken@example.com")
            )

    @pytest.mark.asyncio
    async def test_bio_too_long(self, db_session, make_user):
        user = await make_user()
        with pytest.raises(ValidationError):
            await user_service.update_profile(
                db_session, user, ProfileUpdateRequest(bio="x" * 501)
            )

    @pytest.mark.asyncio
    async def test_private_profile_hidden_from_others(self, db_session, make_user):
        viewer = await make_user()
        private = await make_user(is_public=False)

        with pytest.raises(AuthorizationError):
            await user_service.get_visible_user(db_session, private.id, viewer.id)
        own = await user_service.get_visible_user(db_session, private.id, private.id)
        assert own.id == private.id

    @pytest.mark.asyncio
    async def test_visible_user_has_level(self, db_session, make_user):
        viewer = await make_user()
        other = await make_user(xp=250)

        out = await user_service.get_visible_user(db_session, other.id, viewer.id)

        assert out.level == 3
        assert out.next_level_xp == 300
        assert out.progress_to_next_level == 50

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, make_user):
        viewer = await make_user()
        with pytest.raises(UserNotFoundError):
            await user_service.get_visible_user(db_session, uuid4(), viewer.id)


# ===========================================
# SEARCH & STATS
# ===========================================


class TestSearch:
    @pytest.mark.asyncio
    async def test_excludes_self_private_and_blocked(self, db_session, make_user):
        me = await make_user(skills=["Python"])
        visible = await make_user(skills=["Python"])
        await make_user(skills=["Python"], is_public=False)
        await make_user(skills=["Python"], is_blocked=True)

        data = await user_service.search_users(
            db_session, me.id, UserSearchQuery(skills=["Python"])
        )

        assert [u.id for u in data.users] == [visible.id]
        assert data.pagination.total == 1

    @pytest.mark.asyncio
    async def test_any_skill_matches_exact_element(self, db_session, make_user):
        me = await make_user()
        py = await make_user(skills=["Python", "SQL"])
        go = await make_user(skills=["Go"])
        await make_user(skills=["Python3"])

        data = await user_service.search_users(
            db_session, me.id, UserSearchQuery(skills=["Python", "Go"], sort_by="name", sort_order="asc")
        )

        assert {u.id for u in data.users} == {py.id, go.id}

    @pytest.mark.asyncio
    async def test_xp_range_and_sort(self, db_session, make_user):
        me = await make_user()
        low = await make_user(xp=10)
        mid = await make_user(xp=150)
        high = await make_user(xp=400)

        data = await user_service.search_users(
            db_session, me.id, UserSearchQuery(min_xp=10, max_xp=400)
        )
        assert [u.id for u in data.users] == [high.id, mid.id, low.id]

        data = await user_service.search_users(
            db_session, me.id, UserSearchQuery(min_xp=100, max_xp=200)
        )
        assert [u.id for u in data.users] == [mid.id]

    @pytest.mark.asyncio
    async def test_name_is_case_insensitive(self, db_session, make_user):
        me = await make_user()
        ada = await make_user(name="Ada Lovelace")
        await make_user(name="Grace Hopper")

        data = await user_service.search_users(db_session, me.id, UserSearchQuery(name="love"))
        assert [u.id for u in data.users] == [ada.id]

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, db_session, make_user):
        me = await make_user()
        data = await user_service.search_users(db_session, me.id, UserSearchQuery(limit=999))
        assert data.pagination.limit == 50


class TestSkillSuggestions:
    @pytest.mark.asyncio
    async def test_short_query_returns_nothing(self, db_session, make_user):
        await make_user(skills=["Python"])
        assert await user_service.skill_suggestions(db_session, "p") == []
        assert await user_service.skill_suggestions(db_session, None) == []

    @pytest.mark.asyncio
    async def test_ranked_by_frequency(self, db_session, make_user):
        await make_user(skills=["Python", "PyTorch"])
        await make_user(skills=["Python"])
        await make_user(skills=["PyTorch", "Python"])
        await make_user(skills=["Python"], is_blocked=True)

        suggestions = await user_service.skill_suggestions(db_session, "py")

        assert [(s.skill, s.count) for s in suggestions] == [("Python", 3), ("PyTorch", 2)]


class TestUserStats:
    @pytest.mark.asyncio
    async def test_counts_and_success_rate(self, db_session, make_user, make_request):
        me = await make_user(skills=["Python", "Go"], xp=100)
        a = await make_user()
        b = await make_user()
        c = await make_user()
        await make_request(me, a, status=RequestStatus.accepted.value)
        await make_request(me, b)
        await make_request(c, me, status=RequestStatus.accepted.value)

        stats = await user_service.user_stats(db_session, me)

        assert stats.requests_sent == 2
        assert stats.requests_received == 1
        assert stats.collaborations == 2
        assert stats.success_rate == 100
        assert stats.level == 2
        assert stats.skills_count == 2
        assert stats.profile_views == 0
