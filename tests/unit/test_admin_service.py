"""Unit tests for the moderation surface."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from skillswap.exceptions import AuthorizationError, ConflictError, UserNotFoundError
from skillswap.models import (
    CollaborationRequest,
    Message,
    Report,
    RequestStatus,
    User,
    XpAward,
)
from skillswap.schemas import AdminUserQuery
from skillswap.services import admin_service, report_service, request_service


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class TestDashboard:
    @pytest.mark.asyncio
    async def test_totals_and_top_skills(self, db_session, make_user, make_request):
        alice = await make_user(skills=["Python", "SQL"])
        bob = await make_user(skills=["Python"])
        await make_user(skills=["Go"], is_blocked=True)
        await make_request(alice, bob, status=RequestStatus.accepted.value)
        db_session.add(Message(from_user_id=alice.id, to_user_id=bob.id, body="hi"))
        await db_session.commit()
        await report_service.file_report(db_session, alice.id, bob.id, "Other")

        stats = await admin_service.dashboard(db_session)

        assert stats.users.total == 3
        assert stats.users.new_this_month == 3
        assert stats.users.blocked == 1
        assert stats.requests.total == 1
        assert stats.chats.total == 1
        assert stats.reports.total == 1
        assert stats.top_skills[0].skill == "Python"
        assert stats.top_skills[0].count == 2

    @pytest.mark.asyncio
    async def test_growth_is_grouped_by_day(self, db_session, make_user):
        await make_user()
        await make_user()

        stats = await admin_service.dashboard(db_session)

        today = datetime.now(timezone.utc).date().isoformat()
        assert [(d.date, d.count) for d in stats.users.growth] == [(today, 2)]


# ---------------------------------------------------------------------------
# User listing
# ---------------------------------------------------------------------------


class TestListUsers:
    @pytest.mark.asyncio
    async def test_search_covers_name_email_and_skills(self, db_session, make_user):
        ada = await make_user(name="Ada")
        by_email = await make_user(email="ada.fan@example.com")
        by_skill = await make_user(skills=["Adapters"])
        await make_user(name="Grace")

        data = await admin_service.list_users(db_session, AdminUserQuery(search="ada"))

        assert {u.id for u in data.users} == {ada.id, by_email.id, by_skill.id}
        assert data.pagination.total == 3

    @pytest.mark.asyncio
    async def test_status_filter_and_stats(self, db_session, make_user):
        await make_user(xp=100)
        blocked = await make_user(is_blocked=True, xp=50, is_public=False)

        data = await admin_service.list_users(db_session, AdminUserQuery(status="blocked"))

        assert [u.id for u in data.users] == [blocked.id]
        assert data.stats.total_users == 2
        assert data.stats.blocked_users == 1
        assert data.stats.active_users == 1
        assert data.stats.public_profiles == 1
        assert data.stats.average_xp == 75.0

    @pytest.mark.asyncio
    async def test_badge_distribution(self, db_session, make_user):
        await make_user()
        await make_user()
        await make_user(badge="Expert", xp=700)

        data = await admin_service.list_users(db_session, AdminUserQuery())

        assert [(b.badge, b.count) for b in data.badge_distribution] == [
            ("Beginner", 2),
            ("Expert", 1),
        ]


# ---------------------------------------------------------------------------
# Blocking
# ---------------------------------------------------------------------------


class TestBlocking:
    @pytest.mark.asyncio
    async def test_block_then_unblock(self, db_session, make_user, make_admin):
        admin = await make_admin()
        user = await make_user()

        blocked = await admin_service.block_user(db_session, user.id, admin.id)
        assert blocked.is_blocked is True

        unblocked = await admin_service.unblock_user(db_session, user.id, admin.id)
        assert unblocked.is_blocked is False

    @pytest.mark.asyncio
    async def test_block_twice_conflicts(self, db_session, make_user, make_admin):
        admin = await make_admin()
        user = await make_user(is_blocked=True)
        with pytest.raises(ConflictError):
            await admin_service.block_user(db_session, user.id, admin.id)

    @pytest.mark.asyncio
    async def test_unblock_active_user_conflicts(self, db_session, make_user, make_admin):
        admin = await make_admin()
        user = await make_user()
        with pytest.raises(ConflictError):
            await admin_service.unblock_user(db_session, user.id, admin.id)

    @pytest.mark.asyncio
    async def test_admins_cannot_be_blocked(self, db_session, make_user, make_admin):
        admin = await make_admin()
        other_admin = await make_user(role="admin")
        with pytest.raises(AuthorizationError):
            await admin_service.block_user(db_session, other_admin.id, admin.id)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_cascades_every_ledger(self, db_session, make_user, make_admin, make_request):
        admin = await make_admin()
        doomed = await make_user()
        friend = await make_user()
        bystander = await make_user()
        other = await make_user()

        req = await make_request(doomed, friend)
        await request_service.respond(db_session, req.id, friend.id, "accept")
        await make_request(bystander, other)
        db_session.add(Message(from_user_id=friend.id, to_user_id=doomed.id, body="hi"))
        await db_session.commit()
        await report_service.file_report(db_session, friend.id, doomed.id, "Other")
        await report_service.file_report(db_session, bystander.id, other.id, "Other")

        deleted = await admin_service.delete_user(db_session, doomed.id, admin.id)

        assert deleted == doomed.id
        assert await db_session.get(User, doomed.id) is None
        assert await _count(db_session, CollaborationRequest) == 1
        assert await _count(db_session, Message) == 0
        assert await _count(db_session, Report) == 1
        assert await _count(db_session, XpAward) == 0
        # Friend keeps the XP already earned.
        friend_row = await db_session.get(User, friend.id, populate_existing=True)
        assert friend_row.xp == 50

    @pytest.mark.asyncio
    async def test_admin_cannot_be_deleted(self, db_session, make_user, make_admin):
        admin = await make_admin()
        other_admin = await make_user(role="admin")
        with pytest.raises(AuthorizationError):
            await admin_service.delete_user(db_session, other_admin.id, admin.id)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, make_admin):
        admin = await make_admin()
        with pytest.raises(UserNotFoundError):
            await admin_service.delete_user(db_session, uuid4(), admin.id)
