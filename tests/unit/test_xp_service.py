"""Unit tests for XP levels, badges and the award outbox."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from skillswap.models import RequestStatus, XpAward, XpAwardStatus
from skillswap.services.xp_service import (
    COLLABORATION_XP,
    apply_award,
    apply_pending_awards,
    compute_badge,
    compute_level,
    enqueue_collaboration_awards,
    level_fields,
)


class TestComputeLevel:
    def test_zero_xp_is_level_one(self):
        assert compute_level(0) == 1

    def test_level_boundaries(self):
        assert compute_level(99) == 1
        assert compute_level(100) == 2
        assert compute_level(250) == 3

    def test_negative_xp_clamps(self):
        assert compute_level(-10) == 1


class TestComputeBadge:
    @pytest.mark.parametrize(
        "xp, badge",
        [
            (0, "Beginner"),
            (99, "Beginner"),
            (100, "Collaborator"),
            (299, "Collaborator"),
            (300, "Skilled"),
            (599, "Skilled"),
            (600, "Expert"),
            (999, "Expert"),
            (1000, "Master"),
            (5000, "Master"),
        ],
    )
    def test_thresholds(self, xp, badge):
        assert compute_badge(xp) == badge


class TestLevelFields:
    def test_progress_within_level(self):
        assert level_fields(150) == {
            "level": 2,
            "next_level_xp": 200,
            "progress_to_next_level": 50,
        }

    def test_fresh_user(self):
        assert level_fields(0) == {
            "level": 1,
            "next_level_xp": 100,
            "progress_to_next_level": 0,
        }


# ---------------------------------------------------------------------------
# Outbox
# ---------------------------------------------------------------------------


class TestAwardOutbox:
    """Awards are staged with the accept and applied exactly once."""

    @pytest.mark.asyncio
    async def test_apply_pending_awards_credits_both_participants(
        self, db_session, make_user, make_request
    ):
        alice = await make_user()
        bob = await make_user()
        req = await make_request(alice, bob, status=RequestStatus.accepted.value)

        enqueue_collaboration_awards(db_session, req.id, (alice.id, bob.id))
        await db_session.commit()

        applied = await apply_pending_awards(db_session, request_id=req.id)
        assert applied == 2

        await db_session.refresh(alice)
        await db_session.refresh(bob)
        assert alice.xp == COLLABORATION_XP
        assert bob.xp == COLLABORATION_XP

    @pytest.mark.asyncio
    async def test_second_sweep_applies_nothing(self, db_session, make_user, make_request):
        alice = await make_user()
        bob = await make_user()
        req = await make_request(alice, bob, status=RequestStatus.accepted.value)
        enqueue_collaboration_awards(db_session, req.id, (alice.id, bob.id))
        await db_session.commit()

        assert await apply_pending_awards(db_session) == 2
        assert await apply_pending_awards(db_session) == 0

        await db_session.refresh(alice)
        assert alice.xp == COLLABORATION_XP

    @pytest.mark.asyncio
    async def test_apply_award_is_idempotent(self, db_session, make_user, make_request):
        alice = await make_user()
        bob = await make_user()
        req = await make_request(alice, bob, status=RequestStatus.accepted.value)
        awards = enqueue_collaboration_awards(db_session, req.id, (alice.id, bob.id))
        await db_session.commit()

        assert await apply_award(db_session, awards[0].id) is True
        assert await apply_award(db_session, awards[0].id) is False

    @pytest.mark.asyncio
    async def test_badge_follows_new_xp(self, db_session, make_user, make_request):
        alice = await make_user(xp=80)
        bob = await make_user()
        req = await make_request(alice, bob, status=RequestStatus.accepted.value)
        enqueue_collaboration_awards(db_session, req.id, (alice.id, bob.id))
        await db_session.commit()

        await apply_pending_awards(db_session, request_id=req.id)

        await db_session.refresh(alice)
        assert alice.xp == 130
        assert alice.badge == "Collaborator"

    @pytest.mark.asyncio
    async def test_unknown_award_id_is_not_applied(self, db_session):
        assert await apply_award(db_session, uuid4()) is False

    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_left_pending(
        self, db_session, make_user, make_request
    ):
        alice = await make_user()
        bob = await make_user()
        req = await make_request(alice, bob, status=RequestStatus.accepted.value)
        enqueue_collaboration_awards(db_session, req.id, (alice.id, bob.id))
        await db_session.commit()

        with patch(
            "skillswap.services.xp_service.apply_award",
            side_effect=RuntimeError("db hiccup"),
        ):
            applied = await apply_pending_awards(db_session, request_id=req.id)
        assert applied == 0

        rows = (
            await db_session.execute(
                select(XpAward).execution_options(populate_existing=True)
            )
        ).scalars().all()
        assert len(rows) == 2
        assert all(r.status == XpAwardStatus.pending.value for r in rows)
        assert all(r.attempts == 1 for r in rows)
        assert all(r.last_error == "db hiccup" for r in rows)

        # The next sweep picks them up.
        assert await apply_pending_awards(db_session) == 2

    @pytest.mark.asyncio
    async def test_failing_awards_do_not_starve_newer_ones(
        self, db_session, make_user, make_request
    ):
        alice, bob, carol, dave = [await make_user() for _ in range(4)]
        stuck_req = await make_request(alice, bob, status=RequestStatus.accepted.value)
        fresh_req = await make_request(carol, dave, status=RequestStatus.accepted.value)
        stuck = enqueue_collaboration_awards(db_session, stuck_req.id, (alice.id, bob.id))
        for award in stuck:
            award.created_at = datetime.now(timezone.utc) - timedelta(hours=1)
        fresh = enqueue_collaboration_awards(db_session, fresh_req.id, (carol.id, dave.id))
        await db_session.commit()
        stuck_ids = {a.id for a in stuck}
        fresh_ids = {a.id for a in fresh}

        async def fail_stuck(db, award_id):
            if award_id in stuck_ids:
                raise RuntimeError("constraint violation")
            return await apply_award(db, award_id)

        applied = 0
        with patch("skillswap.services.xp_service.apply_award", new=fail_stuck):
            for _ in range(3):
                applied += await apply_pending_awards(db_session, batch_size=2)
        assert applied == 2

        rows = (
            await db_session.execute(
                select(XpAward).execution_options(populate_existing=True)
            )
        ).scalars().all()
        by_id = {r.id: r for r in rows}
        assert all(by_id[i].status == XpAwardStatus.applied.value for i in fresh_ids)
        assert all(by_id[i].status == XpAwardStatus.pending.value for i in stuck_ids)
        assert all(by_id[i].attempts == 2 for i in stuck_ids)
