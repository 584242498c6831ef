"""XP outbox, levels and badges.

XP is never granted inline with the event that earns it. The triggering
transaction writes ``XpAward`` rows; ``apply_award`` later moves each one
from pending to applied and bumps the user's counter in a single
transaction, so a crash between the two can only delay an award, never
duplicate or lose it.
"""

from datetime import datetime, timezone
from typing import Final
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.logging_config import get_logger
from skillswap.models import User, XpAward, XpAwardStatus

logger = get_logger(__name__)

COLLABORATION_XP: Final[int] = 50
XP_PER_LEVEL: Final[int] = 100

# (exclusive upper bound, badge), checked in order
BADGE_THRESHOLDS: Final[list[tuple[int, str]]] = [
    (100, "Beginner"),
    (300, "Collaborator"),
    (600, "Skilled"),
    (1000, "Expert"),
]
TOP_BADGE: Final[str] = "Master"


def compute_level(xp: int) -> int:
    return max(xp, 0) // XP_PER_LEVEL + 1


def compute_badge(xp: int) -> str:
    for bound, badge in BADGE_THRESHOLDS:
        if xp < bound:
            return badge
    return TOP_BADGE


def level_fields(xp: int) -> dict[str, int]:
    """Level, XP needed for the next level, and progress within the current one."""
    level = compute_level(xp)
    return {
        "level": level,
        "next_level_xp": level * XP_PER_LEVEL,
        "progress_to_next_level": max(xp, 0) % XP_PER_LEVEL,
    }


def enqueue_collaboration_awards(
    db: AsyncSession,
    request_id: UUID,
    user_ids: tuple[UUID, UUID],
) -> list[XpAward]:
    """Stage one award per participant; the caller commits."""
    awards = [
        XpAward(
            user_id=user_id,
            request_id=request_id,
            amount=COLLABORATION_XP,
            reason="collaboration_accepted",
        )
        for user_id in user_ids
    ]
    db.add_all(awards)
    return awards


async def apply_award(db: AsyncSession, award_id: UUID) -> bool:
    """Apply one pending award. Returns False if it was already applied."""
    now = datetime.now(timezone.utc)
    claimed = await db.execute(
        update(XpAward)
        .where(XpAward.id == award_id, XpAward.status == XpAwardStatus.pending.value)
        .values(status=XpAwardStatus.applied.value, applied_at=now)
        .returning(XpAward.user_id, XpAward.amount)
    )
    row = claimed.first()
    if row is None:
        await db.rollback()
        return False

    user_id, amount = row
    new_xp = (
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(xp=User.xp + amount)
            .returning(User.xp)
        )
    ).scalar_one()
    badge = compute_badge(new_xp)
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(badge=badge)
    )
    await db.commit()

    logger.info(
        "xp_awarded",
        award_id=str(award_id),
        user_id=str(user_id),
        amount=amount,
        new_xp=new_xp,
        badge=badge,
    )
    return True


async def _record_failure(db: AsyncSession, award_id: UUID, error: Exception) -> None:
    await db.execute(
        update(XpAward)
        .where(XpAward.id == award_id)
        .values(attempts=XpAward.attempts + 1, last_error=str(error)[:500])
    )
    await db.commit()


async def apply_pending_awards(
    db: AsyncSession,
    request_id: UUID | None = None,
    batch_size: int = 100,
) -> int:
    """Apply pending awards, optionally only those for one request.

    Each award is applied independently; a failure is recorded on the row
    and left pending for the next sweep. Awards with fewer failed attempts
    go first, so a row that keeps failing cannot hold back newer ones.
    Returns the number applied.
    """
    query = select(XpAward.id).where(XpAward.status == XpAwardStatus.pending.value)
    if request_id is not None:
        query = query.where(XpAward.request_id == request_id)
    query = query.order_by(XpAward.attempts, XpAward.created_at).limit(batch_size)
    award_ids = (await db.execute(query)).scalars().all()

    applied = 0
    for award_id in award_ids:
        try:
            if await apply_award(db, award_id):
                applied += 1
        except Exception as e:
            await db.rollback()
            logger.exception("xp_award_failed", award_id=str(award_id))
            await _record_failure(db, award_id, e)
    return applied
