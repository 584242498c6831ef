"""Moderation surface: dashboard aggregates, user listing, blocking, deletion.

Every aggregate here is computed from the ledgers on each call.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Final
from uuid import UUID

from sqlalchemy import String, case, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.exceptions import AuthorizationError, ConflictError
from skillswap.logging_config import get_logger
from skillswap.models import CollaborationRequest, Message, Report, User, XpAward
from skillswap.schemas import (
    AdminUserListData,
    AdminUserQuery,
    AdminUserRow,
    AdminUserStats,
    BadgeCount,
    BlockStatus,
    DailyCount,
    DashboardStats,
    Pagination,
    PeriodTotals,
    SkillCount,
    UserTotals,
    clamp_limit,
)
from skillswap.services.user_service import get_user

logger = get_logger(__name__)

MAX_PAGE_SIZE: Final[int] = 100
TOP_SKILLS_LIMIT: Final[int] = 10
MONTH_WINDOW: Final[timedelta] = timedelta(days=30)
GROWTH_WINDOW: Final[timedelta] = timedelta(days=7)

_SORT_COLUMNS = {
    "name": User.name,
    "email": User.email,
    "xp": User.xp,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}


def _utc_day(dt: datetime) -> str:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date().isoformat()


async def _count(db: AsyncSession, model, *conditions) -> int:
    query = select(func.count()).select_from(model)
    if conditions:
        query = query.where(*conditions)
    return (await db.execute(query)).scalar() or 0


async def _period_totals(db: AsyncSession, model, column, since: datetime) -> PeriodTotals:
    return PeriodTotals(
        total=await _count(db, model),
        new_this_month=await _count(db, model, column >= since),
    )


async def top_skills(db: AsyncSession, limit: int = TOP_SKILLS_LIMIT) -> list[SkillCount]:
    rows = await db.execute(select(User.skills))
    counts: Counter[str] = Counter()
    for (skills,) in rows.all():
        counts.update(skills or [])
    return [SkillCount(skill=s, count=n) for s, n in counts.most_common(limit)]


async def user_growth(db: AsyncSession, since: datetime) -> list[DailyCount]:
    """New users per UTC day since ``since``, oldest day first."""
    rows = await db.execute(select(User.created_at).where(User.created_at >= since))
    per_day = Counter(_utc_day(created) for (created,) in rows.all())
    return [DailyCount(date=day, count=per_day[day]) for day in sorted(per_day)]


async def dashboard(db: AsyncSession) -> DashboardStats:
    now = datetime.now(timezone.utc)
    month_ago = now - MONTH_WINDOW

    users = await _period_totals(db, User, User.created_at, month_ago)
    return DashboardStats(
        users=UserTotals(
            total=users.total,
            new_this_month=users.new_this_month,
            blocked=await _count(db, User, User.is_blocked.is_(True)),
            growth=await user_growth(db, now - GROWTH_WINDOW),
        ),
        requests=await _period_totals(
            db, CollaborationRequest, CollaborationRequest.created_at, month_ago
        ),
        reports=await _period_totals(db, Report, Report.timestamp, month_ago),
        chats=await _period_totals(db, Message, Message.timestamp, month_ago),
        top_skills=await top_skills(db),
    )


def _count_true(column):
    return func.coalesce(func.sum(case((column.is_(True), 1), else_=0)), 0)


async def _user_stats(db: AsyncSession) -> AdminUserStats:
    row = (
        await db.execute(
            select(
                func.count().label("total"),
                _count_true(User.is_blocked).label("blocked"),
                _count_true(User.is_public).label("public"),
                func.avg(User.xp).label("average_xp"),
            ).select_from(User)
        )
    ).one()
    total = int(row.total)
    blocked = int(row.blocked)
    return AdminUserStats(
        total_users=total,
        blocked_users=blocked,
        active_users=total - blocked,
        public_profiles=int(row.public),
        average_xp=round(float(row.average_xp or 0), 2),
    )


async def _badge_distribution(db: AsyncSession) -> list[BadgeCount]:
    count = func.count().label("count")
    rows = await db.execute(
        select(User.badge, count).group_by(User.badge).order_by(count.desc(), User.badge)
    )
    return [BadgeCount(badge=badge, count=n) for badge, n in rows.all()]


async def list_users(db: AsyncSession, params: AdminUserQuery) -> AdminUserListData:
    limit = clamp_limit(params.limit, MAX_PAGE_SIZE)

    query = select(User)
    if params.search:
        pattern = f"%{params.search}%"
        query = query.where(
            or_(
                User.name.ilike(pattern),
                User.email.ilike(pattern),
                cast(User.skills, String).ilike(pattern),
            )
        )
    if params.status == "blocked":
        query = query.where(User.is_blocked.is_(True))
    elif params.status == "active":
        query = query.where(User.is_blocked.is_(False))
    if params.badge != "all":
        query = query.where(User.badge == params.badge)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0

    sort_column = _SORT_COLUMNS[params.sort_by]
    ordering = sort_column.asc() if params.sort_order == "asc" else sort_column.desc()
    rows = (
        await db.execute(
            query.order_by(ordering, User.id)
            .offset((params.page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()

    return AdminUserListData(
        users=[AdminUserRow.model_validate(u) for u in rows],
        pagination=Pagination.build(params.page, limit, total),
        stats=await _user_stats(db),
        badge_distribution=await _badge_distribution(db),
        filters={
            "search": params.search or "",
            "status": params.status,
            "badge": params.badge,
            "sortBy": params.sort_by,
            "sortOrder": params.sort_order,
        },
    )


async def _set_blocked(db: AsyncSession, user_id: UUID, blocked: bool, admin_id: UUID) -> BlockStatus:
    user = await get_user(db, user_id)
    if blocked:
        if user.is_blocked:
            raise ConflictError("User is already blocked", "already_blocked")
        if user.is_admin:
            raise AuthorizationError("Cannot block admin users", "admin_protected")
    elif not user.is_blocked:
        raise ConflictError("User is not blocked", "not_blocked")

    user.is_blocked = blocked
    await db.commit()
    await db.refresh(user)

    logger.info(
        "user_blocked" if blocked else "user_unblocked",
        user_id=str(user.id),
        admin_id=str(admin_id),
    )
    return BlockStatus.model_validate(user)


async def block_user(db: AsyncSession, user_id: UUID, admin_id: UUID) -> BlockStatus:
    return await _set_blocked(db, user_id, True, admin_id)


async def unblock_user(db: AsyncSession, user_id: UUID, admin_id: UUID) -> BlockStatus:
    return await _set_blocked(db, user_id, False, admin_id)


async def delete_user(db: AsyncSession, user_id: UUID, admin_id: UUID) -> UUID:
    """Delete a user and every row that references them, in one transaction."""
    user = await get_user(db, user_id)
    if user.is_admin:
        raise AuthorizationError("Cannot delete admin users", "admin_protected")

    request_ids = select(CollaborationRequest.id).where(
        or_(
            CollaborationRequest.from_user_id == user_id,
            CollaborationRequest.to_user_id == user_id,
        )
    )
    statements = [
        delete(XpAward).where(
            or_(XpAward.user_id == user_id, XpAward.request_id.in_(request_ids))
        ),
        delete(Message).where(
            or_(Message.from_user_id == user_id, Message.to_user_id == user_id)
        ),
        delete(CollaborationRequest).where(
            or_(
                CollaborationRequest.from_user_id == user_id,
                CollaborationRequest.to_user_id == user_id,
            )
        ),
        delete(Report).where(
            or_(Report.from_user_id == user_id, Report.to_user_id == user_id)
        ),
        update(Report).where(Report.reviewed_by == user_id).values(reviewed_by=None),
    ]
    try:
        for statement in statements:
            await db.execute(statement.execution_options(synchronize_session=False))
        await db.delete(user)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("user_deleted", user_id=str(user_id), admin_id=str(admin_id))
    return user_id
