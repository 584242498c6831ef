"""Abuse-report ledger and its moderation aggregates.

A user may report a given target once, ever. Moderators move reports from
pending to reviewed; nothing in the service moves a report to resolved.
"""

from datetime import datetime, timedelta, timezone
from typing import Final
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.exceptions import (
    ConflictError,
    DuplicateReportError,
    NotFoundError,
    SelfActionError,
    ValidationError,
)
from skillswap.logging_config import get_logger
from skillswap.models import REPORT_REASONS, Report, ReportStatus, User
from skillswap.schemas import (
    MostReportedEntry,
    Pagination,
    ReasonCount,
    ReportedUser,
    ReportListData,
    ReportListQuery,
    ReportOut,
    ReportStats,
    UserSummary,
    clamp_limit,
)
from skillswap.services.user_service import get_users_by_ids

logger = get_logger(__name__)

MAX_REPORT_MESSAGE_LENGTH: Final[int] = 500
MAX_RESOLUTION_LENGTH: Final[int] = 1000
MAX_PAGE_SIZE: Final[int] = 100
RECENT_WINDOW: Final[timedelta] = timedelta(days=7)
MOST_REPORTED_LIMIT: Final[int] = 10

_SORT_COLUMNS = {
    "timestamp": Report.timestamp,
    "reason": Report.reason,
}


def to_report_out(report: Report, users: dict[UUID, User]) -> ReportOut:
    reporter = users.get(report.from_user_id)
    reported = users.get(report.to_user_id)
    out = ReportOut.model_validate(report)
    return out.model_copy(
        update={
            "reporter": UserSummary.model_validate(reporter) if reporter else None,
            "reported_user": UserSummary.model_validate(reported) if reported else None,
        }
    )


async def has_reported(db: AsyncSession, from_user_id: UUID, to_user_id: UUID) -> bool:
    existing = await db.execute(
        select(Report.id).where(
            Report.from_user_id == from_user_id,
            Report.to_user_id == to_user_id,
        )
    )
    return existing.first() is not None


async def file_report(
    db: AsyncSession,
    from_user_id: UUID,
    to_user_id: UUID,
    reason: str,
    message: str | None = None,
) -> ReportOut:
    if from_user_id == to_user_id:
        raise SelfActionError("Cannot report yourself", "self_report")

    target = await db.get(User, to_user_id)
    if target is None:
        raise NotFoundError("Reported user not found", "user_not_found")

    if await has_reported(db, from_user_id, to_user_id):
        raise DuplicateReportError()

    if reason not in REPORT_REASONS:
        raise ValidationError("Invalid report reason", "invalid_reason")
    body = (message or "").strip()
    if len(body) > MAX_REPORT_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message cannot exceed {MAX_REPORT_MESSAGE_LENGTH} characters"
        )

    report = Report(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        reason=reason,
        message=body,
    )
    db.add(report)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent report for the same pair.
        await db.rollback()
        raise DuplicateReportError()

    logger.info(
        "report_filed",
        report_id=str(report.id),
        from_user=str(from_user_id),
        to_user=str(to_user_id),
        reason=reason,
    )
    users = await get_users_by_ids(db, [from_user_id, to_user_id])
    return to_report_out(report, users)


async def review_report(
    db: AsyncSession,
    report_id: UUID,
    reviewer_id: UUID,
    resolution: str | None = None,
) -> ReportOut:
    """Mark a report reviewed, stamping the reviewer and time."""
    report = await db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found", "report_not_found")
    if report.status == ReportStatus.resolved.value:
        raise ConflictError("Report has already been resolved", "report_resolved")

    if resolution is not None:
        resolution = resolution.strip()
        if len(resolution) > MAX_RESOLUTION_LENGTH:
            raise ValidationError(
                f"Resolution cannot exceed {MAX_RESOLUTION_LENGTH} characters"
            )

    report.status = ReportStatus.reviewed.value
    report.reviewed_by = reviewer_id
    report.reviewed_at = datetime.now(timezone.utc)
    if resolution:
        report.resolution = resolution
    await db.commit()
    await db.refresh(report)

    logger.info("report_reviewed", report_id=str(report.id), reviewer=str(reviewer_id))
    users = await get_users_by_ids(db, [report.from_user_id, report.to_user_id])
    return to_report_out(report, users)


async def list_reports(db: AsyncSession, params: ReportListQuery) -> ReportListData:
    if params.reason != "all" and params.reason not in REPORT_REASONS:
        raise ValidationError("Invalid report reason", "invalid_reason")
    limit = clamp_limit(params.limit, MAX_PAGE_SIZE)

    query = select(Report)
    if params.reason != "all":
        query = query.where(Report.reason == params.reason)
    if params.status != "all":
        query = query.where(Report.status == params.status)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0

    sort_column = _SORT_COLUMNS[params.sort_by]
    ordering = sort_column.asc() if params.sort_order == "asc" else sort_column.desc()
    rows = (
        await db.execute(
            query.order_by(ordering, Report.id)
            .offset((params.page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()

    users = await get_users_by_ids(
        db, {uid for r in rows for uid in (r.from_user_id, r.to_user_id)}
    )
    return ReportListData(
        reports=[to_report_out(r, users) for r in rows],
        pagination=Pagination.build(params.page, limit, total),
        reason_counts=await reason_counts(db),
        filters={
            "reason": params.reason,
            "status": params.status,
            "sortBy": params.sort_by,
            "sortOrder": params.sort_order,
        },
    )


async def reason_counts(db: AsyncSession) -> list[ReasonCount]:
    """Report count per reason over the whole ledger, largest first."""
    count = func.count().label("count")
    rows = await db.execute(
        select(Report.reason, count)
        .group_by(Report.reason)
        .order_by(count.desc(), Report.reason)
    )
    return [ReasonCount(reason=reason, count=n) for reason, n in rows.all()]


async def report_stats(db: AsyncSession) -> ReportStats:
    total = (await db.execute(select(func.count()).select_from(Report))).scalar() or 0

    since = datetime.now(timezone.utc) - RECENT_WINDOW
    recent = (
        await db.execute(
            select(func.count()).select_from(Report).where(Report.timestamp >= since)
        )
    ).scalar() or 0

    report_count = func.count(Report.id).label("report_count")
    most_reported = await db.execute(
        select(User.id, User.name, User.email, report_count)
        .join(Report, Report.to_user_id == User.id)
        .group_by(User.id, User.name, User.email)
        .order_by(report_count.desc(), User.name)
        .limit(MOST_REPORTED_LIMIT)
    )

    return ReportStats(
        total_reports=total,
        reason_breakdown={rc.reason: rc.count for rc in await reason_counts(db)},
        recent_reports=recent,
        most_reported_users=[
            MostReportedEntry(
                user=ReportedUser(id=row.id, name=row.name, email=row.email),
                report_count=row.report_count,
            )
            for row in most_reported.all()
        ],
    )
