"""Abuse report endpoints. Listing, stats and review are admin-only."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth import get_current_user, require_admin
from skillswap.database import get_db
from skillswap.models import User
from skillswap.schemas import (
    ApiResponse,
    FileReportBody,
    ReportListData,
    ReportListQuery,
    ReportOut,
    ReportStats,
    ReviewReportBody,
)
from skillswap.services import report_service

router = APIRouter(prefix="/report", tags=["reports"])


def report_list_query(
    page: int = Query(1, ge=1),
    limit: int = Query(20),
    reason: str = Query("all"),
    status: Literal["all", "pending", "reviewed", "resolved"] = Query("all"),
    sort_by: Literal["timestamp", "reason"] = Query("timestamp", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
) -> ReportListQuery:
    return ReportListQuery(
        page=page,
        limit=limit,
        reason=reason,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
    )


async def list_reports(
    params: ReportListQuery = Depends(report_list_query),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    data = await report_service.list_reports(db, params)
    return ApiResponse(message="Reports retrieved successfully", data=data)


async def report_stats(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    stats = await report_service.report_stats(db)
    return ApiResponse(message="Report stats retrieved successfully", data=stats)


router.add_api_route(
    "/all", list_reports, methods=["GET"], response_model=ApiResponse[ReportListData]
)
router.add_api_route(
    "/stats", report_stats, methods=["GET"], response_model=ApiResponse[ReportStats]
)


@router.post("/{reported_user_id}", response_model=ApiResponse[ReportOut], status_code=201)
async def file_report(
    reported_user_id: UUID,
    body: FileReportBody,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    report = await report_service.file_report(
        db, user.id, reported_user_id, body.reason, body.message
    )
    return ApiResponse(message="Report submitted successfully", data=report)


@router.post("/{report_id}/review", response_model=ApiResponse[ReportOut])
async def review_report(
    report_id: UUID,
    body: ReviewReportBody | None = None,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    report = await report_service.review_report(
        db, report_id, admin.id, body.resolution if body else None
    )
    return ApiResponse(message="Report reviewed successfully", data=report)
