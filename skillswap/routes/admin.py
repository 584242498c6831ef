"""Moderation endpoints. Every route requires the admin role."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth import require_admin
from skillswap.database import get_db
from skillswap.models import User
from skillswap.routes.reports import list_reports, report_stats
from skillswap.schemas import (
    AdminUserListData,
    AdminUserQuery,
    ApiResponse,
    BlockStatus,
    DashboardStats,
    DeletedUser,
    ReportListData,
    ReportStats,
)
from skillswap.services import admin_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/dashboard", response_model=ApiResponse[DashboardStats])
async def dashboard(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    stats = await admin_service.dashboard(db)
    return ApiResponse(message="Dashboard stats retrieved successfully", data=stats)


@router.get("/users", response_model=ApiResponse[AdminUserListData])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20),
    search: str | None = Query(None),
    status: Literal["all", "active", "blocked"] = Query("all"),
    badge: str = Query("all"),
    sort_by: Literal["name", "email", "xp", "createdAt", "updatedAt"] = Query(
        "createdAt", alias="sortBy"
    ),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    params = AdminUserQuery(
        page=page,
        limit=limit,
        search=search,
        status=status,
        badge=badge,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    data = await admin_service.list_users(db, params)
    return ApiResponse(message="Users retrieved successfully", data=data)


@router.put("/users/{user_id}/block", response_model=ApiResponse[BlockStatus])
async def block_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    result = await admin_service.block_user(db, user_id, admin.id)
    return ApiResponse(message="User blocked successfully", data=result)


@router.put("/users/{user_id}/unblock", response_model=ApiResponse[BlockStatus])
async def unblock_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    result = await admin_service.unblock_user(db, user_id, admin.id)
    return ApiResponse(message="User unblocked successfully", data=result)


@router.delete("/users/{user_id}", response_model=ApiResponse[DeletedUser])
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Delete a user together with their requests, messages, reports and XP awards."""
    deleted_id = await admin_service.delete_user(db, user_id, admin.id)
    return ApiResponse(
        message="User and all related data deleted successfully",
        data=DeletedUser(deleted_user_id=deleted_id),
    )


router.add_api_route(
    "/reports", list_reports, methods=["GET"], response_model=ApiResponse[ReportListData]
)
router.add_api_route(
    "/reports/stats", report_stats, methods=["GET"], response_model=ApiResponse[ReportStats]
)
