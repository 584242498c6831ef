"""Collaboration request endpoints."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth import get_current_user
from skillswap.database import get_db
from skillswap.models import User
from skillswap.schemas import (
    ApiResponse,
    CollaborationRequestOut,
    RequestDecisionData,
    RequestListData,
    RequestListQuery,
    RequestStats,
    SendRequestBody,
)
from skillswap.services import request_service
from skillswap.services.xp_service import COLLABORATION_XP

router = APIRouter(prefix="/request", tags=["requests"])

StatusFilter = Literal["all", "pending", "accepted", "rejected"]
SortField = Literal["createdAt", "updatedAt"]
SortOrder = Literal["asc", "desc"]


def list_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10),
    status: StatusFilter = Query("all"),
    sort_by: SortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query("desc", alias="sortOrder"),
) -> RequestListQuery:
    return RequestListQuery(
        page=page, limit=limit, status=status, sort_by=sort_by, sort_order=sort_order
    )


@router.get("/received", response_model=ApiResponse[RequestListData])
async def received_requests(
    params: RequestListQuery = Depends(list_query),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    data = await request_service.list_received(db, user.id, params)
    return ApiResponse(message="Received requests retrieved successfully", data=data)


@router.get("/sent", response_model=ApiResponse[RequestListData])
async def sent_requests(
    params: RequestListQuery = Depends(list_query),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    data = await request_service.list_sent(db, user.id, params)
    return ApiResponse(message="Sent requests retrieved successfully", data=data)


@router.get("/stats", response_model=ApiResponse[RequestStats])
async def request_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stats = await request_service.request_stats(db, user.id)
    return ApiResponse(message="Request stats retrieved successfully", data=stats)


@router.post("/{to_user_id}", response_model=ApiResponse[CollaborationRequestOut], status_code=201)
async def send_request(
    to_user_id: UUID,
    body: SendRequestBody | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Send a collaboration request to a public, unblocked user."""
    req = await request_service.send_request(
        db, user.id, to_user_id, body.message if body else None
    )
    return ApiResponse(message="Collaboration request sent successfully", data=req)


@router.post("/{request_id}/accept", response_model=ApiResponse[RequestDecisionData])
async def accept_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Accept a pending request addressed to the caller; both users earn XP."""
    req = await request_service.respond(db, request_id, user.id, "accept")
    return ApiResponse(
        message="Collaboration request accepted successfully",
        data=RequestDecisionData(request=req, xp_awarded=COLLABORATION_XP),
    )


@router.post("/{request_id}/reject", response_model=ApiResponse[RequestDecisionData])
async def reject_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    req = await request_service.respond(db, request_id, user.id, "reject")
    return ApiResponse(
        message="Collaboration request rejected",
        data=RequestDecisionData(request=req),
    )
