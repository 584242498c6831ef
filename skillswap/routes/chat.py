"""Gated messaging endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth import get_current_user
from skillswap.database import get_db
from skillswap.models import User
from skillswap.schemas import (
    ApiResponse,
    ChatHistoryData,
    ChatListData,
    MarkReadData,
    MessageOut,
    SendMessageBody,
)
from skillswap.services import chat_service

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("", response_model=ApiResponse[ChatListData])
async def chat_list(
    page: int = Query(1, ge=1),
    limit: int = Query(20),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Everyone the caller collaborates with, most recent conversation first."""
    data = await chat_service.chat_list(db, user.id, page, limit)
    return ApiResponse(message="Chat list retrieved successfully", data=data)


@router.post("/{user_id}", response_model=ApiResponse[MessageOut], status_code=201)
async def send_message(
    user_id: UUID,
    body: SendMessageBody,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    msg = await chat_service.send_message(db, user.id, user_id, body.message)
    return ApiResponse(message="Message sent successfully", data=msg)


@router.get("/{user_id}", response_model=ApiResponse[ChatHistoryData])
async def chat_history(
    user_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50),
    before: datetime | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    data = await chat_service.history(db, user.id, user_id, page, limit, before)
    return ApiResponse(message="Chat history retrieved successfully", data=data)


@router.post("/{user_id}/read", response_model=ApiResponse[MarkReadData])
async def mark_read(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    marked = await chat_service.mark_read(db, user.id, user_id)
    return ApiResponse(message="Messages marked as read", data=MarkReadData(marked_count=marked))
