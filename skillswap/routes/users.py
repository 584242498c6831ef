"""Profile endpoints: own profile, search, skill suggestions, stats, public profiles."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth import get_current_user
from skillswap.database import get_db
from skillswap.models import User
from skillswap.schemas import (
    ApiResponse,
    ProfileUpdateRequest,
    SkillCount,
    UserProfile,
    UserSearchData,
    UserSearchQuery,
    UserStats,
    UserWithLevel,
)
from skillswap.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserProfile])
async def get_me(
    user: User = Depends(get_current_user),
):
    return ApiResponse(
        message="Profile retrieved successfully",
        data=UserProfile.model_validate(user),
    )


@router.put("/me", response_model=ApiResponse[UserProfile])
async def update_me(
    body: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    user = await user_service.update_profile(db, user, body)
    return ApiResponse(
        message="Profile updated successfully",
        data=UserProfile.model_validate(user),
    )


@router.get("/stats", response_model=ApiResponse[UserStats])
async def my_stats(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stats = await user_service.user_stats(db, user)
    return ApiResponse(message="User stats retrieved successfully", data=stats)


@router.get("/search", response_model=ApiResponse[UserSearchData])
async def search_users(
    skills: str | None = Query(None, description="Comma-separated, any match"),
    name: str | None = Query(None),
    min_xp: int | None = Query(None, alias="minXp", ge=0),
    max_xp: int | None = Query(None, alias="maxXp", ge=0),
    badge: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10),
    sort_by: Literal["name", "xp", "createdAt", "updatedAt"] = Query("xp", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Search public, unblocked users other than the caller."""
    params = UserSearchQuery(
        page=page,
        limit=limit,
        skills=skills.split(",") if skills else [],
        name=name,
        min_xp=min_xp,
        max_xp=max_xp,
        badge=badge,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    data = await user_service.search_users(db, user.id, params)
    return ApiResponse(message="Users retrieved successfully", data=data)


@router.get("/skills/suggestions", response_model=ApiResponse[dict[str, list[SkillCount]]])
async def skill_suggestions(
    query: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    skills = await user_service.skill_suggestions(db, query)
    return ApiResponse(message="Skills suggestions retrieved", data={"skills": skills})


@router.get("/{user_id}", response_model=ApiResponse[UserWithLevel])
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Public profile of another user; private profiles are visible only to their owner."""
    found = await user_service.get_visible_user(db, user_id, user.id)
    return ApiResponse(message="User retrieved successfully", data=found)
