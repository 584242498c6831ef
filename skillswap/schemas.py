"""Pydantic v2 request/response schemas for all endpoints.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from math import ceil
from typing import Any, Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Envelope & pagination
# ---------------------------------------------------------------------------


class ApiResponse(CamelModel, Generic[T]):
    """Uniform response envelope."""

    success: bool = True
    message: str
    data: T | None = None
    error: str | None = None


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


def clamp_limit(limit: int, maximum: int) -> int:
    """Clamp a page size into [1, maximum]."""
    return max(1, min(limit, maximum))


# ---------------------------------------------------------------------------
# List-query configuration types
# ---------------------------------------------------------------------------


class RequestListQuery(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = 10
    status: Literal["all", "pending", "accepted", "rejected"] = "all"
    sort_by: Literal["createdAt", "updatedAt"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"


class ReportListQuery(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = 20
    reason: str = "all"
    status: Literal["all", "pending", "reviewed", "resolved"] = "all"
    sort_by: Literal["timestamp", "reason"] = "timestamp"
    sort_order: Literal["asc", "desc"] = "desc"


class UserSearchQuery(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = 10
    skills: list[str] = Field(default_factory=list)
    name: str | None = None
    min_xp: int | None = Field(default=None, ge=0)
    max_xp: int | None = Field(default=None, ge=0)
    badge: str | None = None
    sort_by: Literal["name", "xp", "createdAt", "updatedAt"] = "xp"
    sort_order: Literal["asc", "desc"] = "desc"


class AdminUserQuery(CamelModel):
    page: int = Field(default=1, ge=1)
    limit: int = 20
    search: str | None = None
    status: Literal["all", "active", "blocked"] = "all"
    badge: str = "all"
    sort_by: Literal["name", "email", "xp", "createdAt", "updatedAt"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserSummary(CamelModel):
    id: UUID
    name: str
    photo: str | None = None


class UserPublic(UserSummary):
    email: str
    skills: list[str] = Field(default_factory=list)
    xp: int = 0
    badge: str = "Beginner"
    created_at: datetime | None = None


class UserProfile(UserPublic):
    phone: str
    bio: str = ""
    is_public: bool = True
    role: str = "user"
    updated_at: datetime | None = None


class UserWithLevel(UserPublic):
    bio: str = ""
    is_public: bool = True
    updated_at: datetime | None = None
    level: int = 1
    next_level_xp: int = 100
    progress_to_next_level: int = 0


class UserRegisterRequest(CamelModel):
    name: str
    email: str
    phone: str
    password: str


class UserLoginRequest(CamelModel):
    email: str
    password: str


class TokenRefreshRequest(CamelModel):
    refresh_token: str


class AuthData(CamelModel):
    token: str
    refresh_token: str
    user: UserProfile


class ProfileUpdateRequest(CamelModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    skills: list[str] | None = None
    bio: str | None = None
    photo: str | None = None
    is_public: bool | None = None


class UserSearchData(CamelModel):
    users: list[UserWithLevel]
    pagination: Pagination
    filters: dict[str, Any]


class SkillCount(CamelModel):
    skill: str
    count: int


class UserStats(CamelModel):
    xp: int
    level: int
    badge: str
    collaborations: int
    requests_sent: int
    requests_received: int
    skills_count: int
    joined_date: datetime
    profile_views: int = 0
    success_rate: int


# ---------------------------------------------------------------------------
# Collaboration requests
# ---------------------------------------------------------------------------


class SendRequestBody(CamelModel):
    message: str | None = None


class CollaborationRequestOut(CamelModel):
    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    status: str
    message: str
    created_at: datetime
    updated_at: datetime
    sender: UserPublic | None = None
    recipient: UserPublic | None = None


class StatusCounts(CamelModel):
    all: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0


class RequestListData(CamelModel):
    requests: list[CollaborationRequestOut]
    pagination: Pagination
    status_counts: StatusCounts
    filters: dict[str, Any]


class RequestDecisionData(CamelModel):
    request: CollaborationRequestOut
    xp_awarded: int | None = None


class RequestStats(CamelModel):
    total_sent: int = 0
    total_received: int = 0
    accepted_sent: int = 0
    accepted_received: int = 0
    pending_sent: int = 0
    pending_received: int = 0
    total_collaborations: int = 0
    success_rate: int = 0
    response_rate: int = 0


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class SendMessageBody(CamelModel):
    message: str


class MessageOut(CamelModel):
    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    message: str
    timestamp: datetime
    read: bool
    is_me: bool = False
    sender: UserSummary | None = None
    recipient: UserSummary | None = None


class ChatPartner(CamelModel):
    id: UUID
    name: str
    photo: str | None = None
    skills: list[str] = Field(default_factory=list)
    is_online: bool = False


class ChatHistoryData(CamelModel):
    messages: list[MessageOut]
    pagination: Pagination
    chat_partner: ChatPartner


class LastMessage(CamelModel):
    message: str
    timestamp: datetime
    from_user_id: UUID


class ChatListItem(CamelModel):
    user: ChatPartner
    last_message: LastMessage | None = None
    unread_count: int = 0


class ChatListData(CamelModel):
    chats: list[ChatListItem]
    pagination: Pagination


class MarkReadData(CamelModel):
    marked_count: int


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class FileReportBody(CamelModel):
    reason: str
    message: str | None = None


class ReviewReportBody(CamelModel):
    resolution: str | None = None


class ReportOut(CamelModel):
    id: UUID
    from_user_id: UUID
    to_user_id: UUID
    reason: str
    message: str
    status: str
    timestamp: datetime
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    resolution: str | None = None
    reporter: UserSummary | None = None
    reported_user: UserSummary | None = None


class ReasonCount(CamelModel):
    reason: str
    count: int


class ReportListData(CamelModel):
    reports: list[ReportOut]
    pagination: Pagination
    reason_counts: list[ReasonCount]
    filters: dict[str, Any]


class ReportedUser(CamelModel):
    id: UUID
    name: str
    email: str


class MostReportedEntry(CamelModel):
    user: ReportedUser
    report_count: int


class ReportStats(CamelModel):
    total_reports: int
    reason_breakdown: dict[str, int]
    recent_reports: int
    most_reported_users: list[MostReportedEntry]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class DailyCount(CamelModel):
    date: str
    count: int


class UserTotals(CamelModel):
    total: int
    new_this_month: int
    blocked: int
    growth: list[DailyCount]


class PeriodTotals(CamelModel):
    total: int
    new_this_month: int


class DashboardStats(CamelModel):
    users: UserTotals
    requests: PeriodTotals
    reports: PeriodTotals
    chats: PeriodTotals
    top_skills: list[SkillCount]


class AdminUserRow(CamelModel):
    id: UUID
    name: str
    email: str
    phone: str
    skills: list[str] = Field(default_factory=list)
    xp: int
    badge: str
    is_blocked: bool
    role: str
    created_at: datetime
    updated_at: datetime


class AdminUserStats(CamelModel):
    total_users: int = 0
    blocked_users: int = 0
    active_users: int = 0
    public_profiles: int = 0
    average_xp: float = 0.0


class BadgeCount(CamelModel):
    badge: str
    count: int


class AdminUserListData(CamelModel):
    users: list[AdminUserRow]
    pagination: Pagination
    stats: AdminUserStats
    badge_distribution: list[BadgeCount]
    filters: dict[str, Any]


class BlockStatus(CamelModel):
    id: UUID
    name: str
    email: str
    is_blocked: bool


class DeletedUser(CamelModel):
    deleted_user_id: UUID
