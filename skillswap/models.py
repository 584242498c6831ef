"""SQLAlchemy ORM models for users and the three collaboration ledgers."""

import enum
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"


class RequestStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class ReportStatus(str, enum.Enum):
    pending = "pending"
    reviewed = "reviewed"
    resolved = "resolved"


class ReportReason(str, enum.Enum):
    inappropriate_behavior = "Inappropriate behavior"
    harassment = "Harassment or bullying"
    spam = "Spam or fake profile"
    inappropriate_content = "Inappropriate content"
    scam = "Scam or fraud"
    other = "Other"


class XpAwardStatus(str, enum.Enum):
    pending = "pending"
    applied = "applied"


REPORT_REASONS: tuple[str, ...] = tuple(r.value for r in ReportReason)


def pair_key(a: UUID, b: UUID) -> str:
    """Order-independent key for a pair of users."""
    low, high = sorted((str(a), str(b)))
    return f"{low}:{high}"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_public_blocked", "is_public", "is_blocked"),
        Index("idx_users_xp", "xp"),
        CheckConstraint("xp >= 0", name="ck_user_xp_non_negative"),
        CheckConstraint("role IN ('user','admin')", name="ck_user_role"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    photo: Mapped[str | None] = mapped_column(Text)
    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    bio: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    badge: Mapped[str] = mapped_column(Text, nullable=False, default="Beginner")
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default=UserRole.user.value)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value


# ---------------------------------------------------------------------------
# Collaboration requests
# ---------------------------------------------------------------------------


class CollaborationRequest(Base):
    __tablename__ = "collaboration_requests"
    __table_args__ = (
        UniqueConstraint("pair_key", name="uq_request_pair"),
        Index("idx_requests_to_status", "to_user_id", "status"),
        Index("idx_requests_from_status", "from_user_id", "status"),
        CheckConstraint(
            "status IN ('pending','accepted','rejected')", name="ck_request_status"
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    from_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    to_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Unordered-pair uniqueness lives here, see pair_key().
    pair_key: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=RequestStatus.pending.value
    )
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_pair_time", "from_user_id", "to_user_id", "timestamp"),
        Index("idx_messages_to_read", "to_user_id", "read"),
        Index("idx_messages_time", "timestamp"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    from_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    to_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    body: Mapped[str] = mapped_column("message", Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint("from_user_id", "to_user_id", name="uq_report_pair"),
        Index("idx_reports_to_time", "to_user_id", "timestamp"),
        Index("idx_reports_status_time", "status", "timestamp"),
        Index("idx_reports_reason", "reason"),
        CheckConstraint(
            "status IN ('pending','reviewed','resolved')", name="ck_report_status"
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    from_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    to_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=ReportStatus.pending.value
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    reviewed_by: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL")
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolution: Mapped[str | None] = mapped_column(Text)


# ---------------------------------------------------------------------------
# XP outbox
# ---------------------------------------------------------------------------


class XpAward(Base):
    """Pending XP grant written in the same transaction as its triggering event."""

    __tablename__ = "xp_awards"
    __table_args__ = (
        UniqueConstraint("request_id", "user_id", name="uq_xp_award_request_user"),
        Index("idx_xp_awards_status", "status", "attempts", "created_at"),
        CheckConstraint("status IN ('pending','applied')", name="ck_xp_award_status"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    request_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("collaboration_requests.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=XpAwardStatus.pending.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
