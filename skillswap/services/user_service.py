"""Identity store: registration, credentials, profiles, search and per-user stats."""

import re
from collections import Counter
from typing import Final, Iterable
from uuid import UUID

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.auth import hash_password, verify_password
from skillswap.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    UserNotFoundError,
    ValidationError,
)
from skillswap.logging_config import get_logger
from skillswap.models import CollaborationRequest, RequestStatus, User
from skillswap.schemas import (
    Pagination,
    ProfileUpdateRequest,
    SkillCount,
    UserRegisterRequest,
    UserSearchData,
    UserSearchQuery,
    UserStats,
    UserWithLevel,
    clamp_limit,
)
from skillswap.services.xp_service import compute_level, level_fields

logger = get_logger(__name__)

MIN_NAME_LENGTH: Final[int] = 2
MIN_PASSWORD_LENGTH: Final[int] = 6
MAX_BIO_LENGTH: Final[int] = 500
MAX_SKILLS: Final[int] = 20
MAX_SEARCH_PAGE_SIZE: Final[int] = 50
SUGGESTION_LIMIT: Final[int] = 10

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
PHONE_STRIP_RE = re.compile(r"[\s\-()]")

_SORT_COLUMNS = {
    "name": User.name,
    "xp": User.xp,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------


def normalize_name(name: str) -> str:
    name = name.strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters long")
    return name


def normalize_email(email: str) -> str:
    email = email.strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email")
    return email


def normalize_phone(phone: str) -> str:
    phone = phone.strip()
    if not PHONE_RE.match(PHONE_STRIP_RE.sub("", phone)):
        raise ValidationError("Please provide a valid phone number")
    return phone


def normalize_skills(skills: list[str]) -> list[str]:
    cleaned = [s.strip() for s in skills if s and s.strip()]
    if len(cleaned) > MAX_SKILLS:
        raise ValidationError(f"Cannot have more than {MAX_SKILLS} skills")
    return cleaned


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[UUID]) -> dict[UUID, User]:
    """Fetch users by id, refreshing any copies already in the session."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(User)
        .where(User.id.in_(ids))
        .execution_options(populate_existing=True)
    )
    return {u.id: u for u in result.scalars().all()}


async def _email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.first() is not None


# ---------------------------------------------------------------------------
# Registration & credentials
# ---------------------------------------------------------------------------


async def register(db: AsyncSession, body: UserRegisterRequest) -> User:
    name = normalize_name(body.name)
    email = normalize_email(body.email)
    phone = normalize_phone(body.phone)
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )

    if await _email_taken(db, email):
        raise ConflictError("User with this email already exists", "email_taken")

    user = User(
        name=name,
        email=email,
        phone=phone,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("User with this email already exists", "email_taken")
    await db.refresh(user)

    logger.info("user_registered", user_id=str(user.id))
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """Check credentials. Wrong email or password is 401; blocked accounts are 403."""
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password", "invalid_credentials")
    if user.is_blocked:
        raise AuthorizationError(
            "Account has been blocked. Please contact support.", "account_blocked"
        )
    return user


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


async def update_profile(db: AsyncSession, user: User, body: ProfileUpdateRequest) -> User:
    """Apply the fields present in ``body``. Absent fields are left as they are."""
    if body.name:
        user.name = normalize_name(body.name)
    if body.email:
        email = normalize_email(body.email)
        if email != user.email and await _email_taken(db, email):
            raise ConflictError("Email is already in use", "email_taken")
        user.email = email
    if body.phone:
        user.phone = normalize_phone(body.phone)
    if body.skills is not None:
        user.skills = normalize_skills(body.skills)
    if body.bio is not None:
        bio = body.bio.strip()
        if len(bio) > MAX_BIO_LENGTH:
            raise ValidationError(f"Bio cannot exceed {MAX_BIO_LENGTH} characters")
        user.bio = bio
    if body.photo is not None:
        user.photo = body.photo.strip()
    if body.is_public is not None:
        user.is_public = body.is_public

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Email is already in use", "email_taken")
    await db.refresh(user)

    logger.info("profile_updated", user_id=str(user.id))
    return user


def with_level(user: User) -> UserWithLevel:
    out = UserWithLevel.model_validate(user)
    return out.model_copy(update=level_fields(user.xp))


async def get_visible_user(db: AsyncSession, user_id: UUID, viewer_id: UUID) -> UserWithLevel:
    user = await get_user(db, user_id)
    if not user.is_public and user.id != viewer_id:
        raise AuthorizationError("User profile is private", "profile_private")
    return with_level(user)


async def search_users(
    db: AsyncSession, viewer_id: UUID, params: UserSearchQuery
) -> UserSearchData:
    """Public, unblocked users other than the viewer, filtered and sorted."""
    limit = clamp_limit(params.limit, MAX_SEARCH_PAGE_SIZE)

    query = select(User).where(
        User.is_public.is_(True),
        User.is_blocked.is_(False),
        User.id != viewer_id,
    )
    skills = [s.strip() for s in params.skills if s.strip()]
    if skills:
        # skills is a JSON array; match any exact element in its text form
        skills_text = cast(User.skills, String)
        query = query.where(or_(*(skills_text.like(f'%"{s}"%') for s in skills)))
    if params.name:
        query = query.where(User.name.ilike(f"%{params.name}%"))
    if params.min_xp is not None:
        query = query.where(User.xp >= params.min_xp)
    if params.max_xp is not None:
        query = query.where(User.xp <= params.max_xp)
    if params.badge:
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

    return UserSearchData(
        users=[with_level(u) for u in rows],
        pagination=Pagination.build(params.page, limit, total),
        filters={
            "skills": skills,
            "name": params.name or "",
            "sortBy": params.sort_by,
            "sortOrder": params.sort_order,
            "minXp": params.min_xp,
            "maxXp": params.max_xp,
            "badge": params.badge or "",
        },
    )


async def skill_suggestions(db: AsyncSession, query: str | None) -> list[SkillCount]:
    """Most common skills containing ``query`` (case-insensitive) among unblocked users."""
    if not query or len(query) < 2:
        return []
    needle = query.lower()
    rows = await db.execute(select(User.skills).where(User.is_blocked.is_(False)))
    counts: Counter[str] = Counter()
    for (skills,) in rows.all():
        counts.update(s for s in skills or [] if needle in s.lower())
    return [
        SkillCount(skill=skill, count=count)
        for skill, count in counts.most_common(SUGGESTION_LIMIT)
    ]


async def _count_requests(db: AsyncSession, *conditions) -> int:
    result = await db.execute(
        select(func.count()).select_from(CollaborationRequest).where(*conditions)
    )
    return result.scalar() or 0


async def user_stats(db: AsyncSession, user: User) -> UserStats:
    sent = await _count_requests(db, CollaborationRequest.from_user_id == user.id)
    received = await _count_requests(db, CollaborationRequest.to_user_id == user.id)
    collaborations = await _count_requests(
        db,
        CollaborationRequest.status == RequestStatus.accepted.value,
        or_(
            CollaborationRequest.from_user_id == user.id,
            CollaborationRequest.to_user_id == user.id,
        ),
    )

    # collaborations counts both directions, so this can exceed 100
    success_rate = int(collaborations / sent * 100 + 0.5) if sent > 0 else 0

    return UserStats(
        xp=user.xp,
        level=compute_level(user.xp),
        badge=user.badge,
        collaborations=collaborations,
        requests_sent=sent,
        requests_received=received,
        skills_count=len(user.skills or []),
        joined_date=user.created_at,
        success_rate=success_rate,
    )
