"""Seed script: an admin account plus a handful of demo users and collaborations.

Idempotent: users are matched by email and skipped if present.

Usage:
    python -m skillswap.seed
"""

import asyncio
import os

from sqlalchemy import select

from skillswap.auth import hash_password
from skillswap.database import close_db, get_db_session, init_db
from skillswap.logging_config import configure_logging, get_logger
from skillswap.models import CollaborationRequest, RequestStatus, User, UserRole, pair_key
from skillswap.services.xp_service import (
    apply_pending_awards,
    enqueue_collaboration_awards,
)

logger = get_logger(__name__)

DEMO_PASSWORD = os.getenv("SEED_DEMO_PASSWORD", "password123")

ADMIN = {
    "name": "Platform Admin",
    "email": os.getenv("SEED_ADMIN_EMAIL", "admin@skillswap.dev"),
    "phone": "+15550000000",
    "role": UserRole.admin.value,
    "skills": [],
}

DEMO_USERS = [
    {"name": "Ada Byron", "email": "ada@skillswap.dev", "phone": "+15550000001",
     "skills": ["Python", "Mathematics", "Data Analysis"],
     "bio": "Numbers first, then code."},
    {"name": "Grace Hopper", "email": "grace@skillswap.dev", "phone": "+15550000002",
     "skills": ["COBOL", "Compilers", "Public Speaking"],
     "bio": "Happy to teach anything about compilers."},
    {"name": "Linus Pauling", "email": "linus@skillswap.dev", "phone": "+15550000003",
     "skills": ["Chemistry", "Python", "Technical Writing"]},
    {"name": "Mae Jemison", "email": "mae@skillswap.dev", "phone": "+15550000004",
     "skills": ["Dance", "Medicine", "Public Speaking"],
     "is_public": False},
]

# (from index, to index, status) into DEMO_USERS
DEMO_REQUESTS = [
    (0, 1, RequestStatus.accepted.value),
    (2, 0, RequestStatus.pending.value),
    (1, 2, RequestStatus.rejected.value),
]


async def _get_or_create(session, fields: dict) -> User:
    result = await session.execute(select(User).where(User.email == fields["email"]))
    user = result.scalar_one_or_none()
    if user is not None:
        return user
    user = User(
        name=fields["name"],
        email=fields["email"],
        phone=fields["phone"],
        password_hash=hash_password(DEMO_PASSWORD),
        skills=fields.get("skills", []),
        bio=fields.get("bio", ""),
        is_public=fields.get("is_public", True),
        role=fields.get("role", UserRole.user.value),
    )
    session.add(user)
    await session.flush()
    logger.info("seed_user_created", email=user.email, role=user.role)
    return user


async def seed() -> None:
    async with get_db_session() as session:
        await _get_or_create(session, ADMIN)
        users = [await _get_or_create(session, fields) for fields in DEMO_USERS]

        for from_idx, to_idx, status in DEMO_REQUESTS:
            sender, recipient = users[from_idx], users[to_idx]
            key = pair_key(sender.id, recipient.id)
            existing = await session.execute(
                select(CollaborationRequest.id).where(CollaborationRequest.pair_key == key)
            )
            if existing.first() is not None:
                continue
            req = CollaborationRequest(
                from_user_id=sender.id,
                to_user_id=recipient.id,
                pair_key=key,
                status=status,
                message="Seeded request",
            )
            session.add(req)
            await session.flush()
            if status == RequestStatus.accepted.value:
                enqueue_collaboration_awards(session, req.id, (sender.id, recipient.id))

        await session.commit()
        applied = await apply_pending_awards(session)
        logger.info("seed_complete", users=len(users) + 1, xp_awards_applied=applied)


async def main() -> None:
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"), json_format=False)
    await init_db()
    try:
        await seed()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
