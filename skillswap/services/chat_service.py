"""Gated messaging between users with an accepted collaboration request.

Authorization is re-derived from the request ledger on every call; there
is no separate "can message" table.
"""

from datetime import datetime, timezone
from typing import Final
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.exceptions import (
    NotCollaboratingError,
    SelfActionError,
    TargetBlockedError,
    ValidationError,
)
from skillswap.logging_config import get_logger
from skillswap.models import Message, User
from skillswap.schemas import (
    ChatHistoryData,
    ChatListData,
    ChatListItem,
    ChatPartner,
    LastMessage,
    MessageOut,
    Pagination,
    UserSummary,
    clamp_limit,
)
from skillswap.services.request_service import are_collaborating, collaborator_ids
from skillswap.services.user_service import get_user, get_users_by_ids

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH: Final[int] = 1000
MAX_HISTORY_PAGE_SIZE: Final[int] = 100
MAX_CHAT_LIST_PAGE_SIZE: Final[int] = 50


def _between(a: UUID, b: UUID):
    return or_(
        and_(Message.from_user_id == a, Message.to_user_id == b),
        and_(Message.from_user_id == b, Message.to_user_id == a),
    )


def to_message_out(msg: Message, users: dict[UUID, User], viewer_id: UUID) -> MessageOut:
    sender = users.get(msg.from_user_id)
    recipient = users.get(msg.to_user_id)
    return MessageOut(
        id=msg.id,
        from_user_id=msg.from_user_id,
        to_user_id=msg.to_user_id,
        message=msg.body,
        timestamp=msg.timestamp,
        read=msg.read,
        is_me=msg.from_user_id == viewer_id,
        sender=UserSummary.model_validate(sender) if sender else None,
        recipient=UserSummary.model_validate(recipient) if recipient else None,
    )


def _partner(user: User) -> ChatPartner:
    return ChatPartner(
        id=user.id,
        name=user.name,
        photo=user.photo,
        skills=user.skills or [],
    )


async def _require_collaboration(
    db: AsyncSession, user_id: UUID, other_id: UUID, message: str | None = None
) -> None:
    if not await are_collaborating(db, user_id, other_id):
        if message:
            raise NotCollaboratingError(message)
        raise NotCollaboratingError()


async def send_message(
    db: AsyncSession, from_user_id: UUID, to_user_id: UUID, body: str
) -> MessageOut:
    """Persist an unread message from one collaborator to another."""
    if from_user_id == to_user_id:
        raise SelfActionError("Cannot send message to yourself", "self_message")

    target = await get_user(db, to_user_id)
    if target.is_blocked:
        raise TargetBlockedError("Cannot send message to blocked user")
    await _require_collaboration(db, from_user_id, to_user_id)

    text = (body or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")

    msg = Message(from_user_id=from_user_id, to_user_id=to_user_id, body=text)
    db.add(msg)
    await db.commit()

    logger.info(
        "message_sent",
        message_id=str(msg.id),
        from_user=str(from_user_id),
        to_user=str(to_user_id),
    )
    users = await get_users_by_ids(db, [from_user_id, to_user_id])
    return to_message_out(msg, users, from_user_id)


async def history(
    db: AsyncSession,
    user_id: UUID,
    other_id: UUID,
    page: int = 1,
    limit: int = 50,
    before: datetime | None = None,
) -> ChatHistoryData:
    """One page of the conversation, oldest first.

    Pages are counted from the newest message backwards. ``before`` keeps
    only messages strictly older than the given instant; ``total`` always
    counts the whole conversation.
    """
    if user_id == other_id:
        raise SelfActionError("Cannot get chat history with yourself", "self_query")

    partner = await get_user(db, other_id)
    await _require_collaboration(
        db,
        user_id,
        other_id,
        "Chat history is only available after mutual collaboration acceptance",
    )

    limit = clamp_limit(limit, MAX_HISTORY_PAGE_SIZE)
    query = select(Message).where(_between(user_id, other_id))
    if before is not None:
        if before.tzinfo is not None:
            before = before.astimezone(timezone.utc)
        query = query.where(Message.timestamp < before)

    rows = (
        await db.execute(
            query.order_by(Message.timestamp.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()
    messages = list(reversed(rows))

    total = (
        await db.execute(
            select(func.count()).select_from(Message).where(_between(user_id, other_id))
        )
    ).scalar() or 0

    users = await get_users_by_ids(db, [user_id, other_id])
    return ChatHistoryData(
        messages=[to_message_out(m, users, user_id) for m in messages],
        pagination=Pagination.build(page, limit, total),
        chat_partner=_partner(partner),
    )


async def chat_list(
    db: AsyncSession, user_id: UUID, page: int = 1, limit: int = 20
) -> ChatListData:
    """Every accepted counterpart with the latest message and unread count.

    Sorted by latest message, newest first; counterparts with no messages
    come last. Pagination is over counterparts.
    """
    limit = clamp_limit(limit, MAX_CHAT_LIST_PAGE_SIZE)
    partner_ids = await collaborator_ids(db, user_id)
    if not partner_ids:
        return ChatListData(chats=[], pagination=Pagination.build(page, limit, 0))

    involving = or_(
        and_(Message.from_user_id == user_id, Message.to_user_id.in_(partner_ids)),
        and_(Message.from_user_id.in_(partner_ids), Message.to_user_id == user_id),
    )
    partner = case(
        (Message.from_user_id == user_id, Message.to_user_id),
        else_=Message.from_user_id,
    )

    ranked = (
        select(
            partner.label("partner_id"),
            Message.body.label("message"),
            Message.timestamp.label("timestamp"),
            Message.from_user_id.label("from_user_id"),
            func.row_number()
            .over(
                partition_by=partner,
                order_by=(Message.timestamp.desc(), Message.id.desc()),
            )
            .label("rn"),
        )
        .where(involving)
        .subquery()
    )
    last_rows = await db.execute(
        select(
            ranked.c.partner_id,
            ranked.c.message,
            ranked.c.timestamp,
            ranked.c.from_user_id,
        ).where(ranked.c.rn == 1)
    )
    last_by_partner = {
        row.partner_id: LastMessage(
            message=row.message,
            timestamp=row.timestamp,
            from_user_id=row.from_user_id,
        )
        for row in last_rows.all()
    }

    unread_rows = await db.execute(
        select(Message.from_user_id, func.count())
        .where(
            Message.to_user_id == user_id,
            Message.from_user_id.in_(partner_ids),
            Message.read.is_(False),
        )
        .group_by(Message.from_user_id)
    )
    unread_by_partner = dict(unread_rows.all())

    users = await get_users_by_ids(db, partner_ids)
    items = [
        ChatListItem(
            user=_partner(users[pid]),
            last_message=last_by_partner.get(pid),
            unread_count=unread_by_partner.get(pid, 0),
        )
        for pid in partner_ids
        if pid in users
    ]
    with_messages = sorted(
        (i for i in items if i.last_message is not None),
        key=lambda i: i.last_message.timestamp,
        reverse=True,
    )
    without_messages = sorted(
        (i for i in items if i.last_message is None),
        key=lambda i: i.user.name.lower(),
    )
    ordered = with_messages + without_messages

    start = (page - 1) * limit
    return ChatListData(
        chats=ordered[start : start + limit],
        pagination=Pagination.build(page, limit, len(ordered)),
    )


async def mark_read(db: AsyncSession, user_id: UUID, other_id: UUID) -> int:
    """Mark every unread message from ``other_id`` to ``user_id`` as read."""
    if user_id == other_id:
        raise SelfActionError("Cannot mark your own messages as read", "self_query")
    await get_user(db, other_id)
    await _require_collaboration(db, user_id, other_id)

    result = await db.execute(
        update(Message)
        .where(
            Message.from_user_id == other_id,
            Message.to_user_id == user_id,
            Message.read.is_(False),
        )
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    marked = result.rowcount or 0
    logger.info("messages_marked_read", user_id=str(user_id), other_id=str(other_id), count=marked)
    return marked
