"""Collaboration request lifecycle.

A request is directional (sender → recipient) but at most one may exist
for any unordered pair of users. Only the recipient may answer it, and
only once: pending → accepted or pending → rejected.
"""

from datetime import datetime, timezone
from typing import Final, Literal
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.exceptions import (
    AlreadyProcessedError,
    AuthorizationError,
    DuplicateRequestError,
    NotFoundError,
    SelfActionError,
    TargetBlockedError,
    TargetPrivateError,
    UserNotFoundError,
    ValidationError,
)
from skillswap.logging_config import get_logger
from skillswap.models import CollaborationRequest, RequestStatus, User, pair_key
from skillswap.schemas import (
    CollaborationRequestOut,
    Pagination,
    RequestListData,
    RequestListQuery,
    RequestStats,
    StatusCounts,
    UserPublic,
    clamp_limit,
)
from skillswap.services import xp_service
from skillswap.services.user_service import get_users_by_ids

logger = get_logger(__name__)

MAX_REQUEST_MESSAGE_LENGTH: Final[int] = 500
MAX_PAGE_SIZE: Final[int] = 50

Decision = Literal["accept", "reject"]

_SORT_COLUMNS = {
    "createdAt": CollaborationRequest.created_at,
    "updatedAt": CollaborationRequest.updated_at,
}


def to_request_out(
    req: CollaborationRequest,
    users: dict[UUID, User],
) -> CollaborationRequestOut:
    sender = users.get(req.from_user_id)
    recipient = users.get(req.to_user_id)
    return CollaborationRequestOut(
        id=req.id,
        from_user_id=req.from_user_id,
        to_user_id=req.to_user_id,
        status=req.status,
        message=req.message,
        created_at=req.created_at,
        updated_at=req.updated_at,
        sender=UserPublic.model_validate(sender) if sender else None,
        recipient=UserPublic.model_validate(recipient) if recipient else None,
    )


async def _with_participants(
    db: AsyncSession, req: CollaborationRequest
) -> CollaborationRequestOut:
    users = await get_users_by_ids(db, [req.from_user_id, req.to_user_id])
    return to_request_out(req, users)


async def find_between(
    db: AsyncSession, a: UUID, b: UUID
) -> CollaborationRequest | None:
    """The request between two users, whichever direction it was sent in."""
    result = await db.execute(
        select(CollaborationRequest).where(CollaborationRequest.pair_key == pair_key(a, b))
    )
    return result.scalar_one_or_none()


async def send_request(
    db: AsyncSession,
    from_user_id: UUID,
    to_user_id: UUID,
    message: str | None = None,
) -> CollaborationRequestOut:
    """Create a pending request from one user to another."""
    if from_user_id == to_user_id:
        raise SelfActionError("Cannot send request to yourself", "self_request")

    target = await db.get(User, to_user_id)
    if target is None:
        raise UserNotFoundError()
    if target.is_blocked:
        raise TargetBlockedError("Cannot send request to blocked user")
    if not target.is_public:
        raise TargetPrivateError()

    existing = await find_between(db, from_user_id, to_user_id)
    if existing is not None:
        raise DuplicateRequestError(existing.status)

    body = (message or "").strip()
    if len(body) > MAX_REQUEST_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message cannot exceed {MAX_REQUEST_MESSAGE_LENGTH} characters"
        )

    req = CollaborationRequest(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        pair_key=pair_key(from_user_id, to_user_id),
        message=body,
    )
    db.add(req)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent request for the same pair.
        await db.rollback()
        existing = await find_between(db, from_user_id, to_user_id)
        raise DuplicateRequestError(existing.status if existing else None)

    logger.info(
        "request_sent",
        request_id=str(req.id),
        from_user=str(from_user_id),
        to_user=str(to_user_id),
    )
    return await _with_participants(db, req)


async def respond(
    db: AsyncSession,
    request_id: UUID,
    acting_user_id: UUID,
    decision: Decision,
) -> CollaborationRequestOut:
    """Accept or reject a pending request as its recipient.

    The transition is a conditional update on ``status = 'pending'`` so two
    racing calls cannot both succeed. On accept the XP awards for both
    participants are written in the same transaction and applied right
    after it commits.
    """
    req = await db.get(CollaborationRequest, request_id)
    if req is None:
        raise NotFoundError("Request not found", "request_not_found")
    if req.to_user_id != acting_user_id:
        raise AuthorizationError(f"Unauthorized to {decision} this request", "not_recipient")
    if req.status != RequestStatus.pending.value:
        raise AlreadyProcessedError()

    new_status = (
        RequestStatus.accepted.value if decision == "accept" else RequestStatus.rejected.value
    )
    result = await db.execute(
        update(CollaborationRequest)
        .where(
            CollaborationRequest.id == request_id,
            CollaborationRequest.status == RequestStatus.pending.value,
        )
        .values(status=new_status, updated_at=datetime.now(timezone.utc))
    )
    if result.rowcount != 1:
        await db.rollback()
        raise AlreadyProcessedError()

    if new_status == RequestStatus.accepted.value:
        xp_service.enqueue_collaboration_awards(
            db, req.id, (req.from_user_id, req.to_user_id)
        )
    await db.commit()
    await db.refresh(req)

    logger.info(
        "request_answered",
        request_id=str(req.id),
        status=new_status,
        by_user=str(acting_user_id),
    )

    if new_status == RequestStatus.accepted.value:
        await xp_service.apply_pending_awards(db, request_id=request_id)
        # A failed award rolls the session back, expiring req.
        await db.refresh(req)

    return await _with_participants(db, req)


async def _status_counts(db: AsyncSession, column, user_id: UUID) -> StatusCounts:
    rows = await db.execute(
        select(CollaborationRequest.status, func.count())
        .where(column == user_id)
        .group_by(CollaborationRequest.status)
    )
    counts = StatusCounts()
    for status_value, count in rows.all():
        setattr(counts, status_value, count)
    return counts


async def _list(
    db: AsyncSession,
    user_id: UUID,
    params: RequestListQuery,
    received: bool,
) -> RequestListData:
    owner_column = (
        CollaborationRequest.to_user_id if received else CollaborationRequest.from_user_id
    )
    limit = clamp_limit(params.limit, MAX_PAGE_SIZE)

    query = select(CollaborationRequest).where(owner_column == user_id)
    if params.status != "all":
        query = query.where(CollaborationRequest.status == params.status)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0

    sort_column = _SORT_COLUMNS[params.sort_by]
    ordering = sort_column.asc() if params.sort_order == "asc" else sort_column.desc()
    query = (
        query.order_by(ordering, CollaborationRequest.id)
        .offset((params.page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(query)).scalars().all()

    user_ids = {uid for r in rows for uid in (r.from_user_id, r.to_user_id)}
    users = await get_users_by_ids(db, user_ids)

    counts = await _status_counts(db, owner_column, user_id)
    counts.all = counts.pending + counts.accepted + counts.rejected

    return RequestListData(
        requests=[to_request_out(r, users) for r in rows],
        pagination=Pagination.build(params.page, limit, total),
        status_counts=counts,
        filters={
            "status": params.status,
            "sortBy": params.sort_by,
            "sortOrder": params.sort_order,
        },
    )


async def list_received(
    db: AsyncSession, user_id: UUID, params: RequestListQuery
) -> RequestListData:
    return await _list(db, user_id, params, received=True)


async def list_sent(
    db: AsyncSession, user_id: UUID, params: RequestListQuery
) -> RequestListData:
    return await _list(db, user_id, params, received=False)


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


async def request_stats(db: AsyncSession, user_id: UUID) -> RequestStats:
    """Per-user request counters plus success and response rates."""
    sent = CollaborationRequest.from_user_id == user_id
    received = CollaborationRequest.to_user_id == user_id
    accepted = CollaborationRequest.status == RequestStatus.accepted.value
    pending = CollaborationRequest.status == RequestStatus.pending.value

    def _count_where(condition):
        return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

    row = (
        await db.execute(
            select(
                _count_where(sent).label("total_sent"),
                _count_where(received).label("total_received"),
                _count_where(sent & accepted).label("accepted_sent"),
                _count_where(received & accepted).label("accepted_received"),
                _count_where(sent & pending).label("pending_sent"),
                _count_where(received & pending).label("pending_received"),
            ).where(or_(sent, received))
        )
    ).one()

    total_sent = int(row.total_sent)
    total_received = int(row.total_received)
    accepted_sent = int(row.accepted_sent)
    accepted_received = int(row.accepted_received)
    pending_received = int(row.pending_received)

    success_rate = (
        _round_half_up(accepted_sent / total_sent * 100) if total_sent > 0 else 0
    )
    # accepted + (total - pending - accepted), kept literally; see DESIGN.md
    response_rate = (
        _round_half_up(
            (accepted_received + (total_received - pending_received - accepted_received))
            / total_received
            * 100
        )
        if total_received > 0
        else 0
    )

    return RequestStats(
        total_sent=total_sent,
        total_received=total_received,
        accepted_sent=accepted_sent,
        accepted_received=accepted_received,
        pending_sent=int(row.pending_sent),
        pending_received=pending_received,
        total_collaborations=accepted_sent + accepted_received,
        success_rate=success_rate,
        response_rate=response_rate,
    )


async def are_collaborating(db: AsyncSession, a: UUID, b: UUID) -> bool:
    """True if an accepted request exists between the two users, in either direction."""
    req = await find_between(db, a, b)
    return req is not None and req.status == RequestStatus.accepted.value


async def collaborator_ids(db: AsyncSession, user_id: UUID) -> set[UUID]:
    """Every user with an accepted request to or from ``user_id``."""
    rows = await db.execute(
        select(CollaborationRequest.from_user_id, CollaborationRequest.to_user_id).where(
            CollaborationRequest.status == RequestStatus.accepted.value,
            or_(
                CollaborationRequest.from_user_id == user_id,
                CollaborationRequest.to_user_id == user_id,
            ),
        )
    )
    ids: set[UUID] = set()
    for from_id, to_id in rows.all():
        ids.add(to_id if from_id == user_id else from_id)
    return ids
