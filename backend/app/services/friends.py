"""Friend requests and the accepted friend graph."""

from dataclasses import dataclass
import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditAction, audit_log
from app.core.errors import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from app.db.session import atomic
from app.models.models import (
    Friendship,
    FriendshipStatusEnum,
    NotificationTypeEnum,
    User,
    Wishlist,
    WishlistSelectedFriend,
    utcnow,
)
from app.services import recipients
from app.services.notifications import FALLBACK_ACTOR, NotificationOutbox, display_name
from app.services.privileged import PrivilegedService
from app.services.visibility import friendship_between

logger = logging.getLogger("giftcircle.friends")


@dataclass
class FriendRequests:
    incoming: list[Friendship]
    outgoing: list[Friendship]


async def _load_friendship(db: AsyncSession, friendship_id: int) -> Friendship:
    result = await db.execute(select(Friendship).where(Friendship.id == friendship_id).with_for_update())
    friendship = result.scalar_one_or_none()
    if friendship is None:
        raise NotFoundError("Friend request not found")
    return friendship


async def send_friend_request(
    db: AsyncSession,
    requester_id: int,
    addressee_id: int,
    outbox: NotificationOutbox | None = None,
) -> Friendship:
    if requester_id == addressee_id:
        raise InvalidArgumentError("You cannot befriend yourself")

    async with atomic(db, "Friend request already exists"):
        addressee = await db.execute(select(User.id).where(User.id == addressee_id))
        if addressee.scalar_one_or_none() is None:
            raise NotFoundError("User not found")
        existing = await db.execute(select(Friendship.id).where(friendship_between(requester_id, addressee_id)))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Friend request already exists")

        friendship = Friendship(
            requester_id=requester_id,
            addressee_id=addressee_id,
            status=FriendshipStatusEnum.PENDING.value,
        )
        db.add(friendship)
        await db.flush()

        requester_name = await display_name(db, requester_id, FALLBACK_ACTOR)
        await PrivilegedService(db, outbox).notify(
            recipients.friend_request_received(addressee_id),
            NotificationTypeEnum.FRIEND_REQUEST_RECEIVED.value,
            "New Friend Request",
            f"{requester_name} sent you a friend request",
            requester_id,
            friendship_id=friendship.id,
        )
    audit_log(AuditAction.FRIEND_REQUEST_SEND, user_id=requester_id, details={"addressee_id": addressee_id})
    return friendship


async def accept_friend_request(
    db: AsyncSession,
    friendship_id: int,
    user_id: int,
    outbox: NotificationOutbox | None = None,
) -> Friendship:
    async with atomic(db):
        friendship = await _load_friendship(db, friendship_id)
        if friendship.addressee_id != user_id:
            raise ForbiddenError("Only the recipient can accept this request")
        if friendship.status != FriendshipStatusEnum.PENDING.value:
            raise ConflictError("Friend request is not pending")
        friendship.status = FriendshipStatusEnum.ACCEPTED.value
        friendship.accepted_at = utcnow()
        await db.flush()

        accepter_name = await display_name(db, user_id, FALLBACK_ACTOR)
        await PrivilegedService(db, outbox).notify(
            recipients.friend_request_accepted(friendship.requester_id),
            NotificationTypeEnum.FRIEND_REQUEST_ACCEPTED.value,
            "Friend Request Accepted",
            f"{accepter_name} accepted your friend request",
            user_id,
            friendship_id=friendship.id,
        )
    audit_log(AuditAction.FRIEND_REQUEST_ACCEPT, user_id=user_id, details={"friendship_id": friendship_id})
    return friendship


async def decline_friend_request(db: AsyncSession, friendship_id: int, user_id: int) -> None:
    async with atomic(db):
        friendship = await _load_friendship(db, friendship_id)
        if friendship.addressee_id != user_id:
            raise ForbiddenError("Only the recipient can decline this request")
        if friendship.status != FriendshipStatusEnum.PENDING.value:
            raise ConflictError("Friend request is not pending")
        await db.delete(friendship)
    audit_log(AuditAction.FRIEND_REQUEST_DECLINE, user_id=user_id, details={"friendship_id": friendship_id})


async def cancel_friend_request(db: AsyncSession, friendship_id: int, user_id: int) -> None:
    async with atomic(db):
        friendship = await _load_friendship(db, friendship_id)
        if friendship.requester_id != user_id:
            raise ForbiddenError("Only the sender can cancel this request")
        if friendship.status != FriendshipStatusEnum.PENDING.value:
            raise ConflictError("Friend request is not pending")
        await db.delete(friendship)
    audit_log(AuditAction.FRIEND_REQUEST_CANCEL, user_id=user_id, details={"friendship_id": friendship_id})


async def remove_friend(db: AsyncSession, user_id: int, friend_id: int) -> None:
    """Drop an accepted friendship and both users' allowlist entries for each other."""
    async with atomic(db):
        result = await db.execute(
            select(Friendship)
            .where(Friendship.status == FriendshipStatusEnum.ACCEPTED.value)
            .where(friendship_between(user_id, friend_id))
            .with_for_update()
        )
        friendship = result.scalar_one_or_none()
        if friendship is None:
            raise NotFoundError("Friend not found")
        await db.delete(friendship)

        owned_by_user = select(Wishlist.id).where(Wishlist.owner_id == user_id)
        owned_by_friend = select(Wishlist.id).where(Wishlist.owner_id == friend_id)
        await db.execute(
            delete(WishlistSelectedFriend).where(
                or_(
                    (WishlistSelectedFriend.wishlist_id.in_(owned_by_user))
                    & (WishlistSelectedFriend.friend_id == friend_id),
                    (WishlistSelectedFriend.wishlist_id.in_(owned_by_friend))
                    & (WishlistSelectedFriend.friend_id == user_id),
                )
            )
        )
    logger.debug("remove_friend: user_id=%s friend_id=%s", user_id, friend_id)
    audit_log(AuditAction.FRIEND_REMOVE, user_id=user_id, details={"friend_id": friend_id})


async def list_friends(db: AsyncSession, user_id: int) -> list[User]:
    result = await db.execute(
        select(User)
        .join(
            Friendship,
            or_(
                (Friendship.requester_id == user_id) & (Friendship.addressee_id == User.id),
                (Friendship.addressee_id == user_id) & (Friendship.requester_id == User.id),
            ),
        )
        .where(Friendship.status == FriendshipStatusEnum.ACCEPTED.value)
        .order_by(User.display_name.asc(), User.id.asc())
    )
    return list(result.scalars())


async def list_friend_requests(db: AsyncSession, user_id: int) -> FriendRequests:
    result = await db.execute(
        select(Friendship)
        .where(Friendship.status == FriendshipStatusEnum.PENDING.value)
        .where(or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id))
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
    )
    rows = list(result.scalars())
    return FriendRequests(
        incoming=[row for row in rows if row.addressee_id == user_id],
        outgoing=[row for row in rows if row.requester_id == user_id],
    )
