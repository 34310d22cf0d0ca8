"""Wishlist visibility rules.

Every claim, split, flag and item read goes through ``can_view_wishlist``.
Results are never cached: a friendship removed mid-session revokes access on
the very next request.
"""

import logging

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import (
    Friendship,
    FriendshipStatusEnum,
    PrivacyLevelEnum,
    Wishlist,
    WishlistSelectedFriend,
)

logger = logging.getLogger("giftcircle.visibility")


def evaluate_visibility(
    privacy: str,
    owner_id: int,
    viewer_id: int,
    is_friend: bool,
    is_selected: bool,
) -> bool:
    if viewer_id == owner_id:
        return True
    if privacy == PrivacyLevelEnum.PRIVATE.value:
        return False
    if privacy == PrivacyLevelEnum.SELECTED_FRIENDS.value:
        return is_friend and is_selected
    # "friends" and any legacy value share the friends rule.
    return is_friend


def friendship_between(user_a: int, user_b: int):
    return or_(
        and_(Friendship.requester_id == user_a, Friendship.addressee_id == user_b),
        and_(Friendship.requester_id == user_b, Friendship.addressee_id == user_a),
    )


async def are_friends(db: AsyncSession, user_a: int, user_b: int) -> bool:
    if user_a == user_b:
        return False
    result = await db.execute(
        select(Friendship.id)
        .where(Friendship.status == FriendshipStatusEnum.ACCEPTED.value)
        .where(friendship_between(user_a, user_b))
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def is_selected_friend(db: AsyncSession, wishlist_id: int, viewer_id: int) -> bool:
    result = await db.execute(
        select(WishlistSelectedFriend.id)
        .where(WishlistSelectedFriend.wishlist_id == wishlist_id)
        .where(WishlistSelectedFriend.friend_id == viewer_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def can_view_wishlist(db: AsyncSession, wishlist: Wishlist, viewer_id: int) -> bool:
    if viewer_id == wishlist.owner_id:
        return True
    if wishlist.privacy == PrivacyLevelEnum.PRIVATE.value:
        return False

    is_friend = await are_friends(db, wishlist.owner_id, viewer_id)
    is_selected = False
    if is_friend and wishlist.privacy == PrivacyLevelEnum.SELECTED_FRIENDS.value:
        is_selected = await is_selected_friend(db, wishlist.id, viewer_id)

    allowed = evaluate_visibility(wishlist.privacy, wishlist.owner_id, viewer_id, is_friend, is_selected)
    logger.debug(
        "can_view_wishlist wishlist_id=%s viewer_id=%s privacy=%s allowed=%s",
        wishlist.id,
        viewer_id,
        wishlist.privacy,
        allowed,
    )
    return allowed


async def friends_who_can_view(db: AsyncSession, wishlist: Wishlist) -> set[int]:
    """Accepted friends of the owner that pass the visibility rule right now."""
    if wishlist.privacy == PrivacyLevelEnum.PRIVATE.value:
        return set()
    friends = await accepted_friend_ids(db, wishlist.owner_id)
    selected: set[int] = set()
    if wishlist.privacy == PrivacyLevelEnum.SELECTED_FRIENDS.value and friends:
        result = await db.execute(
            select(WishlistSelectedFriend.friend_id).where(WishlistSelectedFriend.wishlist_id == wishlist.id)
        )
        selected = set(result.scalars())
    return {
        friend_id
        for friend_id in friends
        if evaluate_visibility(wishlist.privacy, wishlist.owner_id, friend_id, True, friend_id in selected)
    }


async def accepted_friend_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(
        select(Friendship.requester_id, Friendship.addressee_id)
        .where(Friendship.status == FriendshipStatusEnum.ACCEPTED.value)
        .where(or_(Friendship.requester_id == user_id, Friendship.addressee_id == user_id))
    )
    friends: set[int] = set()
    for requester_id, addressee_id in result.all():
        friends.add(addressee_id if requester_id == user_id else requester_id)
    return friends
