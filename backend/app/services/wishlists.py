"""Wishlists and their items, owner side."""

from dataclasses import dataclass, field
import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditAction, audit_item_action, audit_log
from app.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from app.db.session import atomic
from app.models.models import (
    ItemClaim,
    NotificationTypeEnum,
    PrivacyLevelEnum,
    SplitClaim,
    Wishlist,
    WishlistItem,
    WishlistSelectedFriend,
)
from app.services import recipients
from app.services.notifications import FALLBACK_FRIEND, NotificationOutbox, display_name
from app.services.privileged import PrivilegedService
from app.services.visibility import accepted_friend_ids, can_view_wishlist, friends_who_can_view

logger = logging.getLogger("giftcircle.wishlists")

EDITABLE_ITEM_FIELDS = ("title", "url", "price", "currency", "notes", "is_purchased")


async def load_item(db: AsyncSession, item_id: int, *, for_update: bool = False) -> tuple[WishlistItem, Wishlist]:
    stmt = (
        select(WishlistItem, Wishlist)
        .join(Wishlist, Wishlist.id == WishlistItem.wishlist_id)
        .where(WishlistItem.id == item_id)
    )
    if for_update:
        stmt = stmt.with_for_update(of=WishlistItem)
    row = (await db.execute(stmt)).first()
    if row is None:
        raise NotFoundError("Item not found")
    return row[0], row[1]


async def load_wishlist(db: AsyncSession, wishlist_id: int) -> Wishlist:
    result = await db.execute(select(Wishlist).where(Wishlist.id == wishlist_id))
    wishlist = result.scalar_one_or_none()
    if wishlist is None:
        raise NotFoundError("Wishlist not found")
    return wishlist


async def get_wishlist(db: AsyncSession, wishlist_id: int, viewer_id: int) -> tuple[Wishlist, list[WishlistItem]]:
    wishlist = await load_wishlist(db, wishlist_id)
    if not await can_view_wishlist(db, wishlist, viewer_id):
        raise ForbiddenError("You cannot view this wishlist")
    result = await db.execute(
        select(WishlistItem)
        .where(WishlistItem.wishlist_id == wishlist.id)
        .order_by(WishlistItem.created_at.asc(), WishlistItem.id.asc())
    )
    return wishlist, list(result.scalars())


async def selected_friend_ids(db: AsyncSession, wishlist_id: int) -> list[int]:
    result = await db.execute(
        select(WishlistSelectedFriend.friend_id)
        .where(WishlistSelectedFriend.wishlist_id == wishlist_id)
        .order_by(WishlistSelectedFriend.friend_id.asc())
    )
    return list(result.scalars())


async def _replace_selected_friends(db: AsyncSession, wishlist: Wishlist, friend_ids: list[int]) -> list[int]:
    wanted = set(friend_ids)
    if wishlist.owner_id in wanted:
        raise InvalidArgumentError("Owner cannot be a selected friend")
    friends = await accepted_friend_ids(db, wishlist.owner_id)
    strangers = wanted - friends
    if strangers:
        raise InvalidArgumentError("Only friends can be selected")

    await db.execute(
        delete(WishlistSelectedFriend).where(WishlistSelectedFriend.wishlist_id == wishlist.id)
    )
    for friend_id in sorted(wanted):
        db.add(WishlistSelectedFriend(wishlist_id=wishlist.id, friend_id=friend_id))
    await db.flush()
    return sorted(wanted)


async def create_wishlist(
    db: AsyncSession,
    owner_id: int,
    name: str,
    description: str | None = None,
    privacy: str = PrivacyLevelEnum.FRIENDS.value,
    selected_friend_ids: list[int] | None = None,
    outbox: NotificationOutbox | None = None,
) -> Wishlist:
    async with atomic(db):
        wishlist = Wishlist(owner_id=owner_id, name=name, description=description, privacy=privacy)
        db.add(wishlist)
        await db.flush()
        if selected_friend_ids:
            await _replace_selected_friends(db, wishlist, selected_friend_ids)

        audience = await friends_who_can_view(db, wishlist)
        owner_name = await display_name(db, owner_id, FALLBACK_FRIEND)
        await PrivilegedService(db, outbox).notify(
            recipients.owner_activity(audience, owner_id),
            NotificationTypeEnum.WISHLIST_CREATED.value,
            "New Wishlist",
            f"{owner_name} created a new wishlist: {wishlist.name}",
            owner_id,
            wishlist_id=wishlist.id,
        )
    logger.debug("create_wishlist: wishlist_id=%s privacy=%s audience=%d", wishlist.id, privacy, len(audience))
    audit_log(AuditAction.WISHLIST_CREATE, user_id=owner_id, details={"wishlist_id": wishlist.id, "privacy": privacy})
    return wishlist


async def _load_owned_wishlist(db: AsyncSession, wishlist_id: int, owner_id: int) -> Wishlist:
    wishlist = await load_wishlist(db, wishlist_id)
    if wishlist.owner_id != owner_id:
        raise ForbiddenError("Only the owner can change this wishlist")
    return wishlist


async def update_privacy(db: AsyncSession, wishlist_id: int, owner_id: int, privacy: str) -> Wishlist:
    async with atomic(db):
        wishlist = await _load_owned_wishlist(db, wishlist_id, owner_id)
        wishlist.privacy = privacy
    audit_log(
        AuditAction.WISHLIST_PRIVACY_UPDATE,
        user_id=owner_id,
        details={"wishlist_id": wishlist_id, "privacy": privacy},
    )
    return wishlist


async def set_selected_friends(db: AsyncSession, wishlist_id: int, owner_id: int, friend_ids: list[int]) -> list[int]:
    async with atomic(db):
        wishlist = await _load_owned_wishlist(db, wishlist_id, owner_id)
        stored = await _replace_selected_friends(db, wishlist, friend_ids)
    audit_log(
        AuditAction.WISHLIST_SELECTED_FRIENDS_UPDATE,
        user_id=owner_id,
        details={"wishlist_id": wishlist_id, "count": len(stored)},
    )
    return stored


async def add_item(
    db: AsyncSession,
    wishlist_id: int,
    owner_id: int,
    title: str,
    url: str | None = None,
    price: float | None = None,
    currency: str | None = None,
    notes: str | None = None,
    outbox: NotificationOutbox | None = None,
) -> WishlistItem:
    async with atomic(db):
        wishlist = await load_wishlist(db, wishlist_id)
        if wishlist.owner_id != owner_id:
            raise ForbiddenError("Only the owner can add items")
        item = WishlistItem(
            wishlist_id=wishlist.id,
            title=title,
            url=url,
            price=price,
            currency=currency,
            notes=notes,
        )
        db.add(item)
        await db.flush()

        audience = await friends_who_can_view(db, wishlist)
        owner_name = await display_name(db, owner_id, FALLBACK_FRIEND)
        await PrivilegedService(db, outbox).notify(
            recipients.owner_activity(audience, owner_id),
            NotificationTypeEnum.ITEM_ADDED.value,
            "New Item Added",
            f'{owner_name} added "{item.title}" to {wishlist.name}',
            owner_id,
            wishlist_id=wishlist.id,
            item_id=item.id,
        )
    audit_item_action(AuditAction.ITEM_CREATE, owner_id, item.id, {"wishlist_id": wishlist_id})
    return item


async def update_item(db: AsyncSession, item_id: int, owner_id: int, changes: dict[str, Any]) -> WishlistItem:
    unknown = set(changes) - set(EDITABLE_ITEM_FIELDS)
    if unknown:
        raise InvalidArgumentError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    async with atomic(db):
        item, wishlist = await load_item(db, item_id, for_update=True)
        if wishlist.owner_id != owner_id:
            raise ForbiddenError("Only the owner can update items")
        for key, value in changes.items():
            setattr(item, key, value)
    audit_item_action(AuditAction.ITEM_UPDATE, owner_id, item_id, {"fields": sorted(changes)})
    return item


@dataclass
class ItemClaimState:
    """Claim state of an item as seen by a non-owner viewer."""

    solo_claim: ItemClaim | None = None
    split_claim: SplitClaim | None = None
    split_participant_ids: list[int] = field(default_factory=list)

    @property
    def is_claimed(self) -> bool:
        return self.solo_claim is not None or self.split_claim is not None


@dataclass
class ItemView:
    item: WishlistItem
    wishlist: Wishlist
    viewer_is_owner: bool
    claim_state: ItemClaimState | None


async def get_item_view(db: AsyncSession, item_id: int, viewer_id: int) -> ItemView:
    # Imported here: claims builds on load_item from this module.
    from app.services.claims import claim_state_for_item

    item, wishlist = await load_item(db, item_id)
    if not await can_view_wishlist(db, wishlist, viewer_id):
        raise ForbiddenError("You cannot view this wishlist")
    if viewer_id == wishlist.owner_id:
        return ItemView(item=item, wishlist=wishlist, viewer_is_owner=True, claim_state=None)
    state = await claim_state_for_item(db, item.id)
    return ItemView(item=item, wishlist=wishlist, viewer_is_owner=False, claim_state=state)


