"""Ownership flags: a friend asks whether the owner already has an item."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditAction, audit_item_action
from app.core.errors import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from app.db.session import atomic
from app.models.models import (
    FlagStatusEnum,
    NotificationTypeEnum,
    OwnershipFlag,
    Wishlist,
    WishlistItem,
    utcnow,
)
from app.services import recipients
from app.services.claims import cancel_claims_for_item
from app.services.notifications import (
    FALLBACK_FRIEND,
    FALLBACK_ITEM,
    FALLBACK_OWNER,
    NotificationOutbox,
    display_name,
)
from app.services.privileged import PrivilegedService
from app.services.visibility import can_view_wishlist
from app.services.wishlists import load_item

logger = logging.getLogger("giftcircle.flags")

RESOLUTIONS = (FlagStatusEnum.CONFIRMED.value, FlagStatusEnum.DENIED.value)


async def _load_flag(db: AsyncSession, flag_id: int) -> tuple[OwnershipFlag, WishlistItem, Wishlist]:
    row = (
        await db.execute(
            select(OwnershipFlag, WishlistItem, Wishlist)
            .join(WishlistItem, WishlistItem.id == OwnershipFlag.item_id)
            .join(Wishlist, Wishlist.id == WishlistItem.wishlist_id)
            .where(OwnershipFlag.id == flag_id)
            .with_for_update(of=OwnershipFlag)
        )
    ).first()
    if row is None:
        raise NotFoundError("Flag not found")
    return row[0], row[1], row[2]


async def create_flag(
    db: AsyncSession,
    item_id: int,
    flagger_id: int,
    outbox: NotificationOutbox | None = None,
) -> OwnershipFlag:
    async with atomic(db, "Item has already been flagged"):
        item, wishlist = await load_item(db, item_id, for_update=True)
        if not await can_view_wishlist(db, wishlist, flagger_id):
            raise ForbiddenError("You cannot view this wishlist")
        if wishlist.owner_id == flagger_id:
            raise ConflictError("You cannot flag your own item")
        existing = await db.execute(select(OwnershipFlag.id).where(OwnershipFlag.item_id == item.id))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Item has already been flagged")

        flag = OwnershipFlag(item_id=item.id, flagged_by=flagger_id, status=FlagStatusEnum.PENDING.value)
        db.add(flag)
        await db.flush()

        flagger_name = await display_name(db, flagger_id, FALLBACK_FRIEND)
        await PrivilegedService(db, outbox).notify(
            recipients.flag_created(wishlist.owner_id, flagger_id),
            NotificationTypeEnum.ITEM_FLAGGED_ALREADY_OWNED.value,
            "Item Ownership Question",
            f'{flagger_name} thinks you might already own "{item.title or FALLBACK_ITEM}"',
            flagger_id,
            wishlist_id=wishlist.id,
            item_id=item.id,
            ownership_flag_id=flag.id,
        )
    audit_item_action(AuditAction.FLAG_CREATE, flagger_id, item_id, {"flag_id": flag.id})
    return flag


async def resolve_flag(
    db: AsyncSession,
    flag_id: int,
    owner_id: int,
    decision: str,
    outbox: NotificationOutbox | None = None,
) -> OwnershipFlag:
    async with atomic(db):
        flag, item, wishlist = await _load_flag(db, flag_id)
        if wishlist.owner_id != owner_id:
            raise ForbiddenError("Only the owner can resolve this flag")
        if decision not in RESOLUTIONS:
            raise InvalidArgumentError("Decision must be 'confirmed' or 'denied'")
        if flag.status != FlagStatusEnum.PENDING.value:
            raise ConflictError("Flag has already been resolved")

        flag.status = decision
        flag.resolved_at = utcnow()
        await db.flush()

        privileged = PrivilegedService(db, outbox)
        if decision == FlagStatusEnum.CONFIRMED.value:
            await cancel_claims_for_item(privileged, item, owner_id)

        owner_name = await display_name(db, owner_id, FALLBACK_OWNER)
        item_title = item.title or FALLBACK_ITEM
        if decision == FlagStatusEnum.CONFIRMED.value:
            notification_type = NotificationTypeEnum.FLAG_CONFIRMED.value
            title = "Item Confirmed as Owned"
            message = f'{owner_name} confirmed they already own "{item_title}"'
        else:
            notification_type = NotificationTypeEnum.FLAG_DENIED.value
            title = "Item Still Wanted"
            message = f'{owner_name} says they still want "{item_title}"'
        await privileged.notify(
            recipients.flag_resolved(flag.flagged_by, owner_id),
            notification_type,
            title,
            message,
            owner_id,
            wishlist_id=wishlist.id,
            item_id=item.id,
            ownership_flag_id=flag.id,
        )
    logger.info("resolve_flag: flag_id=%s item_id=%s decision=%s", flag.id, item.id, decision)
    audit_item_action(AuditAction.FLAG_RESOLVE, owner_id, item.id, {"flag_id": flag.id, "decision": decision})
    return flag


async def delete_flag(
    db: AsyncSession,
    flag_id: int,
    flagger_id: int,
    outbox: NotificationOutbox | None = None,
) -> None:
    async with atomic(db):
        flag, item, _ = await _load_flag(db, flag_id)
        if flag.flagged_by != flagger_id:
            raise ForbiddenError("Only the flagger can withdraw this flag")
        if flag.status != FlagStatusEnum.PENDING.value:
            raise ConflictError("Only pending flags can be withdrawn")

        await PrivilegedService(db, outbox).withdraw_notifications(
            ownership_flag_id=flag.id,
            type=NotificationTypeEnum.ITEM_FLAGGED_ALREADY_OWNED.value,
        )
        await db.delete(flag)
        await db.flush()
    logger.debug("delete_flag: flag_id=%s item_id=%s", flag_id, item.id)
    audit_item_action(AuditAction.FLAG_DELETE, flagger_id, item.id, {"flag_id": flag_id})
