"""Marking an item as received and thanking whoever gave it."""

from dataclasses import dataclass
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditAction, audit_item_action
from app.core.errors import ConflictError, ForbiddenError
from app.db.session import atomic
from app.models.models import NotificationTypeEnum, WishlistItem, utcnow
from app.services import recipients
from app.services.claims import SPLIT, FulfilledClaims, fulfill_claims_for_item
from app.services.notifications import FALLBACK_ACTOR, FALLBACK_ITEM, NotificationOutbox, display_name
from app.services.privileged import PrivilegedService
from app.services.wishlists import load_item

logger = logging.getLogger("giftcircle.fulfillment")


@dataclass
class ReceivedResult:
    item: WishlistItem
    fulfilled: FulfilledClaims


async def mark_item_received(
    db: AsyncSession,
    item_id: int,
    owner_id: int,
    outbox: NotificationOutbox | None = None,
) -> ReceivedResult:
    async with atomic(db):
        item, wishlist = await load_item(db, item_id, for_update=True)
        if wishlist.owner_id != owner_id:
            raise ForbiddenError("Only the owner can mark an item as received")
        if item.is_received:
            raise ConflictError("Item has already been received")

        item.is_received = True
        item.received_at = utcnow()
        await db.flush()

        privileged = PrivilegedService(db, outbox)
        fulfilled = await fulfill_claims_for_item(privileged, item.id, owner_id)
        if fulfilled.claimer_ids:
            owner_name = await display_name(db, owner_id, FALLBACK_ACTOR)
            await privileged.notify(
                recipients.gift_received(fulfilled.claimer_ids, owner_id),
                NotificationTypeEnum.GIFT_RECEIVED.value,
                "Gift Received!",
                f'{owner_name} marked "{item.title or FALLBACK_ITEM}" as received. Thank you for the gift!',
                owner_id,
                wishlist_id=wishlist.id,
                item_id=item.id,
                split_claim_id=fulfilled.claim_id if fulfilled.claim_type == SPLIT else None,
            )
        else:
            logger.info("Item %s received with no active claim", item.id)

    audit_item_action(
        AuditAction.ITEM_RECEIVED,
        owner_id,
        item_id,
        {"claim_type": fulfilled.claim_type, "claimers": len(fulfilled.claimer_ids)},
    )
    return ReceivedResult(item=item, fulfilled=fulfilled)
