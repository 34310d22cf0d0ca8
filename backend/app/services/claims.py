"""Solo claims, and the privileged claim transitions driven by the owner."""

from dataclasses import dataclass, field
import logging

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditAction, audit_item_action
from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.db.session import atomic
from app.models.models import (
    ACTIVE_SPLIT_STATUSES,
    ClaimStatusEnum,
    FlagStatusEnum,
    ItemClaim,
    ItemClaimSlot,
    NotificationTypeEnum,
    OwnershipFlag,
    SplitClaim,
    SplitClaimParticipant,
    SplitStatusEnum,
    WishlistItem,
    utcnow,
)
from app.services import recipients
from app.services.notifications import FALLBACK_ITEM, FALLBACK_OWNER, display_name
from app.services.privileged import PrivilegedService
from app.services.visibility import can_view_wishlist
from app.services.wishlists import ItemClaimState, load_item

logger = logging.getLogger("giftcircle.claims")

SOLO = "solo"
SPLIT = "split"


@dataclass
class FulfilledClaims:
    claim_type: str | None = None
    claim_id: int | None = None
    claimer_ids: list[int] = field(default_factory=list)


@dataclass
class CancelledClaims:
    solo_claimer_id: int | None = None
    split_participant_ids: list[int] = field(default_factory=list)

    @property
    def claimer_ids(self) -> list[int]:
        ids = list(self.split_participant_ids)
        if self.solo_claimer_id is not None:
            ids.insert(0, self.solo_claimer_id)
        return ids


async def active_solo_claim(db: AsyncSession, item_id: int) -> ItemClaim | None:
    result = await db.execute(
        select(ItemClaim)
        .where(ItemClaim.item_id == item_id)
        .where(ItemClaim.status == ClaimStatusEnum.ACTIVE.value)
    )
    return result.scalar_one_or_none()


async def active_split_claim(db: AsyncSession, item_id: int, *, for_update: bool = False) -> SplitClaim | None:
    stmt = (
        select(SplitClaim)
        .where(SplitClaim.item_id == item_id)
        .where(SplitClaim.status.in_(ACTIVE_SPLIT_STATUSES))
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def split_participant_ids(db: AsyncSession, split_claim_id: int) -> list[int]:
    result = await db.execute(
        select(SplitClaimParticipant.user_id)
        .where(SplitClaimParticipant.split_claim_id == split_claim_id)
        .order_by(SplitClaimParticipant.joined_at.asc(), SplitClaimParticipant.user_id.asc())
    )
    return list(result.scalars())


async def has_confirmed_flag(db: AsyncSession, item_id: int) -> bool:
    result = await db.execute(
        select(OwnershipFlag.id)
        .where(OwnershipFlag.item_id == item_id)
        .where(OwnershipFlag.status == FlagStatusEnum.CONFIRMED.value)
    )
    return result.scalar_one_or_none() is not None


async def take_claim_slot(db: AsyncSession, item_id: int, claim_type: str) -> None:
    """Reserve the item for one active claim. A second writer fails on the primary key."""
    await db.execute(insert(ItemClaimSlot).values(item_id=item_id, claim_type=claim_type, created_at=utcnow()))


async def release_claim_slot(db: AsyncSession, item_id: int) -> None:
    await db.execute(delete(ItemClaimSlot).where(ItemClaimSlot.item_id == item_id))


async def ensure_item_claimable(db: AsyncSession, item: WishlistItem) -> None:
    """Reject new claims and splits on items that are already settled."""
    if item.is_received:
        raise ConflictError("Item has already been received")
    if await has_confirmed_flag(db, item.id):
        raise ConflictError("Owner already has this item")
    if await active_solo_claim(db, item.id) is not None:
        raise ConflictError("Item is already claimed")
    if await active_split_claim(db, item.id) is not None:
        raise ConflictError("Item already has an active split")


async def claim_state_for_item(db: AsyncSession, item_id: int) -> ItemClaimState:
    solo = await active_solo_claim(db, item_id)
    split = await active_split_claim(db, item_id)
    participants = await split_participant_ids(db, split.id) if split is not None else []
    return ItemClaimState(solo_claim=solo, split_claim=split, split_participant_ids=participants)


async def create_solo_claim(
    db: AsyncSession,
    item_id: int,
    claimer_id: int,
) -> ItemClaim:
    async with atomic(db, "Item is already claimed"):
        item, wishlist = await load_item(db, item_id, for_update=True)
        if wishlist.owner_id == claimer_id:
            raise ConflictError("You cannot claim your own item")
        if not await can_view_wishlist(db, wishlist, claimer_id):
            raise ForbiddenError("You cannot view this wishlist")
        await ensure_item_claimable(db, item)

        await take_claim_slot(db, item.id, SOLO)
        claim = ItemClaim(item_id=item.id, claimed_by=claimer_id, status=ClaimStatusEnum.ACTIVE.value)
        db.add(claim)
        await db.flush()
    logger.debug("create_solo_claim: claim_id=%s item_id=%s claimer_id=%s", claim.id, item_id, claimer_id)
    audit_item_action(AuditAction.CLAIM_CREATE, claimer_id, item_id, {"claim_id": claim.id})
    return claim


async def cancel_solo_claim(db: AsyncSession, claim_id: int, caller_id: int) -> ItemClaim:
    async with atomic(db):
        result = await db.execute(select(ItemClaim).where(ItemClaim.id == claim_id).with_for_update())
        claim = result.scalar_one_or_none()
        if claim is None:
            raise NotFoundError("Claim not found")
        if claim.claimed_by != caller_id:
            raise ForbiddenError("Only the claimer can cancel this claim")
        if claim.status != ClaimStatusEnum.ACTIVE.value:
            raise ConflictError("Claim is not active")
        claim.status = ClaimStatusEnum.CANCELLED.value
        claim.cancelled_at = utcnow()
        await release_claim_slot(db, claim.item_id)
    audit_item_action(AuditAction.CLAIM_CANCEL, caller_id, claim.item_id, {"claim_id": claim.id})
    return claim


async def list_item_claims(db: AsyncSession, item_id: int, viewer_id: int) -> list[ItemClaim]:
    """Full solo-claim history of an item, newest first. Hidden from the owner."""
    _, wishlist = await load_item(db, item_id)
    if wishlist.owner_id == viewer_id:
        raise ForbiddenError("Owners cannot see claims on their own items")
    if not await can_view_wishlist(db, wishlist, viewer_id):
        raise ForbiddenError("You cannot view this wishlist")
    result = await db.execute(
        select(ItemClaim)
        .where(ItemClaim.item_id == item_id)
        .order_by(ItemClaim.created_at.desc(), ItemClaim.id.desc())
    )
    return list(result.scalars())


async def fulfill_claims_for_item(privileged: PrivilegedService, item_id: int, owner_id: int) -> FulfilledClaims:
    """Mark the item's active solo claim, or else its active split, as fulfilled.

    Runs inside the caller's transaction and does not commit.
    """
    db = privileged.db
    now = utcnow()

    solo = await active_solo_claim(db, item_id)
    if solo is not None:
        solo.status = ClaimStatusEnum.FULFILLED.value
        solo.fulfilled_at = now
        await release_claim_slot(db, item_id)
        await db.flush()
        audit_item_action(AuditAction.CLAIMS_FULFILL, owner_id, item_id, {"claim_type": SOLO, "claim_id": solo.id})
        return FulfilledClaims(claim_type=SOLO, claim_id=solo.id, claimer_ids=[solo.claimed_by])

    split = await active_split_claim(db, item_id, for_update=True)
    if split is not None:
        participants = await split_participant_ids(db, split.id)
        split.status = SplitStatusEnum.FULFILLED.value
        split.fulfilled_at = now
        await release_claim_slot(db, item_id)
        await db.flush()
        audit_item_action(AuditAction.CLAIMS_FULFILL, owner_id, item_id, {"claim_type": SPLIT, "claim_id": split.id})
        return FulfilledClaims(claim_type=SPLIT, claim_id=split.id, claimer_ids=participants)

    logger.debug("fulfill_claims_for_item: no active claim item_id=%s", item_id)
    return FulfilledClaims()


async def delete_split(db: AsyncSession, split: SplitClaim) -> None:
    await db.execute(delete(SplitClaimParticipant).where(SplitClaimParticipant.split_claim_id == split.id))
    await release_claim_slot(db, split.item_id)
    await db.delete(split)
    await db.flush()


async def cancel_claims_for_item(
    privileged: PrivilegedService,
    item: WishlistItem,
    owner_id: int,
) -> CancelledClaims:
    """Cancel every active claim on ``item`` after the owner confirms they own it.

    The solo claim is kept as cancelled history; an active split is deleted.
    Each affected claimer is notified. Runs inside the caller's transaction.
    """
    db = privileged.db
    cancelled = CancelledClaims()
    owner_name = await display_name(db, owner_id, FALLBACK_OWNER)
    item_title = item.title or FALLBACK_ITEM

    solo = await active_solo_claim(db, item.id)
    if solo is not None:
        solo.status = ClaimStatusEnum.CANCELLED.value
        solo.cancelled_at = utcnow()
        await release_claim_slot(db, item.id)
        cancelled.solo_claimer_id = solo.claimed_by
        await db.flush()
        await privileged.notify(
            recipients.claims_cancelled_by_owner([solo.claimed_by], owner_id),
            NotificationTypeEnum.CLAIM_CANCELLED.value,
            "Claim Cancelled",
            f'{owner_name} already owns "{item_title}", so your claim was cancelled',
            owner_id,
            wishlist_id=item.wishlist_id,
            item_id=item.id,
        )

    split = await active_split_claim(db, item.id, for_update=True)
    if split is not None:
        participants = await split_participant_ids(db, split.id)
        cancelled.split_participant_ids = participants
        await delete_split(db, split)
        await privileged.notify(
            recipients.claims_cancelled_by_owner(participants, owner_id),
            NotificationTypeEnum.SPLIT_CANCELLED.value,
            "Split Cancelled",
            f'{owner_name} already owns "{item_title}", so the split was cancelled',
            owner_id,
            wishlist_id=item.wishlist_id,
            item_id=item.id,
        )

    if cancelled.claimer_ids:
        logger.info(
            "cancel_claims_for_item: item_id=%s solo=%s split_participants=%d",
            item.id,
            cancelled.solo_claimer_id is not None,
            len(cancelled.split_participant_ids),
        )
        audit_item_action(
            AuditAction.CLAIMS_CANCEL_FOR_ITEM,
            owner_id,
            item.id,
            {"claimer_ids": cancelled.claimer_ids},
        )
    return cancelled
