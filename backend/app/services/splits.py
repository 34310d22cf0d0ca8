"""Split claims: several friends sharing one gift.

State machine: ``pending -> confirmed -> fulfilled``, or ``pending -> deleted``
when the initiator leaves or the owner confirms an ownership flag. A split is
confirmed by the join that brings the participant count up to its target,
inside the same transaction as that join.
"""

from dataclasses import dataclass, field
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import AuditAction, audit_split_action
from app.core.errors import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from app.db.session import atomic
from app.models.models import (
    NotificationTypeEnum,
    SplitClaim,
    SplitClaimParticipant,
    SplitStatusEnum,
    Wishlist,
    WishlistItem,
    utcnow,
)
from app.services import recipients
from app.services.claims import SPLIT, delete_split, ensure_item_claimable, split_participant_ids, take_claim_slot
from app.services.notifications import FALLBACK_ACTOR, FALLBACK_ITEM, NotificationOutbox, display_name
from app.services.privileged import PrivilegedService
from app.services.visibility import accepted_friend_ids, can_view_wishlist
from app.services.wishlists import load_item

logger = logging.getLogger("giftcircle.splits")

MIN_PARTICIPANTS = 2


@dataclass
class SplitView:
    split: SplitClaim
    participant_ids: list[int] = field(default_factory=list)


@dataclass
class LeaveResult:
    split_claim_id: int
    split_deleted: bool
    remaining_participant_ids: list[int] = field(default_factory=list)


async def _load_split(db: AsyncSession, split_id: int, *, for_update: bool = False) -> tuple[SplitClaim, WishlistItem, Wishlist]:
    stmt = (
        select(SplitClaim, WishlistItem, Wishlist)
        .join(WishlistItem, WishlistItem.id == SplitClaim.item_id)
        .join(Wishlist, Wishlist.id == WishlistItem.wishlist_id)
        .where(SplitClaim.id == split_id)
    )
    if for_update:
        stmt = stmt.with_for_update(of=SplitClaim)
    row = (await db.execute(stmt)).first()
    if row is None:
        raise NotFoundError("Split not found")
    return row[0], row[1], row[2]


async def _take_seats(db: AsyncSession, split_id: int, seats: int) -> bool:
    """Move a pending split's seat count by ``seats`` in one guarded UPDATE.

    False when the split is no longer pending or has no seat left. The UPDATE
    also holds the split row until the transaction ends, so concurrent joins
    and leaves on one split run one after another.
    """
    stmt = (
        update(SplitClaim)
        .where(SplitClaim.id == split_id)
        .where(SplitClaim.status == SplitStatusEnum.PENDING.value)
    )
    if seats > 0:
        stmt = stmt.where(SplitClaim.participant_count + seats <= SplitClaim.target_participants)
    result = await db.execute(
        stmt.values(participant_count=SplitClaim.participant_count + seats)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _confirm_if_full(db: AsyncSession, split_id: int) -> bool:
    result = await db.execute(
        update(SplitClaim)
        .where(SplitClaim.id == split_id)
        .where(SplitClaim.status == SplitStatusEnum.PENDING.value)
        .where(SplitClaim.participant_count >= SplitClaim.target_participants)
        .values(status=SplitStatusEnum.CONFIRMED.value, confirmed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def initiate_split(
    db: AsyncSession,
    item_id: int,
    initiator_id: int,
    target_participants: int,
    outbox: NotificationOutbox | None = None,
) -> SplitView:
    if target_participants < MIN_PARTICIPANTS:
        raise InvalidArgumentError(f"A split needs at least {MIN_PARTICIPANTS} participants")

    async with atomic(db, "Item already has an active claim"):
        item, wishlist = await load_item(db, item_id, for_update=True)
        if wishlist.owner_id == initiator_id:
            raise ConflictError("You cannot split your own item")
        if not await can_view_wishlist(db, wishlist, initiator_id):
            raise ForbiddenError("You cannot view this wishlist")
        await ensure_item_claimable(db, item)

        await take_claim_slot(db, item.id, SPLIT)
        split = SplitClaim(
            item_id=item.id,
            initiated_by=initiator_id,
            target_participants=target_participants,
            participant_count=1,
            status=SplitStatusEnum.PENDING.value,
        )
        db.add(split)
        await db.flush()
        db.add(SplitClaimParticipant(split_claim_id=split.id, user_id=initiator_id))
        await db.flush()

        friends = await accepted_friend_ids(db, initiator_id)
        initiator_name = await display_name(db, initiator_id, FALLBACK_ACTOR)
        await PrivilegedService(db, outbox).notify(
            recipients.split_initiated(friends, initiator_id, wishlist.owner_id),
            NotificationTypeEnum.SPLIT_INITIATED.value,
            "Split Gift Started",
            f'{initiator_name} started a split for "{item.title or FALLBACK_ITEM}"',
            initiator_id,
            wishlist_id=wishlist.id,
            item_id=item.id,
            split_claim_id=split.id,
        )
    audit_split_action(
        AuditAction.SPLIT_INITIATE,
        initiator_id,
        split.id,
        item_id,
        {"target_participants": target_participants},
    )
    return SplitView(split=split, participant_ids=[initiator_id])


async def join_split(
    db: AsyncSession,
    split_id: int,
    user_id: int,
    outbox: NotificationOutbox | None = None,
) -> SplitView:
    async with atomic(db, "Already a participant"):
        split, item, wishlist = await _load_split(db, split_id, for_update=True)
        if wishlist.owner_id == user_id:
            raise ForbiddenError("Owners cannot join splits on their own items")
        if not await can_view_wishlist(db, wishlist, user_id):
            raise ForbiddenError("You cannot view this wishlist")
        if split.status != SplitStatusEnum.PENDING.value:
            raise ConflictError("Split is not accepting participants")
        participants = await split_participant_ids(db, split.id)
        if user_id in participants:
            raise ConflictError("Already a participant")

        if not await _take_seats(db, split.id, 1):
            raise ConflictError("Split is not accepting participants")
        db.add(SplitClaimParticipant(split_claim_id=split.id, user_id=user_id))
        await db.flush()
        participants = await split_participant_ids(db, split.id)

        privileged = PrivilegedService(db, outbox)
        item_title = item.title or FALLBACK_ITEM
        joiner_name = await display_name(db, user_id, FALLBACK_ACTOR)
        await privileged.notify(
            recipients.split_joined(participants, user_id, wishlist.owner_id),
            NotificationTypeEnum.SPLIT_JOINED.value,
            "Someone Joined Split",
            f'{joiner_name} joined the split for "{item_title}"',
            user_id,
            wishlist_id=wishlist.id,
            item_id=item.id,
            split_claim_id=split.id,
        )

        confirmed = await _confirm_if_full(db, split.id)
        await db.refresh(split)
        if confirmed:
            await privileged.notify(
                recipients.split_confirmed(participants, wishlist.owner_id),
                NotificationTypeEnum.SPLIT_CONFIRMED.value,
                "Split Confirmed!",
                f'The split for "{item_title}" is now confirmed',
                split.initiated_by,
                wishlist_id=wishlist.id,
                item_id=item.id,
                split_claim_id=split.id,
            )

    audit_split_action(AuditAction.SPLIT_JOIN, user_id, split.id, item.id, {"participants": len(participants)})
    logger.debug("join_split: split_id=%s participants=%d/%d", split.id, len(participants), split.target_participants)
    if confirmed:
        logger.info("join_split: split confirmed split_id=%s item_id=%s", split.id, item.id)
        audit_split_action(AuditAction.SPLIT_CONFIRM, user_id, split.id, item.id)
    return SplitView(split=split, participant_ids=participants)


async def leave_split(
    db: AsyncSession,
    split_id: int,
    user_id: int,
    outbox: NotificationOutbox | None = None,
) -> LeaveResult:
    async with atomic(db):
        split, item, wishlist = await _load_split(db, split_id, for_update=True)
        participants = await split_participant_ids(db, split.id)
        if user_id not in participants:
            raise ConflictError("Not a participant of this split")
        if split.status != SplitStatusEnum.PENDING.value:
            raise ConflictError("Only pending splits can be left")

        privileged = PrivilegedService(db, outbox)
        item_title = item.title or FALLBACK_ITEM
        actor_name = await display_name(db, user_id, FALLBACK_ACTOR)
        split_claim_id = split.id

        if not await _take_seats(db, split.id, 0 if user_id == split.initiated_by else -1):
            raise ConflictError("Only pending splits can be left")
        if user_id == split.initiated_by:
            await delete_split(db, split)
            # The split row is gone, so the notification cannot reference it.
            await privileged.notify(
                recipients.split_cancelled(participants, user_id, wishlist.owner_id),
                NotificationTypeEnum.SPLIT_CANCELLED.value,
                "Split Cancelled",
                f'{actor_name} cancelled the split for "{item_title}"',
                user_id,
                wishlist_id=wishlist.id,
                item_id=item.id,
            )
            result = LeaveResult(split_claim_id=split_claim_id, split_deleted=True)
        else:
            await db.execute(
                delete(SplitClaimParticipant)
                .where(SplitClaimParticipant.split_claim_id == split.id)
                .where(SplitClaimParticipant.user_id == user_id)
            )
            await privileged.notify(
                recipients.split_left(participants, user_id, wishlist.owner_id),
                NotificationTypeEnum.SPLIT_LEFT.value,
                "Someone Left Split",
                f'{actor_name} left the split for "{item_title}"',
                user_id,
                wishlist_id=wishlist.id,
                item_id=item.id,
                split_claim_id=split.id,
            )
            result = LeaveResult(
                split_claim_id=split_claim_id,
                split_deleted=False,
                remaining_participant_ids=[pid for pid in participants if pid != user_id],
            )

    logger.debug("leave_split: split_id=%s user_id=%s deleted=%s", split_claim_id, user_id, result.split_deleted)
    action = AuditAction.SPLIT_CANCEL if result.split_deleted else AuditAction.SPLIT_LEAVE
    audit_split_action(action, user_id, split_claim_id, item.id)
    return result


async def get_split(db: AsyncSession, split_id: int, viewer_id: int) -> SplitView:
    split, _, wishlist = await _load_split(db, split_id)
    # The owner must not learn that a split exists.
    if wishlist.owner_id == viewer_id:
        raise NotFoundError("Split not found")
    if not await can_view_wishlist(db, wishlist, viewer_id):
        raise ForbiddenError("You cannot view this wishlist")
    return SplitView(split=split, participant_ids=await split_participant_ids(db, split.id))
