import pytest
from sqlalchemy import select

from app.core.errors import ConflictError, ForbiddenError, NotFoundError
from app.models.models import (
    ClaimStatusEnum,
    ItemClaim,
    Notification,
    NotificationTypeEnum,
    SplitClaim,
    SplitStatusEnum,
)
from app.services import claims as claim_service, fulfillment, splits as split_service
from app.services.notifications import NotificationOutbox


async def _gift_received_recipients(db) -> list[int]:
    result = await db.execute(
        select(Notification.user_id)
        .where(Notification.type == NotificationTypeEnum.GIFT_RECEIVED.value)
        .order_by(Notification.user_id)
    )
    return list(result.scalars())


@pytest.mark.anyio
async def test_scenario_split_fulfilled_notifies_participants_only(db, circle):
    """Bob starts a split for two, Carol joins, Alice marks the item received."""
    view = await split_service.initiate_split(db, circle.item.id, circle.bob.id, 2)
    split_id = view.split.id
    view = await split_service.join_split(db, split_id, circle.carol.id)
    assert view.split.status == SplitStatusEnum.CONFIRMED.value

    outbox = NotificationOutbox()
    result = await fulfillment.mark_item_received(db, circle.item.id, circle.owner.id, outbox=outbox)

    assert result.item.is_received is True
    assert result.item.received_at is not None
    assert result.fulfilled.claim_type == claim_service.SPLIT
    assert sorted(result.fulfilled.claimer_ids) == [circle.bob.id, circle.carol.id]

    split = (await db.execute(select(SplitClaim).where(SplitClaim.id == split_id))).scalar_one()
    assert split.status == SplitStatusEnum.FULFILLED.value
    assert split.fulfilled_at is not None

    assert await _gift_received_recipients(db) == [circle.bob.id, circle.carol.id]
    assert sorted(event.user_id for event in outbox.events()) == [circle.bob.id, circle.carol.id]
    message = outbox.events()[0].notification["message"]
    assert message == 'Alice marked "Espresso machine" as received. Thank you for the gift!'


@pytest.mark.anyio
async def test_solo_fulfillment_notifies_only_claimer(db, circle):
    claim = await claim_service.create_solo_claim(db, circle.item.id, circle.dave.id)
    claim_id = claim.id

    result = await fulfillment.mark_item_received(db, circle.item.id, circle.owner.id)

    assert result.fulfilled.claim_type == claim_service.SOLO
    assert result.fulfilled.claim_id == claim_id
    stored = (await db.execute(select(ItemClaim).where(ItemClaim.id == claim_id))).scalar_one()
    assert stored.status == ClaimStatusEnum.FULFILLED.value
    assert stored.fulfilled_at is not None
    assert await _gift_received_recipients(db) == [circle.dave.id]


@pytest.mark.anyio
async def test_pending_split_is_fulfilled_too(db, circle):
    view = await split_service.initiate_split(db, circle.item.id, circle.bob.id, 3)
    result = await fulfillment.mark_item_received(db, circle.item.id, circle.owner.id)
    assert result.fulfilled.claim_id == view.split.id
    assert await _gift_received_recipients(db) == [circle.bob.id]


@pytest.mark.anyio
async def test_receiving_unclaimed_item_notifies_nobody(db, circle):
    result = await fulfillment.mark_item_received(db, circle.item.id, circle.owner.id)
    assert result.fulfilled.claim_type is None
    assert result.fulfilled.claimer_ids == []
    assert await _gift_received_recipients(db) == []


@pytest.mark.anyio
async def test_mark_received_rules(db, circle):
    with pytest.raises(NotFoundError):
        await fulfillment.mark_item_received(db, 999_999, circle.owner.id)
    with pytest.raises(ForbiddenError):
        await fulfillment.mark_item_received(db, circle.item.id, circle.bob.id)

    await fulfillment.mark_item_received(db, circle.item.id, circle.owner.id)
    with pytest.raises(ConflictError):
        await fulfillment.mark_item_received(db, circle.item.id, circle.owner.id)


@pytest.mark.anyio
async def test_received_item_rejects_new_claims(db, circle):
    await fulfillment.mark_item_received(db, circle.item.id, circle.owner.id)
    with pytest.raises(ConflictError):
        await claim_service.create_solo_claim(db, circle.item.id, circle.bob.id)
    with pytest.raises(ConflictError):
        await split_service.initiate_split(db, circle.item.id, circle.bob.id, 2)
