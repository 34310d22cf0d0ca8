import pytest
from sqlalchemy import select

from app.core.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from app.models.models import Notification, NotificationTypeEnum, PrivacyLevelEnum
from app.services import claims as claim_service, wishlists as wishlist_service
from app.services.notifications import NotificationOutbox


async def _recipients(db, notification_type: str) -> list[int]:
    result = await db.execute(
        select(Notification.user_id).where(Notification.type == notification_type).order_by(Notification.user_id)
    )
    return list(result.scalars())


@pytest.mark.anyio
async def test_create_wishlist_notifies_friends_who_can_view(db, circle):
    outbox = NotificationOutbox()
    wishlist = await wishlist_service.create_wishlist(db, circle.owner.id, "Housewarming", outbox=outbox)

    assert wishlist.privacy == PrivacyLevelEnum.FRIENDS.value
    assert await _recipients(db, NotificationTypeEnum.WISHLIST_CREATED.value) == sorted(
        [circle.bob.id, circle.carol.id, circle.dave.id]
    )
    messages = {event.notification["message"] for event in outbox.events()}
    assert messages == {"Alice created a new wishlist: Housewarming"}


@pytest.mark.anyio
async def test_private_wishlist_notifies_nobody(db, circle):
    await wishlist_service.create_wishlist(db, circle.owner.id, "Diary", privacy=PrivacyLevelEnum.PRIVATE.value)
    assert await _recipients(db, NotificationTypeEnum.WISHLIST_CREATED.value) == []


@pytest.mark.anyio
async def test_selected_friends_wishlist_notifies_selection(db, circle):
    wishlist = await wishlist_service.create_wishlist(
        db,
        circle.owner.id,
        "Surprise",
        privacy=PrivacyLevelEnum.SELECTED_FRIENDS.value,
        selected_friend_ids=[circle.dave.id],
    )
    assert await wishlist_service.selected_friend_ids(db, wishlist.id) == [circle.dave.id]
    assert await _recipients(db, NotificationTypeEnum.WISHLIST_CREATED.value) == [circle.dave.id]

    await wishlist_service.add_item(db, wishlist.id, circle.owner.id, "Kite")
    assert await _recipients(db, NotificationTypeEnum.ITEM_ADDED.value) == [circle.dave.id]


@pytest.mark.anyio
async def test_selected_friends_must_be_friends(db, seed, circle):
    stranger = seed.user("Eve")
    with pytest.raises(InvalidArgumentError):
        await wishlist_service.set_selected_friends(db, circle.wishlist.id, circle.owner.id, [stranger.id])
    with pytest.raises(ForbiddenError):
        await wishlist_service.set_selected_friends(db, circle.wishlist.id, circle.bob.id, [circle.carol.id])


@pytest.mark.anyio
async def test_privacy_change_applies_to_next_read(db, circle):
    await wishlist_service.update_privacy(db, circle.wishlist.id, circle.owner.id, PrivacyLevelEnum.PRIVATE.value)
    with pytest.raises(ForbiddenError):
        await wishlist_service.get_wishlist(db, circle.wishlist.id, circle.bob.id)
    wishlist, items = await wishlist_service.get_wishlist(db, circle.wishlist.id, circle.owner.id)
    assert [item.id for item in items] == [circle.item.id]


@pytest.mark.anyio
async def test_item_view_hides_claims_from_owner(db, circle):
    await claim_service.create_solo_claim(db, circle.item.id, circle.bob.id)

    owner_view = await wishlist_service.get_item_view(db, circle.item.id, circle.owner.id)
    assert owner_view.viewer_is_owner is True
    assert owner_view.claim_state is None

    friend_view = await wishlist_service.get_item_view(db, circle.item.id, circle.carol.id)
    assert friend_view.claim_state.is_claimed is True
    assert friend_view.claim_state.solo_claim.claimed_by == circle.bob.id


@pytest.mark.anyio
async def test_update_item_rules(db, circle):
    item = await wishlist_service.update_item(db, circle.item.id, circle.owner.id, {"title": "Grinder", "price": 120})
    assert item.title == "Grinder"

    with pytest.raises(ForbiddenError):
        await wishlist_service.update_item(db, circle.item.id, circle.bob.id, {"title": "Hacked"})
    with pytest.raises(InvalidArgumentError):
        await wishlist_service.update_item(db, circle.item.id, circle.owner.id, {"is_received": True})
    with pytest.raises(NotFoundError):
        await wishlist_service.update_item(db, 999_999, circle.owner.id, {"title": "Ghost"})
