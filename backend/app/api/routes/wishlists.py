from fastapi import APIRouter, Depends, status

from app.api.deps import DbSessionDep, get_current_user
from app.models.models import User, WishlistItem
from app.realtime.manager import manager
from app.schemas.claims import ReceivedPublic
from app.schemas.wishlist import (
    ClaimStatePublic,
    ItemCreate,
    ItemDetailPublic,
    ItemPublic,
    ItemUpdate,
    SelectedFriendsPublic,
    SelectedFriendsUpdate,
    WishlistCreate,
    WishlistDetailPublic,
    WishlistPrivacyUpdate,
    WishlistPublic,
)
from app.services import fulfillment, wishlists as wishlist_service
from app.services.notifications import NotificationOutbox
from app.services.wishlists import ItemView


router = APIRouter(prefix="/wishlists", tags=["wishlists"])
items_router = APIRouter(prefix="/items", tags=["items"])


def _serialize_item(item: WishlistItem) -> ItemPublic:
    return ItemPublic.model_validate(item)


def _serialize_item_view(view: ItemView) -> ItemDetailPublic:
    base = ItemPublic.model_validate(view.item).model_dump()
    state = view.claim_state
    if view.viewer_is_owner or state is None:
        # Owners never see who is giving them what.
        return ItemDetailPublic(**base, claim_state=None)

    claim_state = ClaimStatePublic(
        is_claimed=state.is_claimed,
        solo_claim_id=state.solo_claim.id if state.solo_claim else None,
        solo_claimed_by=state.solo_claim.claimed_by if state.solo_claim else None,
        split_claim_id=state.split_claim.id if state.split_claim else None,
        split_status=state.split_claim.status if state.split_claim else None,
        split_target_participants=state.split_claim.target_participants if state.split_claim else None,
        split_participant_ids=state.split_participant_ids,
    )
    return ItemDetailPublic(**base, claim_state=claim_state)


@router.post("", response_model=WishlistPublic, status_code=status.HTTP_201_CREATED)
async def create_wishlist(
    payload: WishlistCreate,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> WishlistPublic:
    outbox = NotificationOutbox()
    wishlist = await wishlist_service.create_wishlist(
        db,
        current_user.id,
        payload.name,
        description=payload.description,
        privacy=payload.privacy.value,
        selected_friend_ids=payload.selected_friend_ids,
        outbox=outbox,
    )
    await manager.publish(outbox.events())
    return WishlistPublic.model_validate(wishlist)


@router.get("/{wishlist_id}", response_model=WishlistDetailPublic)
async def get_wishlist(
    wishlist_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> WishlistDetailPublic:
    wishlist, items = await wishlist_service.get_wishlist(db, wishlist_id, current_user.id)
    base = WishlistPublic.model_validate(wishlist).model_dump()
    return WishlistDetailPublic(**base, items=[_serialize_item(item) for item in items])


@router.patch("/{wishlist_id}/privacy", response_model=WishlistPublic)
async def update_wishlist_privacy(
    wishlist_id: int,
    payload: WishlistPrivacyUpdate,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> WishlistPublic:
    wishlist = await wishlist_service.update_privacy(db, wishlist_id, current_user.id, payload.privacy.value)
    return WishlistPublic.model_validate(wishlist)


@router.put("/{wishlist_id}/selected-friends", response_model=SelectedFriendsPublic)
async def set_selected_friends(
    wishlist_id: int,
    payload: SelectedFriendsUpdate,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> SelectedFriendsPublic:
    stored = await wishlist_service.set_selected_friends(db, wishlist_id, current_user.id, payload.friend_ids)
    return SelectedFriendsPublic(wishlist_id=wishlist_id, friend_ids=stored)


@router.post("/{wishlist_id}/items", response_model=ItemPublic, status_code=status.HTTP_201_CREATED)
async def add_item(
    wishlist_id: int,
    payload: ItemCreate,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> ItemPublic:
    outbox = NotificationOutbox()
    item = await wishlist_service.add_item(
        db,
        wishlist_id,
        current_user.id,
        payload.title,
        url=payload.url,
        price=payload.price,
        currency=payload.currency,
        notes=payload.notes,
        outbox=outbox,
    )
    await manager.publish(outbox.events())
    return _serialize_item(item)


@items_router.get("/{item_id}", response_model=ItemDetailPublic)
async def get_item(
    item_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> ItemDetailPublic:
    view = await wishlist_service.get_item_view(db, item_id, current_user.id)
    return _serialize_item_view(view)


@items_router.patch("/{item_id}", response_model=ItemPublic)
async def update_item(
    item_id: int,
    payload: ItemUpdate,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> ItemPublic:
    changes = payload.model_dump(exclude_unset=True)
    item = await wishlist_service.update_item(db, item_id, current_user.id, changes)
    return _serialize_item(item)


@items_router.post("/{item_id}/received", response_model=ReceivedPublic)
async def mark_item_received(
    item_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> ReceivedPublic:
    outbox = NotificationOutbox()
    result = await fulfillment.mark_item_received(db, item_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return ReceivedPublic(
        item_id=result.item.id,
        is_received=result.item.is_received,
        received_at=result.item.received_at,
        notified_count=len(outbox),
    )
