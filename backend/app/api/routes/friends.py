from fastapi import APIRouter, Depends, status

from app.api.deps import DbSessionDep, get_current_user
from app.models.models import User
from app.realtime.manager import manager
from app.schemas.friends import FriendPublic, FriendRequestCreate, FriendRequestsPublic, FriendshipPublic
from app.services import friends as friend_service
from app.services.notifications import NotificationOutbox


router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("", response_model=list[FriendPublic])
async def list_friends(
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> list[FriendPublic]:
    friends = await friend_service.list_friends(db, current_user.id)
    return [FriendPublic.model_validate(friend) for friend in friends]


@router.get("/requests", response_model=FriendRequestsPublic)
async def list_friend_requests(
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> FriendRequestsPublic:
    requests = await friend_service.list_friend_requests(db, current_user.id)
    return FriendRequestsPublic(
        incoming=[FriendshipPublic.model_validate(row) for row in requests.incoming],
        outgoing=[FriendshipPublic.model_validate(row) for row in requests.outgoing],
    )


@router.post("/requests", response_model=FriendshipPublic, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    payload: FriendRequestCreate,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> FriendshipPublic:
    outbox = NotificationOutbox()
    friendship = await friend_service.send_friend_request(db, current_user.id, payload.addressee_id, outbox=outbox)
    await manager.publish(outbox.events())
    return FriendshipPublic.model_validate(friendship)


@router.post("/requests/{friendship_id}/accept", response_model=FriendshipPublic)
async def accept_friend_request(
    friendship_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> FriendshipPublic:
    outbox = NotificationOutbox()
    friendship = await friend_service.accept_friend_request(db, friendship_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return FriendshipPublic.model_validate(friendship)


@router.post("/requests/{friendship_id}/decline", status_code=status.HTTP_204_NO_CONTENT)
async def decline_friend_request(
    friendship_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> None:
    await friend_service.decline_friend_request(db, friendship_id, current_user.id)


@router.delete("/requests/{friendship_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_friend_request(
    friendship_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> None:
    await friend_service.cancel_friend_request(db, friendship_id, current_user.id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend(
    user_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> None:
    await friend_service.remove_friend(db, current_user.id, user_id)
