from fastapi import APIRouter, Depends, status

from app.api.deps import DbSessionDep, get_current_user
from app.models.models import User
from app.realtime.manager import manager
from app.schemas.claims import (
    ClaimPublic,
    FlagPublic,
    FlagResolve,
    SplitCreate,
    SplitLeavePublic,
    SplitPublic,
)
from app.services import claims as claim_service, flags as flag_service, splits as split_service
from app.services.notifications import NotificationOutbox
from app.services.splits import SplitView


router = APIRouter(tags=["claims"])


def _serialize_split(view: SplitView) -> SplitPublic:
    split = view.split
    return SplitPublic(
        id=split.id,
        item_id=split.item_id,
        initiated_by=split.initiated_by,
        target_participants=split.target_participants,
        status=split.status,
        created_at=split.created_at,
        confirmed_at=split.confirmed_at,
        fulfilled_at=split.fulfilled_at,
        participant_ids=view.participant_ids,
    )


# Solo claims

@router.post("/items/{item_id}/claims", response_model=ClaimPublic, status_code=status.HTTP_201_CREATED)
async def create_claim(
    item_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> ClaimPublic:
    claim = await claim_service.create_solo_claim(db, item_id, current_user.id)
    return ClaimPublic.model_validate(claim)


@router.get("/items/{item_id}/claims", response_model=list[ClaimPublic])
async def list_claims(
    item_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> list[ClaimPublic]:
    claims = await claim_service.list_item_claims(db, item_id, current_user.id)
    return [ClaimPublic.model_validate(claim) for claim in claims]


@router.post("/claims/{claim_id}/cancel", response_model=ClaimPublic)
async def cancel_claim(
    claim_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> ClaimPublic:
    claim = await claim_service.cancel_solo_claim(db, claim_id, current_user.id)
    return ClaimPublic.model_validate(claim)


# Splits

@router.post("/items/{item_id}/splits", response_model=SplitPublic, status_code=status.HTTP_201_CREATED)
async def initiate_split(
    item_id: int,
    payload: SplitCreate,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> SplitPublic:
    outbox = NotificationOutbox()
    view = await split_service.initiate_split(
        db,
        item_id,
        current_user.id,
        payload.target_participants,
        outbox=outbox,
    )
    await manager.publish(outbox.events())
    return _serialize_split(view)


@router.get("/splits/{split_id}", response_model=SplitPublic)
async def get_split(
    split_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> SplitPublic:
    view = await split_service.get_split(db, split_id, current_user.id)
    return _serialize_split(view)


@router.post("/splits/{split_id}/join", response_model=SplitPublic)
async def join_split(
    split_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> SplitPublic:
    outbox = NotificationOutbox()
    view = await split_service.join_split(db, split_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return _serialize_split(view)


@router.post("/splits/{split_id}/leave", response_model=SplitLeavePublic)
async def leave_split(
    split_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> SplitLeavePublic:
    outbox = NotificationOutbox()
    result = await split_service.leave_split(db, split_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return SplitLeavePublic(
        split_claim_id=result.split_claim_id,
        split_deleted=result.split_deleted,
        remaining_participant_ids=result.remaining_participant_ids,
    )


# Ownership flags

@router.post("/items/{item_id}/flags", response_model=FlagPublic, status_code=status.HTTP_201_CREATED)
async def create_flag(
    item_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> FlagPublic:
    outbox = NotificationOutbox()
    flag = await flag_service.create_flag(db, item_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return FlagPublic.model_validate(flag)


@router.post("/flags/{flag_id}/resolve", response_model=FlagPublic)
async def resolve_flag(
    flag_id: int,
    payload: FlagResolve,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> FlagPublic:
    outbox = NotificationOutbox()
    flag = await flag_service.resolve_flag(db, flag_id, current_user.id, payload.normalized, outbox=outbox)
    await manager.publish(outbox.events())
    return FlagPublic.model_validate(flag)


@router.delete("/flags/{flag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_flag(
    flag_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> None:
    outbox = NotificationOutbox()
    await flag_service.delete_flag(db, flag_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
