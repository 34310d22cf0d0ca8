from fastapi import APIRouter, Depends, Query

from app.api.deps import DbSessionDep, get_current_user
from app.models.models import NotificationStatusEnum, User
from app.realtime.manager import manager
from app.schemas.notifications import BulkUpdatePublic, NotificationPublic, UnreadCountPublic
from app.services import notifications as notification_service
from app.services.notifications import NotificationOutbox


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationPublic])
async def list_notifications(
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
    status: str = Query(default=NotificationStatusEnum.INBOX.value),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
) -> list[NotificationPublic]:
    rows = await notification_service.list_notifications(
        db,
        current_user.id,
        status=status,
        limit=limit,
        offset=offset,
    )
    return [NotificationPublic.model_validate(row) for row in rows]


@router.get("/unread-count", response_model=UnreadCountPublic)
async def unread_count(
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> UnreadCountPublic:
    return UnreadCountPublic(count=await notification_service.unread_count(db, current_user.id))


@router.post("/read-all", response_model=BulkUpdatePublic)
async def mark_all_read(
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> BulkUpdatePublic:
    outbox = NotificationOutbox()
    updated = await notification_service.mark_all_read(db, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return BulkUpdatePublic(updated=updated)


@router.post("/archive-read", response_model=BulkUpdatePublic)
async def archive_all_read(
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> BulkUpdatePublic:
    outbox = NotificationOutbox()
    updated = await notification_service.archive_all_read(db, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return BulkUpdatePublic(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationPublic)
async def mark_read(
    notification_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> NotificationPublic:
    outbox = NotificationOutbox()
    row = await notification_service.mark_read(db, notification_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return NotificationPublic.model_validate(row)


@router.post("/{notification_id}/archive", response_model=NotificationPublic)
async def archive(
    notification_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> NotificationPublic:
    outbox = NotificationOutbox()
    row = await notification_service.archive(db, notification_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return NotificationPublic.model_validate(row)


@router.post("/{notification_id}/unarchive", response_model=NotificationPublic)
async def unarchive(
    notification_id: int,
    db: DbSessionDep,
    current_user: User = Depends(get_current_user),
) -> NotificationPublic:
    outbox = NotificationOutbox()
    row = await notification_service.unarchive(db, notification_id, current_user.id, outbox=outbox)
    await manager.publish(outbox.events())
    return NotificationPublic.model_validate(row)
