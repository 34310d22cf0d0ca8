"""Notification inbox: user-scoped reads/updates and the realtime outbox.

Rows are only ever created by ``PrivilegedService.notify``; everything in this
module acts on the caller's own notifications.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import InvalidArgumentError, NotFoundError
from app.db.session import atomic
from app.models.models import Notification, NotificationStatusEnum, User

logger = logging.getLogger("giftcircle.notifications")

FALLBACK_ACTOR = "Someone"
FALLBACK_FRIEND = "A friend"
FALLBACK_OWNER = "The owner"
FALLBACK_ITEM = "an item"


def notification_payload(notification: Notification) -> dict[str, Any]:
    created_at = notification.created_at
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "actor_id": notification.actor_id,
        "wishlist_id": notification.wishlist_id,
        "item_id": notification.item_id,
        "split_claim_id": notification.split_claim_id,
        "ownership_flag_id": notification.ownership_flag_id,
        "friendship_id": notification.friendship_id,
        "is_read": notification.is_read,
        "status": notification.status,
        "created_at": created_at.isoformat() if isinstance(created_at, datetime) else None,
    }


@dataclass(frozen=True)
class NotificationEvent:
    event: str
    user_id: int
    notification: dict[str, Any]


class NotificationOutbox:
    """Collects row changes made inside a transaction for delivery after commit."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    def __init__(self) -> None:
        self._pending: list[tuple[str, Notification]] = []

    def record(self, event: str, notification: Notification) -> None:
        self._pending.append((event, notification))

    def __len__(self) -> int:
        return len(self._pending)

    def events(self) -> list[NotificationEvent]:
        # Serialized lazily so INSERT rows carry the ids assigned at flush.
        return [
            NotificationEvent(event=event, user_id=row.user_id, notification=notification_payload(row))
            for event, row in self._pending
        ]


async def display_names(db: AsyncSession, user_ids: set[int]) -> dict[int, str | None]:
    if not user_ids:
        return {}
    result = await db.execute(select(User.id, User.display_name).where(User.id.in_(user_ids)))
    return {row[0]: row[1] for row in result.all()}


async def display_name(db: AsyncSession, user_id: int | None, fallback: str = FALLBACK_ACTOR) -> str:
    if user_id is None:
        return fallback
    names = await display_names(db, {user_id})
    return names.get(user_id) or fallback


def _clamp_limit(limit: int | None) -> int:
    if limit is None:
        return settings.notifications_page_size
    return max(1, min(limit, settings.notifications_page_max))


def _parse_status(status: str) -> str:
    try:
        return NotificationStatusEnum(status).value
    except ValueError:
        raise InvalidArgumentError(f"Unknown notification status '{status}'") from None


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    status: str = NotificationStatusEnum.INBOX.value,
    limit: int | None = None,
    offset: int = 0,
) -> list[Notification]:
    status_value = _parse_status(status)
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .where(Notification.status == status_value)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(_clamp_limit(limit))
        .offset(max(offset, 0))
    )
    return list(result.scalars())


async def unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id))
        .where(Notification.user_id == user_id)
        .where(Notification.status == NotificationStatusEnum.INBOX.value)
        .where(Notification.is_read.is_(False))
    )
    return int(result.scalar_one())


async def _get_own(db: AsyncSession, notification_id: int, user_id: int) -> Notification:
    result = await db.execute(
        select(Notification)
        .where(Notification.id == notification_id)
        .where(Notification.user_id == user_id)
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found")
    return notification


async def mark_read(
    db: AsyncSession,
    notification_id: int,
    user_id: int,
    outbox: NotificationOutbox | None = None,
) -> Notification:
    async with atomic(db):
        notification = await _get_own(db, notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            if outbox is not None:
                outbox.record(NotificationOutbox.UPDATE, notification)
    return notification


async def _set_status(
    db: AsyncSession,
    notification_id: int,
    user_id: int,
    status: str,
    outbox: NotificationOutbox | None,
) -> Notification:
    async with atomic(db):
        notification = await _get_own(db, notification_id, user_id)
        if notification.status != status:
            notification.status = status
            if outbox is not None:
                outbox.record(NotificationOutbox.UPDATE, notification)
    return notification


async def archive(
    db: AsyncSession,
    notification_id: int,
    user_id: int,
    outbox: NotificationOutbox | None = None,
) -> Notification:
    return await _set_status(db, notification_id, user_id, NotificationStatusEnum.ARCHIVED.value, outbox)


async def unarchive(
    db: AsyncSession,
    notification_id: int,
    user_id: int,
    outbox: NotificationOutbox | None = None,
) -> Notification:
    return await _set_status(db, notification_id, user_id, NotificationStatusEnum.INBOX.value, outbox)


async def _bulk_update(
    db: AsyncSession,
    user_id: int,
    conditions: list,
    values: dict[str, Any],
    outbox: NotificationOutbox | None,
) -> int:
    async with atomic(db):
        result = await db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .where(*conditions)
        )
        rows = list(result.scalars())
        for row in rows:
            for key, value in values.items():
                setattr(row, key, value)
            if outbox is not None:
                outbox.record(NotificationOutbox.UPDATE, row)
    logger.info("Bulk notification update user_id=%s values=%s count=%d", user_id, values, len(rows))
    return len(rows)


async def mark_all_read(db: AsyncSession, user_id: int, outbox: NotificationOutbox | None = None) -> int:
    return await _bulk_update(
        db,
        user_id,
        [
            Notification.status == NotificationStatusEnum.INBOX.value,
            Notification.is_read.is_(False),
        ],
        {"is_read": True},
        outbox,
    )


async def archive_all_read(db: AsyncSession, user_id: int, outbox: NotificationOutbox | None = None) -> int:
    return await _bulk_update(
        db,
        user_id,
        [
            Notification.status == NotificationStatusEnum.INBOX.value,
            Notification.is_read.is_(True),
        ],
        {"status": NotificationStatusEnum.ARCHIVED.value},
        outbox,
    )
