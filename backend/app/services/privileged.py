"""Owner-bypassing writes.

Some transitions must write rows the acting user could never touch through
the caller-scoped services: notifications land in other users' inboxes, and
fulfilling or cancelling claims crosses the owner/claimer blindness boundary.
Those writes go through a ``PrivilegedService`` bound to the current
transaction. Request handlers never construct one; workflow functions do,
for the duration of a single operation.
"""

from collections.abc import Iterable
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import Notification, NotificationStatusEnum
from app.services.notifications import NotificationOutbox

logger = logging.getLogger("giftcircle.privileged")


class PrivilegedService:
    def __init__(self, db: AsyncSession, outbox: NotificationOutbox | None = None) -> None:
        self.db = db
        self.outbox = outbox

    async def notify(
        self,
        recipients: Iterable[int],
        type: str,
        title: str,
        message: str,
        actor_id: int | None,
        *,
        wishlist_id: int | None = None,
        item_id: int | None = None,
        split_claim_id: int | None = None,
        ownership_flag_id: int | None = None,
        friendship_id: int | None = None,
    ) -> list[Notification]:
        """Insert one notification per recipient inside the current transaction."""
        created: list[Notification] = []
        for user_id in sorted(set(recipients)):
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                actor_id=actor_id,
                wishlist_id=wishlist_id,
                item_id=item_id,
                split_claim_id=split_claim_id,
                ownership_flag_id=ownership_flag_id,
                friendship_id=friendship_id,
                is_read=False,
                status=NotificationStatusEnum.INBOX.value,
            )
            self.db.add(notification)
            created.append(notification)
            if self.outbox is not None:
                self.outbox.record(NotificationOutbox.INSERT, notification)

        if created:
            await self.db.flush()
        logger.debug("Queued %d notification(s) type=%s actor_id=%s", len(created), type, actor_id)
        return created

    async def withdraw_notifications(self, *, ownership_flag_id: int, type: str) -> list[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.ownership_flag_id == ownership_flag_id)
            .where(Notification.type == type)
        )
        removed = list(result.scalars())
        for notification in removed:
            await self.db.delete(notification)
            if self.outbox is not None:
                self.outbox.record(NotificationOutbox.DELETE, notification)
        if removed:
            await self.db.flush()
        return removed
