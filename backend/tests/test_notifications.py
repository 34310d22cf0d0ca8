import pytest

from app.core.config import settings
from app.core.errors import InvalidArgumentError, NotFoundError
from app.models.models import NotificationStatusEnum
from app.services import notifications as notification_service
from app.services.notifications import NotificationOutbox, notification_payload
from app.services.privileged import PrivilegedService


async def _seed_inbox(db, user_id: int, count: int, actor_id: int | None = None) -> list[int]:
    ids: list[int] = []
    for _ in range(count):
        rows = await PrivilegedService(db).notify([user_id], "item_added", "New Item Added", "placeholder", actor_id)
        ids.extend(row.id for row in rows)
    await db.commit()
    return ids


@pytest.mark.anyio
async def test_list_and_unread_count(db, circle):
    ids = await _seed_inbox(db, circle.bob.id, 3, actor_id=circle.owner.id)

    inbox = await notification_service.list_notifications(db, circle.bob.id)
    assert sorted(row.id for row in inbox) == sorted(ids)
    assert await notification_service.unread_count(db, circle.bob.id) == 3
    assert await notification_service.unread_count(db, circle.carol.id) == 0


@pytest.mark.anyio
async def test_list_rejects_unknown_status(db, circle):
    with pytest.raises(InvalidArgumentError):
        await notification_service.list_notifications(db, circle.bob.id, status="trash")


@pytest.mark.anyio
async def test_list_limit_is_clamped(db, circle, monkeypatch):
    monkeypatch.setattr(settings, "notifications_page_max", 2)
    await _seed_inbox(db, circle.bob.id, 3)
    page = await notification_service.list_notifications(db, circle.bob.id, limit=50)
    assert len(page) == 2
    rest = await notification_service.list_notifications(db, circle.bob.id, limit=2, offset=2)
    assert len(rest) == 1


@pytest.mark.anyio
async def test_mark_read_records_update(db, circle):
    (notification_id,) = await _seed_inbox(db, circle.bob.id, 1)
    outbox = NotificationOutbox()

    row = await notification_service.mark_read(db, notification_id, circle.bob.id, outbox=outbox)

    assert row.is_read is True
    assert [(event.event, event.user_id) for event in outbox.events()] == [(NotificationOutbox.UPDATE, circle.bob.id)]
    assert await notification_service.unread_count(db, circle.bob.id) == 0


@pytest.mark.anyio
async def test_cannot_touch_someone_elses_notification(db, circle):
    (notification_id,) = await _seed_inbox(db, circle.bob.id, 1)
    with pytest.raises(NotFoundError):
        await notification_service.mark_read(db, notification_id, circle.carol.id)
    with pytest.raises(NotFoundError):
        await notification_service.archive(db, notification_id, circle.carol.id)


@pytest.mark.anyio
async def test_archive_and_unarchive(db, circle):
    (notification_id,) = await _seed_inbox(db, circle.bob.id, 1)

    await notification_service.archive(db, notification_id, circle.bob.id)
    assert await notification_service.list_notifications(db, circle.bob.id) == []
    archived = await notification_service.list_notifications(
        db, circle.bob.id, status=NotificationStatusEnum.ARCHIVED.value
    )
    assert [row.id for row in archived] == [notification_id]
    # Archived rows never count as unread.
    assert await notification_service.unread_count(db, circle.bob.id) == 0

    await notification_service.unarchive(db, notification_id, circle.bob.id)
    assert await notification_service.unread_count(db, circle.bob.id) == 1


@pytest.mark.anyio
async def test_bulk_read_then_archive_read(db, circle):
    ids = await _seed_inbox(db, circle.bob.id, 3)
    await _seed_inbox(db, circle.carol.id, 1)

    assert await notification_service.mark_all_read(db, circle.bob.id) == 3
    assert await notification_service.unread_count(db, circle.bob.id) == 0
    assert await notification_service.unread_count(db, circle.carol.id) == 1

    outbox = NotificationOutbox()
    assert await notification_service.archive_all_read(db, circle.bob.id, outbox=outbox) == 3
    assert len(outbox) == 3
    archived = await notification_service.list_notifications(
        db, circle.bob.id, status=NotificationStatusEnum.ARCHIVED.value
    )
    assert sorted(row.id for row in archived) == sorted(ids)


@pytest.mark.anyio
async def test_payload_shape(db, circle):
    rows = await PrivilegedService(db).notify(
        [circle.bob.id],
        "split_joined",
        "Someone Joined Split",
        "Carol joined",
        circle.carol.id,
        item_id=circle.item.id,
    )
    await db.commit()
    payload = notification_payload(rows[0])
    assert payload["user_id"] == circle.bob.id
    assert payload["type"] == "split_joined"
    assert payload["item_id"] == circle.item.id
    assert payload["split_claim_id"] is None
    assert payload["is_read"] is False
    assert payload["status"] == NotificationStatusEnum.INBOX.value
    assert payload["created_at"]
