from datetime import datetime

from pydantic import BaseModel


class NotificationPublic(BaseModel):
    id: int
    type: str
    title: str
    message: str
    actor_id: int | None = None
    wishlist_id: int | None = None
    item_id: int | None = None
    split_claim_id: int | None = None
    ownership_flag_id: int | None = None
    friendship_id: int | None = None
    is_read: bool
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCountPublic(BaseModel):
    count: int


class BulkUpdatePublic(BaseModel):
    updated: int
