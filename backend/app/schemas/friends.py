from datetime import datetime

from pydantic import BaseModel


class FriendRequestCreate(BaseModel):
    addressee_id: int


class FriendPublic(BaseModel):
    id: int
    display_name: str | None = None

    class Config:
        from_attributes = True


class FriendshipPublic(BaseModel):
    id: int
    requester_id: int
    addressee_id: int
    status: str
    created_at: datetime
    accepted_at: datetime | None = None

    class Config:
        from_attributes = True


class FriendRequestsPublic(BaseModel):
    incoming: list[FriendshipPublic]
    outgoing: list[FriendshipPublic]
