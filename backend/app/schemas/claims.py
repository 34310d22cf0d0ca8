from datetime import datetime

from pydantic import BaseModel, Field

from app.models.models import FlagStatusEnum


class ClaimPublic(BaseModel):
    id: int
    item_id: int
    claimed_by: int
    status: str
    created_at: datetime
    cancelled_at: datetime | None = None
    fulfilled_at: datetime | None = None

    class Config:
        from_attributes = True


class SplitCreate(BaseModel):
    target_participants: int = Field(le=100)


class SplitPublic(BaseModel):
    id: int
    item_id: int
    initiated_by: int
    target_participants: int
    status: str
    created_at: datetime
    confirmed_at: datetime | None = None
    fulfilled_at: datetime | None = None
    participant_ids: list[int] = []


class SplitLeavePublic(BaseModel):
    split_claim_id: int
    split_deleted: bool
    remaining_participant_ids: list[int] = []


class FlagResolve(BaseModel):
    decision: str

    @property
    def normalized(self) -> str:
        return self.decision.strip().lower()


class FlagPublic(BaseModel):
    id: int
    item_id: int
    flagged_by: int
    status: FlagStatusEnum
    created_at: datetime
    resolved_at: datetime | None = None

    class Config:
        from_attributes = True


class ReceivedPublic(BaseModel):
    """Mark-received response for the owner: no claimer identities."""

    item_id: int
    is_received: bool
    received_at: datetime | None
    notified_count: int
