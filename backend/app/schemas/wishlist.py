from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.models import PrivacyLevelEnum


class WishlistCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    privacy: PrivacyLevelEnum = PrivacyLevelEnum.FRIENDS
    selected_friend_ids: list[int] | None = None

    @field_validator("name")
    @classmethod
    def _wishlist_name_strip(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name must not be blank")
        return normalized

    @field_validator("description")
    @classmethod
    def _wishlist_description_strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None


class WishlistPrivacyUpdate(BaseModel):
    privacy: PrivacyLevelEnum


class SelectedFriendsUpdate(BaseModel):
    friend_ids: list[int] = Field(default_factory=list)


class SelectedFriendsPublic(BaseModel):
    wishlist_id: int
    friend_ids: list[int]


class ItemBase(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    url: str | None = Field(default=None, max_length=2048)
    price: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("title")
    @classmethod
    def _title_strip(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("title must not be blank")
        return normalized

    @field_validator("url", "notes")
    @classmethod
    def _normalize_optional(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator("currency")
    @classmethod
    def _currency_upper(cls, value: str | None) -> str | None:
        return value.upper() if value else None


class ItemCreate(ItemBase):
    pass


class ItemUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    url: str | None = Field(default=None, max_length=2048)
    price: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = Field(default=None, max_length=2000)
    is_purchased: bool | None = None


class ItemPublic(BaseModel):
    id: int
    wishlist_id: int
    title: str
    url: str | None
    price: float | None
    currency: str | None
    notes: str | None
    is_purchased: bool
    is_received: bool
    received_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class ClaimStatePublic(BaseModel):
    """Claim state of an item. Never sent to the item's owner."""

    is_claimed: bool
    solo_claim_id: int | None = None
    solo_claimed_by: int | None = None
    split_claim_id: int | None = None
    split_status: str | None = None
    split_target_participants: int | None = None
    split_participant_ids: list[int] = []


class ItemDetailPublic(ItemPublic):
    claim_state: ClaimStatePublic | None = None


class WishlistPublic(BaseModel):
    id: int
    owner_id: int
    name: str
    description: str | None
    privacy: str
    created_at: datetime

    class Config:
        from_attributes = True


class WishlistDetailPublic(WishlistPublic):
    items: list[ItemPublic] = []
