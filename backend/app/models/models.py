from datetime import datetime, timezone
from enum import Enum as StrEnumBase

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    wishlists: Mapped[list["Wishlist"]] = relationship(back_populates="owner")


class FriendshipStatusEnum(str, StrEnumBase):
    PENDING = "pending"
    ACCEPTED = "accepted"


class Friendship(Base):
    __tablename__ = "friendships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    addressee_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(20), default=FriendshipStatusEnum.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("requester_id", "addressee_id", name="uq_friendships_pair"),
        CheckConstraint("requester_id <> addressee_id", name="ck_friendships_not_self"),
    )


class PrivacyLevelEnum(str, StrEnumBase):
    FRIENDS = "friends"
    SELECTED_FRIENDS = "selected_friends"
    PRIVATE = "private"


class Wishlist(Base):
    __tablename__ = "wishlists"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    # Stored as plain text so legacy values survive; see services.visibility.
    privacy: Mapped[str] = mapped_column(String(20), default=PrivacyLevelEnum.FRIENDS.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    owner: Mapped[User] = relationship(back_populates="wishlists")
    items: Mapped[list["WishlistItem"]] = relationship(back_populates="wishlist", cascade="all, delete-orphan")
    selected_friends: Mapped[list["WishlistSelectedFriend"]] = relationship(
        back_populates="wishlist",
        cascade="all, delete-orphan",
    )


class WishlistSelectedFriend(Base):
    __tablename__ = "wishlist_selected_friends"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    wishlist_id: Mapped[int] = mapped_column(ForeignKey("wishlists.id", ondelete="CASCADE"), index=True)
    friend_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)

    wishlist: Mapped[Wishlist] = relationship(back_populates="selected_friends")

    __table_args__ = (
        UniqueConstraint("wishlist_id", "friend_id", name="uq_wishlist_selected_friends_pair"),
    )


class WishlistItem(Base):
    __tablename__ = "wishlist_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    wishlist_id: Mapped[int] = mapped_column(ForeignKey("wishlists.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    price: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    # is_purchased: owner bought it; is_received: owner got it as a gift.
    is_purchased: Mapped[bool] = mapped_column(Boolean, default=False)
    is_received: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    wishlist: Mapped[Wishlist] = relationship(back_populates="items")


class ClaimStatusEnum(str, StrEnumBase):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    FULFILLED = "fulfilled"


class ItemClaim(Base):
    __tablename__ = "item_claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("wishlist_items.id", ondelete="CASCADE"), nullable=False, index=True)
    claimed_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=ClaimStatusEnum.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # One active claim per item; cancelled/fulfilled rows are history.
        Index(
            "ux_item_claims_item_id_active",
            "item_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )


class SplitStatusEnum(str, StrEnumBase):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FULFILLED = "fulfilled"


ACTIVE_SPLIT_STATUSES = (SplitStatusEnum.PENDING.value, SplitStatusEnum.CONFIRMED.value)


class SplitClaim(Base):
    __tablename__ = "split_claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("wishlist_items.id", ondelete="CASCADE"), nullable=False, index=True)
    initiated_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    target_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    # Seats taken; joins bump it with a guarded UPDATE.
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    status: Mapped[str] = mapped_column(String(20), default=SplitStatusEnum.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    participants: Mapped[list["SplitClaimParticipant"]] = relationship(
        back_populates="split_claim",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SplitClaimParticipant.joined_at",
    )

    __table_args__ = (
        CheckConstraint("target_participants >= 2", name="ck_split_claims_target_min"),
        CheckConstraint("participant_count <= target_participants", name="ck_split_claims_quota"),
        Index(
            "ux_split_claims_item_id_active",
            "item_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'confirmed')"),
            postgresql_where=text("status IN ('pending', 'confirmed')"),
        ),
    )


class SplitClaimParticipant(Base):
    __tablename__ = "split_claim_participants"

    split_claim_id: Mapped[int] = mapped_column(
        ForeignKey("split_claims.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    split_claim: Mapped[SplitClaim] = relationship(back_populates="participants")


class ItemClaimSlot(Base):
    """Held while an item has an active solo claim or split, whichever came first."""

    __tablename__ = "item_claim_slots"

    item_id: Mapped[int] = mapped_column(ForeignKey("wishlist_items.id", ondelete="CASCADE"), primary_key=True)
    claim_type: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class FlagStatusEnum(str, StrEnumBase):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DENIED = "denied"


class OwnershipFlag(Base):
    __tablename__ = "item_ownership_flags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Whole-table uniqueness: one flag lifecycle per item, resolved or not.
    item_id: Mapped[int] = mapped_column(
        ForeignKey("wishlist_items.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    flagged_by: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default=FlagStatusEnum.PENDING.value, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class NotificationTypeEnum(str, StrEnumBase):
    FRIEND_REQUEST_RECEIVED = "friend_request_received"
    FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
    WISHLIST_CREATED = "wishlist_created"
    ITEM_ADDED = "item_added"
    SPLIT_INITIATED = "split_initiated"
    SPLIT_JOINED = "split_joined"
    SPLIT_LEFT = "split_left"
    SPLIT_CONFIRMED = "split_confirmed"
    SPLIT_CANCELLED = "split_cancelled"
    CLAIM_CANCELLED = "claim_cancelled"
    ITEM_FLAGGED_ALREADY_OWNED = "item_flagged_already_owned"
    FLAG_CONFIRMED = "flag_confirmed"
    FLAG_DENIED = "flag_denied"
    GIFT_RECEIVED = "gift_received"


class NotificationStatusEnum(str, StrEnumBase):
    INBOX = "inbox"
    ARCHIVED = "archived"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    wishlist_id: Mapped[int | None] = mapped_column(ForeignKey("wishlists.id", ondelete="SET NULL"), nullable=True)
    item_id: Mapped[int | None] = mapped_column(ForeignKey("wishlist_items.id", ondelete="SET NULL"), nullable=True)
    split_claim_id: Mapped[int | None] = mapped_column(
        ForeignKey("split_claims.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    ownership_flag_id: Mapped[int | None] = mapped_column(
        ForeignKey("item_ownership_flags.id", ondelete="SET NULL"),
        nullable=True,
    )
    friendship_id: Mapped[int | None] = mapped_column(
        ForeignKey("friendships.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default=NotificationStatusEnum.INBOX.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_notifications_user_id_status", "user_id", "status"),
        Index("ix_notifications_user_id_status_is_read", "user_id", "status", "is_read"),
    )
