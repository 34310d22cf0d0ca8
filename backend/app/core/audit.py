"""Audit logging for claim, split, flag and friendship transitions."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from app.core.logger import AUDIT_LOGGER


logger = logging.getLogger(AUDIT_LOGGER)


class AuditAction(str, Enum):
    """Audit action types."""
    # Friendships
    FRIEND_REQUEST_SEND = "friend_request_send"
    FRIEND_REQUEST_ACCEPT = "friend_request_accept"
    FRIEND_REQUEST_DECLINE = "friend_request_decline"
    FRIEND_REQUEST_CANCEL = "friend_request_cancel"
    FRIEND_REMOVE = "friend_remove"

    # Wishlists
    WISHLIST_CREATE = "wishlist_create"
    WISHLIST_PRIVACY_UPDATE = "wishlist_privacy_update"
    WISHLIST_SELECTED_FRIENDS_UPDATE = "wishlist_selected_friends_update"
    ITEM_CREATE = "item_create"
    ITEM_UPDATE = "item_update"

    # Claims
    CLAIM_CREATE = "claim_create"
    CLAIM_CANCEL = "claim_cancel"
    CLAIMS_FULFILL = "claims_fulfill"
    CLAIMS_CANCEL_FOR_ITEM = "claims_cancel_for_item"

    # Splits
    SPLIT_INITIATE = "split_initiate"
    SPLIT_JOIN = "split_join"
    SPLIT_CONFIRM = "split_confirm"
    SPLIT_LEAVE = "split_leave"
    SPLIT_CANCEL = "split_cancel"

    # Ownership flags
    FLAG_CREATE = "flag_create"
    FLAG_RESOLVE = "flag_resolve"
    FLAG_DELETE = "flag_delete"

    # Fulfillment
    ITEM_RECEIVED = "item_received"


def audit_log(
    action: AuditAction,
    user_id: int | str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """
    Log an audit event.

    Args:
        action: The action being performed
        user_id: ID of the user performing the action
        details: Additional details about the action
        success: Whether the action was successful
    """
    event: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action.value,
        "success": success,
    }

    if user_id is not None:
        event["user_id"] = str(user_id)

    if details:
        event["details"] = dict(details)

    if success:
        logger.info("AUDIT: %s", event)
    else:
        logger.warning("AUDIT: %s", event)


def audit_item_action(
    action: AuditAction,
    user_id: int,
    item_id: int,
    details: dict[str, Any] | None = None,
) -> None:
    """Log an operation on a wishlist item or one of its claims."""
    event_details: dict[str, Any] = {"item_id": item_id}
    if details:
        event_details.update(details)
    audit_log(action, user_id=user_id, details=event_details)


def audit_split_action(
    action: AuditAction,
    user_id: int,
    split_claim_id: int,
    item_id: int,
    details: dict[str, Any] | None = None,
) -> None:
    event_details: dict[str, Any] = {"split_claim_id": split_claim_id, "item_id": item_id}
    if details:
        event_details.update(details)
    audit_log(action, user_id=user_id, details=event_details)
