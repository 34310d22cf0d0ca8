"""Who gets notified for each social event.

Pure functions over snapshots of the friend graph and split membership. The
caller takes the snapshot at the right moment (after an insert for "joined",
before a delete for "left" and "cancelled") and passes it in; nothing here
touches the database.
"""

from collections.abc import Iterable


def _without(user_ids: Iterable[int], *excluded: int | None) -> frozenset[int]:
    skip = {user_id for user_id in excluded if user_id is not None}
    return frozenset(user_id for user_id in user_ids if user_id not in skip)


def friend_request_received(addressee_id: int) -> frozenset[int]:
    return frozenset({addressee_id})


def friend_request_accepted(requester_id: int) -> frozenset[int]:
    return frozenset({requester_id})


def split_initiated(initiator_friend_ids: Iterable[int], initiator_id: int, owner_id: int) -> frozenset[int]:
    """All accepted friends of the initiator except the wishlist owner.

    Wishlist visibility is deliberately not consulted here.
    """
    return _without(initiator_friend_ids, initiator_id, owner_id)


def split_joined(participants_after_join: Iterable[int], joiner_id: int, owner_id: int) -> frozenset[int]:
    return _without(participants_after_join, joiner_id, owner_id)


def split_left(participants_before_leave: Iterable[int], leaver_id: int, owner_id: int) -> frozenset[int]:
    return _without(participants_before_leave, leaver_id, owner_id)


def split_confirmed(participants: Iterable[int], owner_id: int) -> frozenset[int]:
    return _without(participants, owner_id)


def split_cancelled(participants_before_delete: Iterable[int], initiator_id: int, owner_id: int) -> frozenset[int]:
    return _without(participants_before_delete, initiator_id, owner_id)


def flag_created(owner_id: int, flagger_id: int) -> frozenset[int]:
    return _without({owner_id}, flagger_id)


def flag_resolved(flagger_id: int, owner_id: int) -> frozenset[int]:
    return _without({flagger_id}, owner_id)


def gift_received(claimer_ids: Iterable[int], owner_id: int) -> frozenset[int]:
    return _without(claimer_ids, owner_id)


def claims_cancelled_by_owner(claimer_ids: Iterable[int], owner_id: int) -> frozenset[int]:
    return _without(claimer_ids, owner_id)


def owner_activity(viewer_friend_ids: Iterable[int], owner_id: int) -> frozenset[int]:
    """Friends who can see a wishlist being told about its new content."""
    return _without(viewer_friend_ids, owner_id)
