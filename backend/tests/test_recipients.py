from app.services import recipients

OWNER, ACTOR, B, C, D = 1, 2, 3, 4, 5


def test_friend_request_recipients():
    assert recipients.friend_request_received(B) == {B}
    assert recipients.friend_request_accepted(ACTOR) == {ACTOR}


def test_split_initiated_skips_owner_and_initiator():
    assert recipients.split_initiated({OWNER, ACTOR, B, C}, ACTOR, OWNER) == {B, C}


def test_split_joined_skips_joiner():
    assert recipients.split_joined([ACTOR, B, C], C, OWNER) == {ACTOR, B}


def test_split_left_uses_snapshot_before_removal():
    assert recipients.split_left([ACTOR, B, C], B, OWNER) == {ACTOR, C}


def test_split_confirmed_includes_every_participant():
    assert recipients.split_confirmed([ACTOR, B], OWNER) == {ACTOR, B}


def test_split_cancelled_skips_initiator():
    assert recipients.split_cancelled([ACTOR, B, C], ACTOR, OWNER) == {B, C}
    assert recipients.split_cancelled([ACTOR], ACTOR, OWNER) == frozenset()


def test_flag_recipients():
    assert recipients.flag_created(OWNER, B) == {OWNER}
    assert recipients.flag_resolved(B, OWNER) == {B}


def test_owner_never_receives_claim_notifications():
    assert recipients.gift_received([OWNER, B, C], OWNER) == {B, C}
    assert recipients.claims_cancelled_by_owner([OWNER, D], OWNER) == {D}
    assert recipients.split_joined([OWNER, B], B, OWNER) == frozenset()


def test_owner_activity_excludes_owner():
    assert recipients.owner_activity({OWNER, B, D}, OWNER) == {B, D}
    assert recipients.owner_activity(set(), OWNER) == frozenset()
