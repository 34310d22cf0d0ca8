"""
HTTP-level tests: auth, error envelope, owner blindness and the gift scenario end to end.
"""
from fastapi.testclient import TestClient

from app.core.security import create_access_token


class TestAuth:
    def test_requires_token(self, client: TestClient):
        res = client.get("/notifications")
        assert res.status_code == 401

    def test_invalid_token(self, client: TestClient):
        res = client.get("/notifications", headers={"Authorization": "Bearer invalid.token.here"})
        assert res.status_code == 401

    def test_expired_token(self, client: TestClient, circle):
        expired = create_access_token(str(circle.bob.id), expires_delta_minutes=-1)
        res = client.get("/notifications", headers={"Authorization": f"Bearer {expired}"})
        assert res.status_code == 401

    def test_unknown_user(self, client: TestClient):
        token = create_access_token("424242")
        res = client.get("/notifications", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_cookie_token(self, client: TestClient, circle):
        client.cookies.set("access_token", create_access_token(str(circle.bob.id)))
        try:
            res = client.get("/notifications/unread-count")
        finally:
            client.cookies.clear()
        assert res.status_code == 200
        assert res.json() == {"count": 0}


class TestErrorEnvelope:
    def test_not_found(self, client: TestClient, circle, headers):
        res = client.post("/items/999999/claims", headers=headers(circle.bob))
        assert res.status_code == 404
        assert res.json() == {"detail": "Item not found", "error": "not_found"}

    def test_conflict(self, client: TestClient, circle, headers):
        assert client.post(f"/items/{circle.item.id}/claims", headers=headers(circle.bob)).status_code == 201
        res = client.post(f"/items/{circle.item.id}/claims", headers=headers(circle.carol))
        assert res.status_code == 409
        assert res.json()["error"] == "conflict"

    def test_invalid_argument(self, client: TestClient, circle, headers):
        res = client.post(
            f"/items/{circle.item.id}/splits",
            json={"target_participants": 1},
            headers=headers(circle.bob),
        )
        assert res.status_code == 400
        assert res.json()["error"] == "invalid_argument"

    def test_forbidden(self, client: TestClient, seed, circle, headers):
        stranger = seed.user("Eve")
        res = client.get(f"/wishlists/{circle.wishlist.id}", headers=headers(stranger))
        assert res.status_code == 403
        assert res.json()["error"] == "forbidden"


class TestOwnerBlindness:
    def test_item_payload_for_owner_has_no_claim_state(self, client: TestClient, circle, headers):
        client.post(f"/items/{circle.item.id}/claims", headers=headers(circle.bob))

        owner_view = client.get(f"/items/{circle.item.id}", headers=headers(circle.owner)).json()
        assert owner_view["claim_state"] is None

        friend_view = client.get(f"/items/{circle.item.id}", headers=headers(circle.carol)).json()
        assert friend_view["claim_state"]["is_claimed"] is True
        assert friend_view["claim_state"]["solo_claimed_by"] == circle.bob.id

    def test_owner_cannot_see_split(self, client: TestClient, circle, headers):
        split = client.post(
            f"/items/{circle.item.id}/splits",
            json={"target_participants": 2},
            headers=headers(circle.bob),
        ).json()
        res = client.get(f"/splits/{split['id']}", headers=headers(circle.owner))
        assert res.status_code == 404

    def test_owner_cannot_list_claims(self, client: TestClient, circle, headers):
        res = client.get(f"/items/{circle.item.id}/claims", headers=headers(circle.owner))
        assert res.status_code == 403


def test_gift_scenario_over_http(client: TestClient, circle, headers):
    split = client.post(
        f"/items/{circle.item.id}/splits",
        json={"target_participants": 2},
        headers=headers(circle.bob),
    )
    assert split.status_code == 201, split.text
    split_id = split.json()["id"]

    joined = client.post(f"/splits/{split_id}/join", headers=headers(circle.carol))
    assert joined.status_code == 200, joined.text
    assert joined.json()["status"] == "confirmed"
    assert joined.json()["participant_ids"] == [circle.bob.id, circle.carol.id]

    received = client.post(f"/items/{circle.item.id}/received", headers=headers(circle.owner))
    assert received.status_code == 200, received.text
    body = received.json()
    assert body["is_received"] is True
    assert body["notified_count"] == 2
    assert "participant_ids" not in body

    for user in (circle.bob, circle.carol):
        inbox = client.get("/notifications", headers=headers(user)).json()
        assert "gift_received" in {row["type"] for row in inbox}
    for user in (circle.owner, circle.dave):
        inbox = client.get("/notifications", headers=headers(user)).json()
        assert "gift_received" not in {row["type"] for row in inbox}


def test_flag_flow_over_http(client: TestClient, circle, headers):
    client.post(f"/items/{circle.item.id}/claims", headers=headers(circle.carol))
    flag = client.post(f"/items/{circle.item.id}/flags", headers=headers(circle.bob))
    assert flag.status_code == 201, flag.text

    res = client.post(
        f"/flags/{flag.json()['id']}/resolve",
        json={"decision": "Confirmed"},
        headers=headers(circle.owner),
    )
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "confirmed"

    history = client.get(f"/items/{circle.item.id}/claims", headers=headers(circle.carol)).json()
    assert [claim["status"] for claim in history] == ["cancelled"]


def test_notification_inbox_over_http(client: TestClient, circle, headers):
    client.post(f"/items/{circle.item.id}/flags", headers=headers(circle.bob))
    owner = headers(circle.owner)

    assert client.get("/notifications/unread-count", headers=owner).json() == {"count": 1}
    inbox = client.get("/notifications", headers=owner).json()
    notification_id = inbox[0]["id"]
    assert inbox[0]["type"] == "item_flagged_already_owned"

    assert client.post(f"/notifications/{notification_id}/read", headers=owner).json()["is_read"] is True
    assert client.post("/notifications/archive-read", headers=owner).json() == {"updated": 1}
    assert client.get("/notifications?status=archived", headers=owner).json()[0]["id"] == notification_id
    assert client.post(f"/notifications/{notification_id}/unarchive", headers=owner).json()["status"] == "inbox"
    assert client.get("/notifications?status=bogus", headers=owner).status_code == 400
    assert client.post(f"/notifications/{notification_id}/read", headers=headers(circle.bob)).status_code == 404


def test_friend_requests_over_http(client: TestClient, seed, headers):
    ann = seed.user("Ann")
    ben = seed.user("Ben")

    sent = client.post("/friends/requests", json={"addressee_id": ben.id}, headers=headers(ann))
    assert sent.status_code == 201, sent.text
    request_id = sent.json()["id"]

    incoming = client.get("/friends/requests", headers=headers(ben)).json()["incoming"]
    assert [row["id"] for row in incoming] == [request_id]

    accepted = client.post(f"/friends/requests/{request_id}/accept", headers=headers(ben))
    assert accepted.json()["status"] == "accepted"
    assert [friend["id"] for friend in client.get("/friends", headers=headers(ann)).json()] == [ben.id]

    assert client.delete(f"/friends/{ben.id}", headers=headers(ann)).status_code == 204
    assert client.get("/friends", headers=headers(ann)).json() == []


def test_wishlist_and_items_over_http(client: TestClient, circle, headers):
    owner = headers(circle.owner)
    created = client.post("/wishlists", json={"name": "  Winter  ", "privacy": "friends"}, headers=owner)
    assert created.status_code == 201, created.text
    wishlist_id = created.json()["id"]
    assert created.json()["name"] == "Winter"

    item = client.post(
        f"/wishlists/{wishlist_id}/items",
        json={"title": "Scarf", "price": 25.5, "currency": "eur"},
        headers=owner,
    )
    assert item.status_code == 201, item.text
    assert item.json()["currency"] == "EUR"

    detail = client.get(f"/wishlists/{wishlist_id}", headers=headers(circle.bob)).json()
    assert [row["title"] for row in detail["items"]] == ["Scarf"]

    client.patch(f"/wishlists/{wishlist_id}/privacy", json={"privacy": "private"}, headers=owner)
    assert client.get(f"/wishlists/{wishlist_id}", headers=headers(circle.bob)).status_code == 403


def test_notifications_socket_receives_insert(client: TestClient, circle, headers):
    token = create_access_token(str(circle.owner.id))
    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        assert ws.receive_json() == {"type": "ready", "user_id": circle.owner.id}
        client.post(f"/items/{circle.item.id}/flags", headers=headers(circle.bob))
        message = ws.receive_json()
    assert message["event"] == "INSERT"
    assert message["notification"]["type"] == "item_flagged_already_owned"
    assert message["notification"]["user_id"] == circle.owner.id
