from fastapi.testclient import TestClient


def test_health_ok(client: TestClient):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json().get("status") == "ok"
    assert res.headers.get("X-Request-Id")
    assert res.headers.get("X-Content-Type-Options") == "nosniff"


def test_request_id_is_echoed(client: TestClient):
    res = client.get("/health", headers={"X-Request-Id": "abc-123"})
    assert res.headers.get("X-Request-Id") == "abc-123"


def test_health_db_ok(client: TestClient):
    res = client.get("/health/db")
    assert res.status_code == 200
    assert res.json().get("status") == "ok"


def test_metrics_counts_requests(client: TestClient):
    client.get("/health")
    res = client.get("/metrics")
    assert res.status_code == 200
    body = res.json()
    assert body["requests_total"] >= 1
    assert body["by_path"]["/health"]["count"] >= 1


def test_metrics_group_by_route_and_count_domain_errors(client: TestClient, circle, headers):
    client.post(f"/items/{circle.item.id}/claims", headers=headers(circle.bob))
    client.post(f"/items/{circle.item.id}/claims", headers=headers(circle.carol))

    body = client.get("/metrics").json()
    assert body["by_path"]["/items/{item_id}/claims"]["count"] >= 2
    assert f"/items/{circle.item.id}/claims" not in body["by_path"]
    assert body["domain_errors"]["conflict"] >= 1
    assert body["notification_sockets"] == 0
