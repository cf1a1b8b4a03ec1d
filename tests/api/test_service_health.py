"""
Health routes, correlation ids and the generic error envelope
"""


def test_status(client):
    response = client.get("/v1/status")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_responses_are_not_cacheable(client):
    assert client.get("/v1/status").headers["cache-control"] == "no-store"


def test_correlation_id_is_generated(client):
    assert client.get("/v1/status").headers.get("x-correlation-id")


def test_inbound_correlation_id_is_echoed_in_errors(client):
    response = client.get("/v1/users/me", headers={"X-Correlation-ID": "req-abc-123"})

    assert response.headers["x-correlation-id"] == "req-abc-123"
    assert response.json()["correlationId"] == "req-abc-123"
    assert response.json()["timestamp"]


def test_unknown_route_uses_envelope(client):
    response = client.get("/v1/nope")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["errorCode"] == "REQUEST_INVALID"
    assert body["correlationId"]
