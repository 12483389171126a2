import pytest
from starlette.websockets import WebSocketDisconnect

from cashora.api.ws import WS_UNAUTHORIZED
from cashora.core.security import create_reset_token


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_system_status_reports_db_and_rate_limit_backend(client, user, other_user, auth):
    r = client.get("/system/status")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["db"] == {"ok": True}
    assert body["rate_limit"]["backend"] == "memory"
    assert body["last_update"] is None

    client.post("/api/user/transfer", json={"recipient_id": str(other_user.id), "amount": 5}, headers=auth(user))
    assert client.get("/system/status").json()["last_update"] is not None


def test_unknown_route_uses_error_format(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    body = r.json()
    assert body["code"] == "NOT_FOUND"
    assert body["status"] == 404
    assert set(body) >= {"error", "code", "status", "request_id", "timestamp"}


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-Id": "trace-abc-123"})
    assert r.headers["X-Request-Id"] == "trace-abc-123"

    generated = client.get("/health").headers["X-Request-Id"]
    assert len(generated) == 36


def test_error_body_carries_request_id(client):
    r = client.get("/api/auth/user", headers={"X-Request-Id": "trace-401"})
    assert r.status_code == 401
    assert r.json()["request_id"] == "trace-401"
    assert r.json()["error"] == "Unauthorized"


def test_websocket_rejects_invalid_token(client, user):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/notifications?token=garbage") as ws:
            ws.receive_json()
    assert exc.value.code == WS_UNAUTHORIZED

    reset = create_reset_token(user.id, user.password_hash)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/notifications?token={reset}") as ws:
            ws.receive_json()
    assert exc.value.code == WS_UNAUTHORIZED


def test_websocket_ack_and_ping(client, user, auth):
    token = auth(user)["Authorization"].split()[1]
    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        hello = ws.receive_json()
        assert hello["type"] == "WS_CONNECTED"
        assert hello["user_id"] == str(user.id)

        ws.send_text("ping")
        assert ws.receive_json()["type"] == "PONG"
