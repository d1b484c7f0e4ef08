"""The /ws endpoint handshake, driven through Starlette's TestClient."""

from fastapi.testclient import TestClient

from skyline.main import app


def _client() -> TestClient:
    # No context manager: lifespan would connect to a real database
    return TestClient(app)


def test_auth_success_registers_channel():
    notifier = app.state.notifier
    token = notifier.issue_token("ws-user-1")
    with _client().websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "token": token})
        assert ws.receive_json() == {"type": "auth_success"}
        assert notifier.is_connected("ws-user-1")
    assert not notifier.is_connected("ws-user-1")


def test_bad_token_gets_auth_error():
    with _client().websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "token": "forged"})
        assert ws.receive_json() == {"type": "auth_error", "message": "Invalid or expired token"}


def test_replayed_token_fails():
    notifier = app.state.notifier
    token = notifier.issue_token("ws-user-2")
    with _client().websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "token": token})
        assert ws.receive_json()["type"] == "auth_success"
    with _client().websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "token": token})
        assert ws.receive_json()["type"] == "auth_error"


def test_other_frames_are_ignored():
    notifier = app.state.notifier
    token = notifier.issue_token("ws-user-3")
    with _client().websocket_connect("/ws") as ws:
        ws.send_text("not json")
        ws.send_json({"type": "subscribe", "channel": "all"})
        ws.send_json({"type": "auth", "token": token})
        # The first reply is for the auth frame; the junk got none
        assert ws.receive_json() == {"type": "auth_success"}


def test_binary_frames_are_ignored():
    notifier = app.state.notifier
    token = notifier.issue_token("ws-user-4")
    with _client().websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        ws.send_json({"type": "auth", "token": token})
        # The binary frame neither closes the socket nor gets a reply
        assert ws.receive_json() == {"type": "auth_success"}
        assert notifier.is_connected("ws-user-4")
