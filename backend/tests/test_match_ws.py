"""End-to-end tests for the /ws matchmaking protocol.

Each client sends one event and reads the reply before the next client
acts, so the order in which the server sees events is deterministic.
"""
import pytest
from fastapi.testclient import TestClient

from duochat.config import AppConfig, MatchSettings
from duochat.main import create_app


def make_client(**match):
    app = create_app(AppConfig(match=MatchSettings(**match)))
    return TestClient(app)


@pytest.fixture
def client():
    """Client whose bot fallback never fires during a test."""
    with make_client(bot_fallback_seconds=60) as client:
        yield client


@pytest.fixture
def fast_client():
    """Client with a short bot fallback and bot reply delay."""
    with make_client(bot_fallback_seconds=0.1, bot_reply_delay_seconds=0.05) as client:
        yield client


def receive_handle(ws):
    """Helper to receive the backend-assigned handle."""
    connected = ws.receive_json()
    assert connected["type"] == "connected"
    assert connected["id"]
    return connected["id"]


def pair_up(ws1, ws2):
    """Connect two sockets into a pairing and return their handles."""
    id1 = receive_handle(ws1)
    id2 = receive_handle(ws2)
    ws1.send_json({"type": "find"})
    assert ws1.receive_json() == {"type": "status", "msg": "Waiting for a partner..."}
    ws2.send_json({"type": "find"})
    assert ws2.receive_json() == {"type": "paired", "partnerId": id1}
    assert ws1.receive_json() == {"type": "paired", "partnerId": id2}
    return id1, id2


def test_health(api_client):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_stats_empty(api_client):
    assert api_client.get("/match/stats").json() == {
        "connections": 0, "waiting": 0, "pairs": 0, "botPairs": 0
    }


def test_each_connection_gets_unique_handle(client):
    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2:
        assert receive_handle(ws1) != receive_handle(ws2)


def test_two_clients_pair(client):
    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2:
        pair_up(ws1, ws2)

        stats = client.get("/match/stats").json()
        assert stats == {"connections": 2, "waiting": 0, "pairs": 1, "botPairs": 0}


def test_find_while_paired_rejected(client):
    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2:
        pair_up(ws1, ws2)

        ws1.send_json({"type": "find"})
        assert ws1.receive_json() == {"type": "status", "msg": "Already connected"}


def test_chat_message_relay(client):
    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2:
        pair_up(ws1, ws2)

        ws1.send_json({"type": "message", "text": "hi stranger"})

        assert ws2.receive_json() == {"type": "message", "from": "stranger", "text": "hi stranger"}
        assert ws1.receive_json() == {"type": "message", "from": "you", "text": "hi stranger"}


def test_typing_relay(client):
    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2:
        pair_up(ws1, ws2)

        ws2.send_json({"type": "typing", "isTyping": True})
        assert ws1.receive_json() == {"type": "typing", "isTyping": True}


def test_signaling_handshake(client):
    offer = {"type": "offer", "sdp": "v=0\r\no=- 1 2 IN IP4 127.0.0.1\r\n"}
    answer = {"type": "answer", "sdp": "v=0\r\no=- 3 4 IN IP4 127.0.0.1\r\n"}
    candidate = {"candidate": "candidate:1 1 udp 2122260223 192.0.2.1 54400 typ host",
                 "sdpMid": "0", "sdpMLineIndex": 0}

    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2:
        id1, id2 = pair_up(ws1, ws2)

        ws1.send_json({"type": "webrtc-offer", "sdp": offer})
        received = ws2.receive_json()
        assert received == {"type": "webrtc-offer", "from": id1, "sdp": offer}

        ws2.send_json({"type": "webrtc-answer", "to": received["from"], "sdp": answer})
        assert ws1.receive_json() == {"type": "webrtc-answer", "from": id2, "sdp": answer}

        ws2.send_json({"type": "webrtc-ice-candidate", "candidate": candidate})
        assert ws1.receive_json() == {
            "type": "webrtc-ice-candidate", "from": id2, "candidate": candidate
        }


def test_leave_notifies_partner(client):
    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2:
        pair_up(ws1, ws2)

        ws1.send_json({"type": "leave"})

        assert ws2.receive_json() == {"type": "status", "msg": "Partner left the chat."}
        assert ws2.receive_json() == {"type": "partner-left"}
        assert ws1.receive_json() == {"type": "status", "msg": "You left the chat."}

        # The abandoned partner can look for someone new on its own
        ws2.send_json({"type": "find"})
        assert ws2.receive_json() == {"type": "status", "msg": "Waiting for a partner..."}


def test_disconnect_notifies_partner(client):
    with client.websocket_connect("/ws") as ws2:
        with client.websocket_connect("/ws") as ws1:
            pair_up(ws1, ws2)

        assert ws2.receive_json() == {"type": "status", "msg": "Partner disconnected."}
        assert ws2.receive_json() == {"type": "partner-left"}

        stats = client.get("/match/stats").json()
        assert stats["pairs"] == 0
        assert stats["connections"] == 1


def test_new_skips_to_waiting_stranger(client):
    with client.websocket_connect("/ws") as ws1, \
         client.websocket_connect("/ws") as ws2, \
         client.websocket_connect("/ws") as ws3:
        pair_up(ws1, ws2)
        id3 = receive_handle(ws3)
        ws3.send_json({"type": "find"})
        assert ws3.receive_json()["msg"] == "Waiting for a partner..."

        ws1.send_json({"type": "new"})

        assert ws1.receive_json() == {"type": "status", "msg": "You left the chat."}
        paired = ws1.receive_json()
        assert paired == {"type": "paired", "partnerId": id3}
        assert ws2.receive_json()["type"] == "status"
        assert ws2.receive_json() == {"type": "partner-left"}


def test_message_without_partner(client):
    with client.websocket_connect("/ws") as ws:
        receive_handle(ws)
        ws.send_json({"type": "message", "text": "hello?"})
        assert ws.receive_json() == {"type": "status", "msg": "No partner to send to."}


def test_bot_fallback_and_reply(fast_client):
    with fast_client.websocket_connect("/ws") as ws:
        receive_handle(ws)
        ws.send_json({"type": "find"})
        assert ws.receive_json()["msg"] == "Waiting for a partner..."

        assert ws.receive_json() == {"type": "paired", "partnerId": "bot", "bot": True}
        greeting = ws.receive_json()
        assert greeting["type"] == "message"
        assert greeting["from"] == "bot"

        ws.send_json({"type": "message", "text": "are you real?"})
        assert ws.receive_json() == {
            "type": "message", "from": "bot", "text": 'Bot: I heard "are you real?".'
        }

        ws.send_json({"type": "leave"})
        assert ws.receive_json() == {"type": "status", "msg": "Left bot conversation."}


class TestMalformedInput:
    """Bad frames produce an error and leave the connection usable."""

    @pytest.mark.parametrize("frame", [
        {"type": "dance"},
        {"type": "message"},
        {"type": "message", "text": "   "},
        {"type": "typing"},
        {"type": "webrtc-offer"},
        {"type": "webrtc-ice-candidate"},
        {},
    ])
    def test_invalid_frames(self, client, frame):
        with client.websocket_connect("/ws") as ws:
            receive_handle(ws)
            ws.send_json(frame)
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"type": "find"})
            assert ws.receive_json()["msg"] == "Waiting for a partner..."

    def test_non_json_text(self, client):
        with client.websocket_connect("/ws") as ws:
            receive_handle(ws)
            ws.send_text("not json at all")
            response = ws.receive_json()
            assert response["type"] == "error"
            assert "expected JSON" in response["error"]

    def test_binary_frame(self, client):
        with client.websocket_connect("/ws") as ws:
            receive_handle(ws)
            ws.send_bytes(b"\x00\x01")
            response = ws.receive_json()
            assert response == {"type": "error", "error": "Invalid message format: expected text"}

            ws.send_json({"type": "find"})
            assert ws.receive_json()["msg"] == "Waiting for a partner..."

    def test_binary_frame_keeps_pairing(self, client):
        with client.websocket_connect("/ws") as ws1, \
             client.websocket_connect("/ws") as ws2:
            pair_up(ws1, ws2)

            ws1.send_bytes(b"\x00\x01")
            assert ws1.receive_json()["type"] == "error"

            ws1.send_json({"type": "message", "text": "still here"})
            assert ws2.receive_json() == {"type": "message", "from": "stranger", "text": "still here"}
            assert client.get("/match/stats").json()["pairs"] == 1

    def test_non_object_json(self, client):
        with client.websocket_connect("/ws") as ws:
            receive_handle(ws)
            ws.send_json([1, 2, 3])
            assert ws.receive_json()["type"] == "error"

    def test_answer_without_session(self, client):
        with client.websocket_connect("/ws") as ws:
            receive_handle(ws)
            ws.send_json({"type": "webrtc-answer", "to": "nobody", "sdp": {}})
            assert ws.receive_json() == {
                "type": "status", "msg": "No matching session for answer."
            }
