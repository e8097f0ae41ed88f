"""End-to-end tests of the relay WebSocket with multiple clients.

Each client first receives {type: "connected", connectionId} from the server.
"Did not receive" checks use a chat-history marker: the marker reply is unicast,
so if it is the next frame a client sees, nothing else was queued before it.
"""
from fastapi.testclient import TestClient

from coderelay.main import app
from coderelay.rooms import hub

client = TestClient(app)


def receive_connection_id(ws):
    """Helper to receive the backend-assigned connection id."""
    connected = ws.receive_json()
    assert connected["type"] == "connected"
    return connected["connectionId"]


def join(ws, room_id, name):
    ws.send_json({"type": "join", "roomId": room_id, "displayName": name})


def assert_nothing_pending(ws, room_id="marker-room"):
    ws.send_json({"type": "chat-history", "roomId": room_id})
    reply = ws.receive_json()
    assert reply["type"] == "chat-history", f"unexpected frame {reply}"


def test_join_two_clients_and_disconnect():
    room_id = "room-membership"

    with client.websocket_connect("/ws") as ws_b:
        b_id = receive_connection_id(ws_b)

        with client.websocket_connect("/ws") as ws_a:
            a_id = receive_connection_id(ws_a)

            join(ws_a, room_id, "Alice")
            first = ws_a.receive_json()
            assert first["type"] == "joined"
            assert first["members"] == [{"connectionId": a_id, "displayName": "Alice"}]

            join(ws_b, room_id, "Bob")
            joined_a = ws_a.receive_json()
            joined_b = ws_b.receive_json()
            assert joined_a == joined_b
            assert joined_b["connectionId"] == b_id
            assert joined_b["displayName"] == "Bob"
            assert len(joined_b["members"]) == 2
            assert set(hub.directory.members_of(room_id)) == {a_id, b_id}

        # ws_a closed: Bob is told, and only Bob remains.
        gone = ws_b.receive_json()
        assert gone == {"type": "disconnected", "connectionId": a_id, "displayName": "Alice"}
        assert hub.directory.members_of(room_id) == [b_id]
        assert not hub.registry.is_known(a_id)


def test_code_change_not_echoed_to_sender():
    room_id = "room-code"

    with client.websocket_connect("/ws") as ws_a, \
         client.websocket_connect("/ws") as ws_b:
        receive_connection_id(ws_a)
        receive_connection_id(ws_b)
        join(ws_a, room_id, "A")
        ws_a.receive_json()
        join(ws_b, room_id, "B")
        ws_a.receive_json()
        ws_b.receive_json()

        ws_a.send_json({"type": "code-change", "roomId": room_id, "code": "x=1"})

        assert ws_b.receive_json() == {"type": "code-change", "code": "x=1"}
        assert_nothing_pending(ws_a)


def test_sync_code_reaches_only_target():
    room_id = "room-sync"

    with client.websocket_connect("/ws") as ws_a, \
         client.websocket_connect("/ws") as ws_b, \
         client.websocket_connect("/ws") as ws_c:
        receive_connection_id(ws_a)
        receive_connection_id(ws_b)
        c_id = receive_connection_id(ws_c)

        join(ws_a, room_id, "A")
        ws_a.receive_json()
        join(ws_b, room_id, "B")
        ws_a.receive_json()
        ws_b.receive_json()
        join(ws_c, room_id, "C")
        for ws in (ws_a, ws_b, ws_c):
            assert ws.receive_json()["type"] == "joined"

        ws_a.send_json({"type": "sync-code", "targetConnectionId": c_id, "code": "y=2"})

        assert ws_c.receive_json() == {"type": "code-change", "code": "y=2"}
        assert_nothing_pending(ws_b)
        assert_nothing_pending(ws_a)


def test_cursor_update_and_typing():
    room_id = "room-cursor"

    with client.websocket_connect("/ws") as ws_a, \
         client.websocket_connect("/ws") as ws_b:
        a_id = receive_connection_id(ws_a)
        receive_connection_id(ws_b)
        join(ws_a, room_id, "Alice")
        ws_a.receive_json()
        join(ws_b, room_id, "Bob")
        ws_a.receive_json()
        ws_b.receive_json()

        ws_a.send_json({
            "type": "cursor-position",
            "roomId": room_id,
            "position": {"line": 4, "ch": 2},
        })
        assert ws_b.receive_json() == {
            "type": "cursor-update",
            "connectionId": a_id,
            "displayName": "Alice",
            "position": {"line": 4, "ch": 2},
        }

        ws_a.send_json({
            "type": "user-typing", "roomId": room_id, "displayName": "Alice", "isTyping": True
        })
        typing = ws_b.receive_json()
        assert typing["type"] == "user-typing"
        assert typing["isTyping"] is True
        assert_nothing_pending(ws_a)


def test_invalid_frames_keep_connection_open():
    with client.websocket_connect("/ws") as ws:
        receive_connection_id(ws)

        ws.send_json({"type": "unknown-thing"})
        assert ws.receive_json() == {"type": "error", "message": "Unknown event type: unknown-thing"}

        ws.send_text("not json at all")
        assert ws.receive_json()["type"] == "error"

        ws.send_bytes(b"\x00\x01")
        assert ws.receive_json() == {"type": "error", "message": "Invalid message format: not JSON"}

        # json.loads accepts the non-standard Infinity literal.
        ws.send_text('{"type": "chat-message", "roomId": "r", "userId": Infinity, "body": "hi"}')
        assert ws.receive_json() == {"type": "error", "message": "Invalid chat-message payload"}

        # Still usable afterwards.
        join(ws, "room-after-errors", "Z")
        assert ws.receive_json()["type"] == "joined"


def test_members_endpoint():
    room_id = "room-http"

    with client.websocket_connect("/ws") as ws:
        conn_id = receive_connection_id(ws)
        join(ws, room_id, "Dana")
        ws.receive_json()

        response = client.get(f"/rooms/{room_id}/members")
        assert response.status_code == 200
        assert response.json() == {
            "roomId": room_id,
            "members": [{"connectionId": conn_id, "displayName": "Dana"}],
        }

    assert client.get(f"/rooms/{room_id}/members").json()["members"] == []


def test_health():
    assert client.get("/health").json() == {"status": "ok"}
