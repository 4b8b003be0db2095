import asyncio
import json

import pytest
import websockets

from presence_client import PresenceClient, main


class Recorder:
    def __init__(self, client: PresenceClient):
        self.calls = []
        client.on_peer_join = lambda pid, username, state: self.calls.append(("join", pid, username, state))
        client.on_peer_update = lambda pid, state: self.calls.append(("update", pid, state))
        client.on_peer_leave = lambda pid: self.calls.append(("leave", pid))


@pytest.fixture
def client():
    c = PresenceClient()
    c.participant_id = "me"
    return c


async def test_peer_events_reach_callbacks(client):
    rec = Recorder(client)

    await client.handle_message('{"type":"join","id":"p2","username":"bob","state":{"x":0}}')
    await client.handle_message('{"type":"update","id":"p2","state":{"x":1}}')
    await client.handle_message('{"type":"leave","id":"p2"}')

    assert rec.calls == [
        ("join", "p2", "bob", {"x": 0}),
        ("update", "p2", {"x": 1}),
        ("leave", "p2"),
    ]


async def test_own_updates_and_leaves_are_ignored_but_own_join_is_accepted(client):
    rec = Recorder(client)

    await client.handle_message('{"type":"update","id":"me","state":{"x":1}}')
    await client.handle_message('{"type":"leave","id":"me"}')
    await client.handle_message('{"type":"join","id":"me","username":"me","state":{}}')

    assert rec.calls == [("join", "me", "me", {})]


async def test_duplicate_leave_is_reported_once(client):
    rec = Recorder(client)
    await client.handle_message('{"type":"join","id":"p2","username":"bob","state":{}}')

    await client.handle_message('{"type":"leave","id":"p2"}')
    await client.handle_message('{"type":"leave","id":"p2"}')

    assert rec.calls.count(("leave", "p2")) == 1
    assert client.peers == set()


async def test_unknown_and_malformed_frames_are_ignored(client):
    rec = Recorder(client)

    await client.handle_message('{"type":"teleport","id":"p2"}')
    await client.handle_message("not json")
    await client.handle_message("[1, 2]")

    assert rec.calls == []


async def test_async_callbacks_are_awaited(client):
    seen = []

    async def on_peer_update(pid, state):
        await asyncio.sleep(0)
        seen.append((pid, state))

    client.on_peer_update = on_peer_update
    await client.handle_message('{"type":"update","id":"p2","state":{"x":2}}')

    assert seen == [("p2", {"x": 2})]


async def test_send_state_when_not_connected_is_a_noop(client):
    await client.send_state({"x": 1})

    assert not client.connected


async def test_session_against_a_socket_server():
    received = []
    server_done = asyncio.Event()

    async def handler(ws):
        await ws.send(json.dumps({"type": "join", "id": "p2", "username": "bob", "state": {"x": 0}}))
        async for raw in ws:
            received.append(json.loads(raw))
        server_done.set()

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]

        client = PresenceClient()
        joined = asyncio.Event()
        lifecycle = []
        client.on_connect = lambda: lifecycle.append("connect")
        client.on_disconnect = lambda: lifecycle.append("disconnect")
        client.on_peer_join = lambda pid, username, state: joined.set()

        await client.connect(f"ws://127.0.0.1:{port}", "p1", "alice", {"x": 0})
        await asyncio.wait_for(joined.wait(), timeout=2)
        assert client.peers == {"p2"}

        await client.send_state({"x": 1})
        await client.disconnect()
        await asyncio.wait_for(server_done.wait(), timeout=2)

    assert received == [
        {"type": "join", "id": "p1", "username": "alice", "state": {"x": 0}},
        {"type": "update", "id": "p1", "state": {"x": 1}},
        {"type": "leave", "id": "p1"},
    ]
    assert lifecycle == ["connect", "disconnect"]
    assert not client.connected


async def test_cli_rejects_invalid_state_json():
    assert await main(["--id", "p1", "--state-json", "{oops"]) == 2
