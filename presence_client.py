"""
Client connection wrapper (and small CLI) for the presence relay.

WebSocket protocol (`RelayConsumer`):
- Connect: ws://<host>/websocket
- Client sends, in this order:
  {"type":"join","id":"<participant id>","username":"...","state":{...}}   (once, first)
  {"type":"update","id":"<participant id>","state":{...}}                  (any number)
  {"type":"leave","id":"<participant id>"}                                 (on disconnect)
- Server sends the same three shapes for OTHER participants. Right after
  connecting it replays one `join` per participant already present.

Peers may see our `leave` twice (ours + the one the relay sends on close);
`handle_message` only reports a leave for a peer it currently knows.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging
import sys
from typing import Any, Callable, Dict, List, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

logger = logging.getLogger(__name__)


def _noop(*args: Any) -> None:
    return None


class PresenceClient:
    """
    One participant's connection to the relay.

    Assign callbacks before connecting; each may be a plain function or a
    coroutine function:
      on_peer_join(id, username, state), on_peer_update(id, state),
      on_peer_leave(id), on_connect(), on_disconnect(), on_error(exc)
    """

    def __init__(self) -> None:
        self.participant_id: Optional[str] = None
        self.username: Optional[str] = None
        self.initial_state: Any = None
        self._ws = None
        self._reader: Optional[asyncio.Task] = None
        self._peers: Set[str] = set()

        self.on_peer_join: Callable[..., Any] = _noop
        self.on_peer_update: Callable[..., Any] = _noop
        self.on_peer_leave: Callable[..., Any] = _noop
        self.on_connect: Callable[..., Any] = _noop
        self.on_disconnect: Callable[..., Any] = _noop
        self.on_error: Callable[..., Any] = _noop

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def peers(self) -> Set[str]:
        return set(self._peers)

    async def connect(self, server_url: str, participant_id: str, username: str, initial_state: Any) -> None:
        self.participant_id = participant_id
        self.username = username
        self.initial_state = initial_state

        try:
            self._ws = await websockets.connect(server_url)
        except Exception as e:
            logger.error("Could not connect to %s: %s", server_url, e)
            await self._call(self.on_error, e)
            raise

        logger.info("Connected to %s as participant_id=%s", server_url, participant_id)
        # join must be the first frame on the socket
        await self._send({"type": "join", "id": participant_id, "username": username, "state": initial_state})
        await self._call(self.on_connect)
        self._reader = asyncio.create_task(self._read_loop())

    async def send_state(self, state: Any) -> None:
        if not self.connected:
            logger.warning("Not connected; cannot send state for participant_id=%s", self.participant_id)
            return
        await self._send({"type": "update", "id": self.participant_id, "state": state})

    async def disconnect(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await self._send({"type": "leave", "id": self.participant_id})
        except ConnectionClosed:
            pass
        await ws.close()
        if self._reader:
            await self._reader
            self._reader = None

    async def handle_message(self, raw: Any) -> None:
        """Dispatch one server frame to the callbacks."""
        try:
            message = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Ignoring malformed frame: %r", raw)
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object frame: %r", message)
            return

        msg_type = message.get("type")
        peer_id = message.get("id")

        # Our own join may come back in the catch-up snapshot; anything else about us is an echo.
        if peer_id == self.participant_id and msg_type != "join":
            return

        if msg_type == "join":
            self._peers.add(peer_id)
            await self._call(self.on_peer_join, peer_id, message.get("username"), message.get("state"))
        elif msg_type == "update":
            await self._call(self.on_peer_update, peer_id, message.get("state"))
        elif msg_type == "leave":
            if peer_id not in self._peers:
                logger.debug("Duplicate leave for participant_id=%s", peer_id)
                return
            self._peers.discard(peer_id)
            await self._call(self.on_peer_leave, peer_id)
        else:
            logger.warning("Unknown message type: %s", msg_type)

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for raw in ws:
                try:
                    await self.handle_message(raw)
                except Exception as e:
                    logger.exception("Callback failed for frame %r", raw)
                    await self._call(self.on_error, e)
        except ConnectionClosedError as e:
            logger.warning("Connection lost: %s", e)
            await self._call(self.on_error, e)
        finally:
            self._ws = None
            self._peers.clear()
            logger.info("Disconnected participant_id=%s", self.participant_id)
            await self._call(self.on_disconnect)

    async def _send(self, payload: Dict[str, Any]) -> None:
        await self._ws.send(json.dumps(payload, separators=(",", ":"), ensure_ascii=False))

    @staticmethod
    async def _call(callback: Callable[..., Any], *args: Any) -> None:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result


def _json_arg(s: Optional[str], *, name: str) -> Any:
    if s is None:
        return None
    try:
        return json.loads(s)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON for {name}: {e}") from e


async def _stdin_lines() -> str:
    return await asyncio.to_thread(sys.stdin.readline)


def _print_event(**fields: Any) -> None:
    sys.stdout.write(json.dumps(fields, separators=(",", ":"), ensure_ascii=False) + "\n")
    sys.stdout.flush()


async def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Join a presence relay session from the terminal")
    parser.add_argument("--url", default="ws://localhost:8000/websocket", help="Relay URL, e.g. ws://localhost:8000/websocket")
    parser.add_argument("--id", required=True, help="Participant id announced in join")
    parser.add_argument("--username", help="Display name (defaults to the id)")
    parser.add_argument("--state-json", default="{}", help="Initial state as JSON")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s", stream=sys.stderr)

    try:
        initial_state = _json_arg(args.state_json, name="--state-json")
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    client = PresenceClient()
    client.on_peer_join = lambda pid, username, state: _print_event(event="join", id=pid, username=username, state=state)
    client.on_peer_update = lambda pid, state: _print_event(event="update", id=pid, state=state)
    client.on_peer_leave = lambda pid: _print_event(event="leave", id=pid)

    await client.connect(args.url, args.id, args.username or args.id, initial_state)

    sys.stderr.write("Type a JSON state and press Enter to publish it. Ctrl+D to leave.\n")
    sys.stderr.flush()
    try:
        while client.connected:
            line = await _stdin_lines()
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                state = json.loads(line)
            except json.JSONDecodeError as e:
                sys.stderr.write(f"[invalid JSON: {e}]\n")
                continue
            await client.send_state(state)
    finally:
        await client.disconnect()
    return 0


def run() -> None:
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    run()
