import asyncio
import json
from typing import Any, Dict, List

from realtime.relay import Connection


class FakePeer:
    """In-process stand-in for a socket: records what the relay sends it."""

    def __init__(self, connection_id: str, *, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.sent: List[str] = []
        self.closed = False
        self.connection = Connection(connection_id=connection_id, send=self._send, close=self._close)

    async def _send(self, text: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("peer went away")
        self.sent.append(text)

    async def _close(self) -> None:
        self.closed = True

    @property
    def events(self) -> List[Dict[str, Any]]:
        return [json.loads(t) for t in self.sent]

    def clear(self) -> None:
        self.sent.clear()


def join_msg(participant_id: str, username: str, state: Any) -> str:
    return json.dumps({"type": "join", "id": participant_id, "username": username, "state": state})


def update_msg(participant_id: str, state: Any) -> str:
    return json.dumps({"type": "update", "id": participant_id, "state": state})


def leave_msg(participant_id: str) -> str:
    return json.dumps({"type": "leave", "id": participant_id})
