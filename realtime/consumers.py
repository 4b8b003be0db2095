"""
WebSocket consumer for the presence relay.

Key behavior:
- URL: /<RELAY_WEBSOCKET_PATH> (default /websocket)
- One consumer per socket; each is registered with the shared RelayServer.
- Outbound frames go through this consumer's own channel (channel layer), so a
  peer broadcasting to us only enqueues and never waits on our socket.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from channels.generic.websocket import AsyncWebsocketConsumer

from .relay import Connection, RelayServer

logger = logging.getLogger(__name__)


class RelayConsumer(AsyncWebsocketConsumer):
    """
    Binds one WebSocket to one relay Connection.

    The relay is injected through `as_asgi(relay=...)` (see realtime.routing).
    """

    relay: Optional[RelayServer] = None

    def __init__(self, *args: Any, relay: Optional[RelayServer] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        if relay is None:
            raise ValueError("RelayConsumer needs a relay: use RelayConsumer.as_asgi(relay=...)")
        self.relay = relay
        self.connection_id: str = uuid.uuid4().hex  # server-assigned per-connection id
        self.connection: Optional[Connection] = None

    async def connect(self) -> None:
        self.connection = Connection(
            connection_id=self.connection_id,
            send=self._enqueue,
            close=self.close,
        )

        await self.accept()
        await self.relay.accept(self.connection)

    async def disconnect(self, close_code: int) -> None:
        if self.connection:
            await self.relay.on_close(self.connection, close_code)

    async def receive(self, text_data: Optional[str] = None, bytes_data: Optional[bytes] = None) -> None:
        if not self.connection:
            return

        try:
            await self.relay.on_message(self.connection, text_data)
        except Exception as e:
            # Anything escaping the relay is a bug; keep other peers unaffected.
            logger.exception("Relay failed handling message (connection_id=%s)", self.connection_id)
            await self.relay.on_error(self.connection, e)
            await self.close(code=1011)

    async def relay_event(self, event: Dict[str, Any]) -> None:
        """
        Handler for frames the relay queued for this socket.
        """
        # Closed sockets drop whatever is still queued.
        if self.connection is None or not self.connection.is_open:
            return
        await self.send(text_data=event["text"])

    async def _enqueue(self, text: str) -> None:
        await self.channel_layer.send(self.channel_name, {"type": "relay.event", "text": text})
