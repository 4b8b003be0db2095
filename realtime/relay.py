"""
Relay server: owns the live connection set and fans events out to peers.

Flow for every inbound frame:
    decode -> identity check -> registry mutation -> broadcast to every other OPEN connection

Concurrency:
- Each WebSocket is served by its own consumer task on one event loop.
- Every registry mutation and every pass over the live set happens under one
  asyncio.Lock, so all peers observe the same total order of emitted events and
  a connection added before an event is never skipped by its broadcast.
- Per-peer sends run concurrently and are bounded by `send_timeout`, so one slow
  peer cannot stall delivery to the others. A failed peer is detached under the
  lock and closed after the lock is released.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .errors import DecodeError, DeliveryError, ProtocolError
from .events import JoinEvent, LeaveEvent, UpdateEvent, decode_event, encode_event
from .registry import SessionRegistry

logger = logging.getLogger(__name__)

SendFn = Callable[[str], Awaitable[None]]
CloseFn = Callable[[], Awaitable[None]]


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    One socket as seen by the relay.

    `send` and `close` are supplied by the transport (the Channels consumer).
    `participant_id` is bound by the first accepted `join` and never re-derived.
    """

    connection_id: str
    send: SendFn
    close: CloseFn
    participant_id: Optional[str] = None
    state: ConnectionState = ConnectionState.CONNECTING
    departed: bool = False

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN


def validate_upgrade(headers: Mapping[str, str]) -> None:
    """Raise ProtocolError unless the request asks for a WebSocket upgrade."""
    upgrade = None
    for key, value in headers.items():
        if key.lower() == "upgrade":
            upgrade = value
            break
    if not upgrade or upgrade.strip().lower() != "websocket":
        raise ProtocolError()


class RelayServer:
    """
    Presence relay for one session.

    The registry is injected so that the owner (the app config in production,
    the test in tests) decides its lifetime.
    """

    def __init__(self, registry: SessionRegistry, *, send_timeout: float = 5.0):
        self.registry = registry
        self.send_timeout = send_timeout
        self._connections: Dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    @property
    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def stats(self) -> Dict[str, int]:
        return {"connections": len(self._connections), "participants": len(self.registry)}

    async def accept(self, connection: Connection) -> None:
        """
        Mark the connection OPEN, add it to the live set and send it the
        catch-up snapshot (one synthesized `join` per registered participant).
        """
        failed: List[Connection] = []
        async with self._lock:
            if connection.state is ConnectionState.CLOSED:
                return
            connection.state = ConnectionState.OPEN
            self._connections[connection.connection_id] = connection

            snapshot = self.registry.snapshot(exclude_connection_id=connection.connection_id)
            sent = 0
            for participant in snapshot:
                text = encode_event(
                    JoinEvent(id=participant.id, username=participant.username, state=participant.state)
                )
                try:
                    await self._send(connection, text)
                except DeliveryError as e:
                    logger.warning("Catch-up aborted: %s", e)
                    self._detach_locked(connection)
                    failed.append(connection)
                    break
                sent += 1

            logger.info(
                "Connection accepted connection_id=%s catch_up=%d live=%d",
                connection.connection_id,
                sent,
                len(self._connections),
            )
        await self._close_failed(failed)

    async def on_message(self, connection: Connection, raw: Optional[str]) -> None:
        """Decode one inbound frame, apply it to the registry and fan it out."""
        if not connection.is_open:
            return

        try:
            event = decode_event(raw)
        except DecodeError as e:
            logger.warning("Dropping message from connection_id=%s: %s", connection.connection_id, e.message)
            return

        failed: List[Connection] = []
        async with self._lock:
            if not connection.is_open:
                return
            if not self._accepts(connection, event):
                return

            if isinstance(event, JoinEvent):
                connection.participant_id = event.id
                self.registry.upsert_on_join(
                    event.id, event.username, event.state, connection_id=connection.connection_id
                )
            elif isinstance(event, UpdateEvent):
                self.registry.update_state(event.id, event.state)
            elif event.id not in self.registry:
                logger.debug("leave for unregistered participant_id=%s; passing through", event.id)

            failed = await self._broadcast_locked(encode_event(event), exclude=connection)
        await self._close_failed(failed)

    async def on_close(self, connection: Connection, code: Optional[int] = None) -> None:
        """
        Detach the connection, drop its participant from the registry and
        broadcast `leave` to the remaining peers. Runs at most once.
        """
        failed: List[Connection] = []
        async with self._lock:
            self._detach_locked(connection)
            if connection.departed:
                return
            connection.departed = True

            participant_id = connection.participant_id
            logger.info(
                "Connection closed connection_id=%s participant_id=%s code=%s live=%d",
                connection.connection_id,
                participant_id,
                code,
                len(self._connections),
            )
            if participant_id is None:
                return

            self.registry.remove(participant_id)
            failed = await self._broadcast_locked(encode_event(LeaveEvent(id=participant_id)), exclude=connection)
        await self._close_failed(failed)

    async def on_error(self, connection: Connection, error: BaseException) -> None:
        """
        Detach a failed connection from the live set.

        The registry entry and the `leave` broadcast are left to on_close, which
        runs once the transport reports the close.
        """
        async with self._lock:
            self._detach_locked(connection)
        logger.warning("Connection error connection_id=%s: %r", connection.connection_id, error)

    async def broadcast(
        self,
        event: Union[JoinEvent, UpdateEvent, LeaveEvent],
        exclude: Optional[Connection] = None,
    ) -> None:
        failed: List[Connection] = []
        async with self._lock:
            failed = await self._broadcast_locked(encode_event(event), exclude=exclude)
        await self._close_failed(failed)

    def _accepts(self, connection: Connection, event: Union[JoinEvent, UpdateEvent, LeaveEvent]) -> bool:
        bound = connection.participant_id
        if bound is None:
            if isinstance(event, JoinEvent):
                return True
            logger.warning(
                "Dropping %s for participant_id=%s from connection_id=%s: no join yet",
                event.type,
                event.id,
                connection.connection_id,
            )
            return False
        if event.id != bound:
            logger.warning(
                "Dropping %s for participant_id=%s from connection_id=%s bound to %s",
                event.type,
                event.id,
                connection.connection_id,
                bound,
            )
            return False
        return True

    async def _send(self, connection: Connection, text: str) -> None:
        try:
            await asyncio.wait_for(connection.send(text), timeout=self.send_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise DeliveryError(connection.connection_id, e) from e

    async def _broadcast_locked(self, text: str, exclude: Optional[Connection]) -> List[Connection]:
        """Send to every OPEN peer except `exclude`. Returns the peers that failed (already detached)."""
        targets = [c for c in self._connections.values() if c.is_open and c is not exclude]
        if not targets:
            return []

        results = await asyncio.gather(*(self._send(c, text) for c in targets), return_exceptions=True)

        failed: List[Connection] = []
        for connection, result in zip(targets, results):
            if result is None:
                continue
            if not isinstance(result, DeliveryError):
                raise result
            logger.warning("Broadcast: %s", result)
            self._detach_locked(connection)
            failed.append(connection)
        return failed

    def _detach_locked(self, connection: Connection) -> None:
        if self._connections.get(connection.connection_id) is connection:
            del self._connections[connection.connection_id]
        connection.state = ConnectionState.CLOSED

    async def _close_failed(self, failed: Iterable[Connection]) -> None:
        for connection in failed:
            try:
                await asyncio.wait_for(connection.close(), timeout=self.send_timeout)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("Could not close failed connection_id=%s", connection.connection_id, exc_info=True)
