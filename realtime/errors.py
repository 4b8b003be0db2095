"""
Error taxonomy for the relay.

Only ProtocolError ever reaches a caller (as a rejected HTTP request). The
others are recovered where they happen: DecodeError drops one inbound message,
DeliveryError marks one peer as failed.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for relay errors."""


class ProtocolError(RelayError):
    """Request to the relay path is not a WebSocket upgrade."""

    status_code = 426

    def __init__(self, message: str = "Expected Upgrade: websocket"):
        super().__init__(message)
        self.message = message


class DecodeError(RelayError):
    """Inbound frame is not a valid wire event."""

    def __init__(self, message: str, *, event_type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.event_type = event_type


class DeliveryError(RelayError):
    """Send to one peer connection failed or timed out."""

    def __init__(self, connection_id: str, cause: BaseException):
        super().__init__(f"delivery to {connection_id} failed: {cause!r}")
        self.connection_id = connection_id
        self.cause = cause
