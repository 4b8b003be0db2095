"""
Wire events exchanged over the relay socket.

    {"type":"join",   "id": "...", "username": "...", "state": {...}}
    {"type":"update", "id": "...", "state": {...}}
    {"type":"leave",  "id": "..."}

`state` is application-defined and passed through untouched.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import DecodeError

EVENT_TYPES = ("join", "update", "leave")


class JoinEvent(BaseModel):
    """Participant announces itself (also used for catch-up snapshots)"""
    type: Literal['join'] = 'join'
    id: str = Field(min_length=1)
    username: str
    state: Any


class UpdateEvent(BaseModel):
    """Participant publishes new state"""
    type: Literal['update'] = 'update'
    id: str = Field(min_length=1)
    state: Any


class LeaveEvent(BaseModel):
    type: Literal['leave'] = 'leave'
    id: str = Field(min_length=1)


Event = Annotated[Union[JoinEvent, UpdateEvent, LeaveEvent], Field(discriminator='type')]

_event_adapter: TypeAdapter[Event] = TypeAdapter(Event)


def decode_event(raw: Optional[str]) -> Event:
    """
    Parse one text frame into an event.

    Raises DecodeError for bad JSON, a non-object payload, an unknown `type`
    or missing/invalid fields.
    """
    if raw is None:
        raise DecodeError("binary or empty frame")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError("event must be a JSON object")

    event_type = payload.get("type")
    if event_type not in EVENT_TYPES:
        raise DecodeError(f"unknown message type: {event_type!r}", event_type=event_type)

    try:
        return _event_adapter.validate_python(payload)
    except ValidationError as e:
        raise DecodeError(f"invalid {event_type} event: {e.error_count()} error(s)", event_type=event_type) from e


def encode_event(event: Union[JoinEvent, UpdateEvent, LeaveEvent]) -> str:
    return event.model_dump_json()
