"""
Session registry: last-known state per participant.

WHY:
- Channels groups do not provide a way to list members, and a late joiner needs
  every current participant's username + state to rebuild the scene.
- One relay instance owns the whole session, so in-memory storage is enough.

Design:
- One dict: participant_id -> entry (username, state, owning connection_id).
- Insertion order is kept (dicts are ordered); a re-join keeps the original slot.
- No locking here. The relay serializes every call under its own lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, NamedTuple, Optional

logger = logging.getLogger(__name__)


class Participant(NamedTuple):
    id: str
    username: str
    state: Any


@dataclass
class _Entry:
    username: str
    state: Any
    connection_id: Optional[str] = None


class SessionRegistry:
    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}

    def upsert_on_join(
        self,
        participant_id: str,
        username: str,
        state: Any,
        *,
        connection_id: Optional[str] = None,
    ) -> None:
        """
        Insert or replace the entry for participant_id (last join wins).

        connection_id records which connection announced it, so that the
        catch-up snapshot can skip a connection's own entry. This is only a
        safeguard: the relay sends catch-up before a connection can join, so
        today nothing is ever skipped.
        """
        previous = self._entries.get(participant_id)
        if previous is not None and previous.connection_id != connection_id:
            logger.info(
                "participant_id=%s re-joined from connection_id=%s (was %s)",
                participant_id,
                connection_id,
                previous.connection_id,
            )
        self._entries[participant_id] = _Entry(username=username, state=state, connection_id=connection_id)

    def update_state(self, participant_id: str, state: Any) -> bool:
        """
        Replace the state of a registered participant; username is untouched.
        Returns False (and changes nothing) if the id was never joined.
        """
        entry = self._entries.get(participant_id)
        if entry is None:
            logger.debug("update for unregistered participant_id=%s; passing through", participant_id)
            return False
        entry.state = state
        return True

    def remove(self, participant_id: str) -> bool:
        """Remove a participant. Returns False if it was not registered."""
        return self._entries.pop(participant_id, None) is not None

    def get(self, participant_id: str) -> Optional[Participant]:
        entry = self._entries.get(participant_id)
        if entry is None:
            return None
        return Participant(participant_id, entry.username, entry.state)

    def snapshot(self, *, exclude_connection_id: Optional[str] = None) -> Iterator[Participant]:
        """
        Yield every registered participant in insertion order.

        Each call starts over from the current contents. Entries announced by
        exclude_connection_id are skipped.
        """
        for participant_id, entry in list(self._entries.items()):
            if exclude_connection_id is not None and entry.connection_id == exclude_connection_id:
                continue
            yield Participant(participant_id, entry.username, entry.state)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
