"""In-memory simulator session records."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    """Session lifecycle; transitions only move forward."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    TERMINATED = "terminated"


_ORDER = {SessionState.INACTIVE: 0, SessionState.ACTIVE: 1, SessionState.TERMINATED: 2}


def new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class SimulatorSession:
    """A caller's handle on one simulator device."""

    udid: str
    name: str
    id: str = field(default_factory=new_session_id)
    state: SessionState = SessionState.INACTIVE
    created_at: datetime = field(default_factory=datetime.now)
    project_path: str | None = None
    bundle_id: str | None = None

    def transition(self, state: SessionState) -> None:
        """Move to ``state``; moving backwards is an error."""
        if _ORDER[state] < _ORDER[self.state]:
            raise ValueError(f"Session {self.id} cannot go from {self.state.value} to {state.value}")
        self.state = state

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "udid": self.udid,
            "name": self.name,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "project_path": self.project_path,
            "bundle_id": self.bundle_id,
        }


class SessionStore:
    """Sessions keyed by id. Ids come from uuid4 and are never reused."""

    def __init__(self):
        self._sessions: dict[str, SimulatorSession] = {}

    def put(self, session: SimulatorSession) -> None:
        self._sessions[session.id] = session

    def get(self, session_id: str) -> SimulatorSession | None:
        return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def values(self) -> list[SimulatorSession]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[SimulatorSession]:
        return iter(self.values())
