from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol


@dataclass(frozen=True)
class StoredState:
    state: str
    provider: str
    expires_at: datetime


class StateStore(Protocol):
    """Where the hosting application keeps OAuth state between redirect and callback."""

    def save(self, state: str, provider: str, expires_at: datetime) -> None:
        ...

    def pop(self, state: str) -> Optional[StoredState]:
        ...


class InMemoryStateStore:
    """Process-local state store.

    Entries are single use: ``pop`` removes them. Every ``save`` also evicts
    expired entries, so abandoned logins do not accumulate.
    """

    def __init__(self):
        self._states: Dict[str, StoredState] = {}

    def save(self, state: str, provider: str, expires_at: datetime) -> None:
        self.prune()
        self._states[state] = StoredState(state=state, provider=provider, expires_at=expires_at)

    def pop(self, state: str) -> Optional[StoredState]:
        """Fetch and delete state. Returns None if not found or expired."""
        record = self._states.pop(state, None)
        if record is None:
            return None
        if record.expires_at < datetime.now(timezone.utc):
            return None
        return record

    def prune(self, now: Optional[datetime] = None) -> int:
        """Drop expired entries, returning how many were removed."""
        now = now or datetime.now(timezone.utc)
        expired = [key for key, record in self._states.items() if record.expires_at < now]
        for key in expired:
            del self._states[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._states)
