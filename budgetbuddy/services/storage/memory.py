"""
In-Memory Storage

Keeps snapshots and audit events in process memory.
Used for tests and for running the app without any persistence.
"""

from typing import Optional
from uuid import UUID

from budgetbuddy.models.audit import AuditEvent
from budgetbuddy.models.ledger import LedgerSnapshot
from budgetbuddy.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Holds the last saved snapshot. Every save is also kept in `history`."""

    backend_name = "memory"

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        self._snapshot = snapshot
        self.history: list[LedgerSnapshot] = []

    async def load_snapshot(self) -> Optional[LedgerSnapshot]:
        if self._snapshot is None:
            return None
        return self._snapshot.model_copy(deep=True)

    async def save_snapshot(self, snapshot: LedgerSnapshot) -> bool:
        self._snapshot = snapshot.model_copy(deep=True)
        self.history.append(self._snapshot)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
