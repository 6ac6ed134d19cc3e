"""
Abstract Storage Interface

DESIGN DECISION: The ledger engine does not mandate a storage engine.
It hands out whole snapshots (ordered transactions + ordered budgets) and
the embedding application decides where they go. This allows us to:
1. Keep a JSON file next to the app for single-user use
2. Use Google Sheets so the user can see their data directly
3. Use in-memory storage for testing

The interface is intentionally simple: load on start, save on every mutation.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from budgetbuddy.models.audit import AuditEvent
from budgetbuddy.models.ledger import LedgerSnapshot


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger snapshot storage.

    Any storage implementation (JSON file, Google Sheets, etc.)
    must implement these methods.
    """

    backend_name: str = "unknown"

    @abstractmethod
    async def load_snapshot(self) -> Optional[LedgerSnapshot]:
        """
        Load the last saved snapshot.

        Returns:
            The snapshot, or None if nothing has been saved yet

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def save_snapshot(self, snapshot: LedgerSnapshot) -> bool:
        """
        Replace the stored snapshot.

        Args:
            snapshot: Full ledger state to persist

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one plan import).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
