"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
The Google Sheets backend is imported lazily so the package works without
Google credentials.
"""

from budgetbuddy.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)
from budgetbuddy.services.storage.json_file import JsonFileLedgerStorage
from budgetbuddy.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
]
