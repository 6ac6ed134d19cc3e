"""
JSON File Storage

Stores the whole ledger as one JSON document, the way the browser version
kept it in local storage. The file is replaced atomically on every save.
"""

import json
import os
from pathlib import Path
from typing import Optional

from budgetbuddy.models.ledger import LedgerSnapshot
from budgetbuddy.services.storage.interface import (
    LedgerStorageInterface,
    StorageError,
)


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    Snapshot storage in a local JSON file.

    Format: {"saved_at": ..., "transactions": [...], "budgets": [...]}
    Malformed records are skipped on load rather than failing the whole file.
    """

    backend_name = "json"

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load_snapshot(self) -> Optional[LedgerSnapshot]:
        if not self._path.exists():
            return None
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read ledger file {self._path}: {e}")

        if not isinstance(raw, dict):
            raise StorageError(f"Ledger file {self._path} is not a JSON object")

        transactions = raw.get("transactions")
        budgets = raw.get("budgets")
        return LedgerSnapshot.from_records(
            transactions if isinstance(transactions, list) else [],
            budgets if isinstance(budgets, list) else [],
        )

    async def save_snapshot(self, snapshot: LedgerSnapshot) -> bool:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
            return True
        except OSError as e:
            raise StorageError(f"Failed to write ledger file {self._path}: {e}")
