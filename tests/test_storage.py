"""Tests for the storage backends."""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from budgetbuddy.models import (
    AuditEventBuilder,
    Budget,
    BudgetSet,
    ExpenseCategory,
    LedgerSnapshot,
    Transaction,
    TransactionType,
)
from budgetbuddy.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    StorageError,
)
from budgetbuddy.services.storage.google_sheets import (
    BUDGET_COLUMNS,
    TRANSACTION_COLUMNS,
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStorage,
    row_to_budget_record,
    row_to_transaction_record,
)


def sample_snapshot() -> LedgerSnapshot:
    budgets = BudgetSet().with_limit(ExpenseCategory.FOOD, Decimal("300"))
    return LedgerSnapshot(
        transactions=[
            Transaction(
                id="2",
                amount=Decimal("45.10"),
                kind=TransactionType.EXPENSE,
                category="Food",
                description="Groceries, weekly",
                date=date(2024, 3, 2),
            ),
            Transaction(
                id="1",
                amount=Decimal("5000"),
                kind=TransactionType.INCOME,
                category="Salary",
                description="Monthly Salary",
                date=date(2024, 3, 1),
            ),
        ],
        budgets=list(budgets.budgets),
    )


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, rows=None):
        self.rows = [list(row) for row in rows or []]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def clear(self):
        self.rows = []

    def update(self, values, range_name, value_input_option):
        assert range_name == "A1"
        self.rows = [[str(cell) for cell in row] for row in values]

    def append_row(self, values, value_input_option):
        self.rows.append([str(cell) for cell in values])


class FakeSheetsClient:
    def __init__(self):
        self.transactions = FakeWorksheet([TRANSACTION_COLUMNS])
        self.budgets = FakeWorksheet([BUDGET_COLUMNS])
        self.audit = FakeWorksheet([["event_id"]])

    def get_transactions_sheet(self):
        return self.transactions

    def get_budgets_sheet(self):
        return self.budgets

    def get_audit_sheet(self):
        return self.audit


class TestInMemoryStorage:
    """Tests for the in-memory backends."""

    @pytest.mark.asyncio
    async def test_empty_storage_loads_none(self):
        """Test that nothing saved means None."""
        assert await InMemoryLedgerStorage().load_snapshot() is None

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        """Test that a saved snapshot comes back."""
        storage = InMemoryLedgerStorage()
        snapshot = sample_snapshot()
        await storage.save_snapshot(snapshot)
        loaded = await storage.load_snapshot()
        assert loaded.transactions == snapshot.transactions
        assert len(storage.history) == 1

    @pytest.mark.asyncio
    async def test_audit_events_by_correlation(self):
        """Test correlation lookups."""
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        await storage.append_event(AuditEventBuilder.snapshot_saved(1, correlation_id))
        await storage.append_event(AuditEventBuilder.snapshot_saved(2))
        events = await storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == 1
        assert len(await storage.get_recent_events(limit=1)) == 1


class TestJsonFileStorage:
    """Tests for JsonFileLedgerStorage."""

    @pytest.mark.asyncio
    async def test_missing_file_loads_none(self, tmp_path):
        """Test that a missing file means a new ledger."""
        storage = JsonFileLedgerStorage(tmp_path / "ledger.json")
        assert await storage.load_snapshot() is None

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        """Test that transactions and budgets survive a save."""
        storage = JsonFileLedgerStorage(tmp_path / "data" / "ledger.json")
        snapshot = sample_snapshot()
        assert await storage.save_snapshot(snapshot) is True

        loaded = await storage.load_snapshot()
        assert loaded.transactions == snapshot.transactions
        assert loaded.budgets == snapshot.budgets
        assert not (tmp_path / "data" / "ledger.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_malformed_records_are_skipped(self, tmp_path):
        """Test that one bad record does not lose the file."""
        path = tmp_path / "ledger.json"
        path.write_text(json.dumps({
            "transactions": [
                {"id": "1", "amount": "10", "kind": "EXPENSE", "category": "Food",
                 "description": "Lunch", "date": "2024-03-01T12:00:00.000Z"},
                {"id": "2", "amount": "10", "kind": "EXPENSE", "category": "Salary",
                 "description": "Wrong kind", "date": "2024-03-01"},
            ],
            "budgets": [{"category": "food", "limit": 300, "spent": 0}],
        }), encoding="utf-8")

        loaded = await JsonFileLedgerStorage(path).load_snapshot()
        assert [t.id for t in loaded.transactions] == ["1"]
        assert loaded.transactions[0].date == date(2024, 3, 1)
        assert loaded.budgets[0].category is ExpenseCategory.FOOD
        assert len(loaded.skipped_records) == 1

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, tmp_path):
        """Test that unreadable JSON is a storage error."""
        path = tmp_path / "ledger.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileLedgerStorage(path).load_snapshot()

    @pytest.mark.asyncio
    async def test_non_object_raises(self, tmp_path):
        """Test that a JSON list is a storage error."""
        path = tmp_path / "ledger.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileLedgerStorage(path).load_snapshot()


class TestGoogleSheetsRows:
    """Tests for spreadsheet row conversion."""

    def test_transaction_record(self):
        """Test that a row maps onto transaction fields."""
        record = row_to_transaction_record(["1", "2024-03-01", "EXPENSE", "Food", "Lunch", "10"])
        tx = Transaction.model_validate(record)
        assert tx.amount == Decimal("10")
        assert tx.category is ExpenseCategory.FOOD

    def test_short_budget_row(self):
        """Test that missing cells fall back to defaults."""
        budget = Budget.model_validate(row_to_budget_record(["Housing"]))
        assert budget.limit == Decimal("0")
        assert budget.spent == Decimal("0")


class TestGoogleSheetsStorage:
    """Tests for the Google Sheets backends with fake worksheets."""

    @pytest.mark.asyncio
    async def test_empty_sheets_load_none(self):
        """Test that header-only sheets mean a new ledger."""
        storage = GoogleSheetsLedgerStorage(FakeSheetsClient())
        assert await storage.load_snapshot() is None

    @pytest.mark.asyncio
    async def test_round_trip(self):
        """Test that a saved snapshot reads back."""
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        snapshot = sample_snapshot()

        assert await storage.save_snapshot(snapshot) is True
        assert client.transactions.rows[0] == TRANSACTION_COLUMNS
        assert len(client.budgets.rows) == 1 + len(snapshot.budgets)

        loaded = await storage.load_snapshot()
        assert loaded.transactions == snapshot.transactions
        assert loaded.budgets == snapshot.budgets

    @pytest.mark.asyncio
    async def test_audit_append_and_read(self):
        """Test audit rows in the sheet."""
        storage = GoogleSheetsAuditStorage(FakeSheetsClient())
        correlation_id = uuid4()
        event = AuditEventBuilder.limit_updated("Food", "0", "300", correlation_id)

        assert await storage.append_event(event) is True
        events = await storage.get_events_by_correlation_id(correlation_id)
        assert [e.event_id for e in events] == [event.event_id]
        assert events[0].details == {"old_limit": "0", "new_limit": "300"}
