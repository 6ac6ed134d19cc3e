"""
Integration tests for the orchestrator flows.

The assistant is a scripted fake and storage is in memory.
"""

import asyncio
import threading
from decimal import Decimal

import pytest

from budgetbuddy.audit import AuditLogger
from budgetbuddy.models import (
    AuditEventType,
    ExpenseCategory,
    IncomeCategory,
    LedgerSnapshot,
    TransactionDraft,
    TransactionType,
)
from budgetbuddy.orchestrator import (
    INSIGHTS_UNAVAILABLE_MESSAGE,
    NO_INSIGHTS_MESSAGE,
    NO_PLAN_MESSAGE,
    BudgetPlanFlow,
    InsightFlow,
    LedgerSession,
    TransactionFlow,
)
from budgetbuddy.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from budgetbuddy.validation import TransactionValidationError

from conftest import FakeAssistant


class BrokenStorage(LedgerStorageInterface):
    """Loads nothing, fails every save."""

    backend_name = "broken"

    async def load_snapshot(self):
        return None

    async def save_snapshot(self, snapshot):
        raise StorageError("disk full")


class UnreadableStorage(LedgerStorageInterface):
    backend_name = "unreadable"

    async def load_snapshot(self):
        raise StorageError("corrupt file")

    async def save_snapshot(self, snapshot):
        return True


async def open_session(today, storage=None, seed=False):
    audit_storage = InMemoryAuditStorage()
    session = await LedgerSession.open(
        storage=storage if storage is not None else InMemoryLedgerStorage(),
        audit_logger=AuditLogger(audit_storage),
        seed_sample_data=seed,
        today=lambda: today,
    )
    return session, audit_storage


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestLedgerSession:
    """Tests for opening and saving a session."""

    @pytest.mark.asyncio
    async def test_new_ledger_is_seeded(self, today):
        """Test that an empty storage starts with sample data."""
        session, _ = await open_session(today, seed=True)
        assert [t.description for t in session.ledger.transactions] == [
            "Monthly Salary", "Rent Payment", "Grocery Run",
        ]

    @pytest.mark.asyncio
    async def test_new_ledger_without_seed(self, today):
        """Test that seeding can be turned off."""
        session, _ = await open_session(today, seed=False)
        assert session.ledger.transactions == []

    @pytest.mark.asyncio
    async def test_existing_snapshot_is_loaded(self, today):
        """Test that saved data wins over seeding."""
        storage = InMemoryLedgerStorage(LedgerSnapshot())
        session, audit_storage = await open_session(today, storage=storage, seed=True)
        assert session.ledger.transactions == []
        assert AuditEventType.SNAPSHOT_LOADED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_unreadable_storage_raises(self, today):
        """Test that a load failure is audited and raised."""
        audit_storage = InMemoryAuditStorage()
        with pytest.raises(StorageError):
            await LedgerSession.open(
                storage=UnreadableStorage(),
                audit_logger=AuditLogger(audit_storage),
                today=lambda: today,
            )
        assert event_types(audit_storage) == [AuditEventType.SYSTEM_ERROR]


class TestTransactionFlow:
    """Tests for TransactionFlow."""

    @pytest.mark.asyncio
    async def test_add_with_explicit_category(self, today):
        """Test that an explicit category skips the assistant."""
        session, audit_storage = await open_session(today)
        assistant = FakeAssistant()
        flow = TransactionFlow(session, assistant)

        tx = await flow.add_transaction(TransactionDraft(
            amount=Decimal("1200"), description="Rent", category="housing",
        ))

        assert tx.category is ExpenseCategory.HOUSING
        assert tx.date == today
        assert assistant.calls == []
        assert session.ledger.transactions == [tx]
        assert session.ledger.budgets.get(ExpenseCategory.HOUSING).spent == Decimal("1200")
        assert AuditEventType.TRANSACTION_ADDED in event_types(audit_storage)
        assert AuditEventType.SNAPSHOT_SAVED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_add_saves_snapshot(self, today):
        """Test that every append is persisted."""
        storage = InMemoryLedgerStorage()
        session, _ = await open_session(today, storage=storage)
        flow = TransactionFlow(session, FakeAssistant())

        tx = await flow.add_transaction(TransactionDraft(
            amount=Decimal("5"), description="Coffee", category="Food",
        ))
        saved = await storage.load_snapshot()
        assert [t.id for t in saved.transactions] == [tx.id]

    @pytest.mark.asyncio
    async def test_add_resolves_missing_category(self, today):
        """Test that the assistant fills in a missing category."""
        session, audit_storage = await open_session(today)
        flow = TransactionFlow(session, FakeAssistant(category="Food"))

        tx = await flow.add_transaction(TransactionDraft(
            amount=Decimal("45"), description="Weekly groceries",
        ))
        assert tx.category is ExpenseCategory.FOOD
        assert AuditEventType.CATEGORY_RESOLVED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_hallucinated_category_becomes_other(self, today):
        """Test that an answer outside the schema is stored as Other."""
        session, audit_storage = await open_session(today)
        flow = TransactionFlow(session, FakeAssistant(category="Pets"))

        tx = await flow.add_transaction(TransactionDraft(
            amount=Decimal("30"), description="Dog food",
        ))
        assert tx.category is ExpenseCategory.OTHER
        assert AuditEventType.CATEGORY_FALLBACK in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_assistant_failure_becomes_other(self, today):
        """Test that a failing assistant does not block the submission."""
        session, audit_storage = await open_session(today)
        flow = TransactionFlow(session, FakeAssistant(fail=True))

        tx = await flow.add_transaction(TransactionDraft(
            amount=Decimal("3000"),
            description="Bonus",
            kind=TransactionType.INCOME,
        ))
        assert tx.category is IncomeCategory.OTHER
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_invalid_draft_is_rejected(self, today):
        """Test that nothing is stored for an incomplete draft."""
        session, audit_storage = await open_session(today)
        assistant = FakeAssistant()
        flow = TransactionFlow(session, assistant)

        with pytest.raises(TransactionValidationError) as exc_info:
            await flow.add_transaction(TransactionDraft(description="No amount"))

        assert exc_info.value.issues[0].field == "amount"
        assert session.ledger.transactions == []
        assert assistant.calls == []
        assert event_types(audit_storage) == [AuditEventType.TRANSACTION_REJECTED]

    @pytest.mark.asyncio
    async def test_remove_transaction(self, today):
        """Test removal and its spending refresh."""
        session, _ = await open_session(today)
        flow = TransactionFlow(session)
        tx = await flow.add_transaction(TransactionDraft(
            amount=Decimal("10"), description="Taxi", category="Transportation",
        ))

        assert await flow.remove_transaction(tx.id) is True
        assert session.ledger.transactions == []
        assert session.ledger.budgets.get(ExpenseCategory.TRANSPORTATION).spent == Decimal("0")

    @pytest.mark.asyncio
    async def test_remove_unknown_is_noop(self, today):
        """Test that removing an unknown id changes nothing."""
        storage = InMemoryLedgerStorage()
        session, _ = await open_session(today, storage=storage)
        flow = TransactionFlow(session)

        assert await flow.remove_transaction("missing") is False
        assert storage.history == []

    @pytest.mark.asyncio
    async def test_save_failure_is_not_fatal(self, today):
        """Test that the ledger keeps the change when saving fails."""
        session, audit_storage = await open_session(today, storage=BrokenStorage())
        flow = TransactionFlow(session)

        tx = await flow.add_transaction(TransactionDraft(
            amount=Decimal("10"), description="Taxi", category="Transportation",
        ))
        assert session.ledger.transactions == [tx]
        assert AuditEventType.SAVE_FAILED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_all_kept(self, today):
        """Test that simultaneous submissions are serialized."""
        session, _ = await open_session(today)
        flow = TransactionFlow(session, FakeAssistant(category="Food", delay=0.01))

        await asyncio.gather(*[
            flow.add_transaction(TransactionDraft(amount=Decimal("1"), description=f"Snack {i}"))
            for i in range(10)
        ])
        assert len(session.ledger.transactions) == 10
        assert session.ledger.budgets.get(ExpenseCategory.FOOD).spent == Decimal("10")

    def test_adds_from_threads_are_all_kept(self, today):
        """Test that threads with their own event loops share one session."""
        session, _ = asyncio.run(open_session(today))
        flow = TransactionFlow(session, FakeAssistant(category="Food", delay=0.01))
        errors = []

        def submit(i):
            try:
                session.run_exclusive(flow.add_transaction(
                    TransactionDraft(amount=Decimal("1"), description=f"Snack {i}")
                ))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=submit, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(session.ledger.transactions) == 8
        assert session.ledger.budgets.get(ExpenseCategory.FOOD).spent == Decimal("8")

    def test_run_exclusive_returns_result(self, today):
        """Test that the flow result is handed back."""
        session, _ = asyncio.run(open_session(today))
        flow = TransactionFlow(session)
        tx = session.run_exclusive(flow.add_transaction(TransactionDraft(
            amount=Decimal("10"), description="Taxi", category="Transportation",
        )))
        assert session.ledger.transactions == [tx]


class TestBudgetPlanFlow:
    """Tests for BudgetPlanFlow."""

    PLAN = {
        "month": "March",
        "budgets": [
            {"category": "HOUSING", "limit": 1200},
            {"category": "Pets", "limit": 50},
        ],
        "incomeEstimate": 5000,
        "savingsGoal": 1000,
        "advice": "Nice and balanced.",
    }

    @pytest.mark.asyncio
    async def test_parse_plan(self, today):
        """Test that a plan can be previewed without applying it."""
        session, _ = await open_session(today)
        flow = BudgetPlanFlow(session, FakeAssistant(plan=self.PLAN))

        plan = await flow.parse_plan("Rent is 1200, and 50 for the dog")
        assert plan.month == "March"
        assert len(plan.budgets) == 2
        assert session.ledger.budgets.get(ExpenseCategory.HOUSING).limit == Decimal("0")

    @pytest.mark.asyncio
    async def test_import_plan(self, today):
        """Test parse and apply in one go."""
        session, audit_storage = await open_session(today)
        flow = BudgetPlanFlow(session, FakeAssistant(plan=self.PLAN))

        result = await flow.import_plan("Rent is 1200, and 50 for the dog")
        assert result.applied is True
        assert result.merge.advice == "Nice and balanced."
        assert [d.category for d in result.merge.dropped] == ["Pets"]
        assert session.ledger.budgets.get(ExpenseCategory.HOUSING).limit == Decimal("1200")
        types = event_types(audit_storage)
        assert AuditEventType.PLAN_PARSED in types
        assert AuditEventType.PLAN_LINE_DROPPED in types
        assert AuditEventType.PLAN_APPLIED in types

    @pytest.mark.asyncio
    async def test_no_plan_leaves_budgets(self, today):
        """Test the message when nothing could be extracted."""
        session, _ = await open_session(today)
        flow = BudgetPlanFlow(session, FakeAssistant(plan=None))
        before = session.ledger.budgets

        result = await flow.import_plan("asdf")
        assert result.applied is False
        assert result.message == NO_PLAN_MESSAGE
        assert result.merge is None
        assert session.ledger.budgets == before

    @pytest.mark.asyncio
    async def test_assistant_failure_is_no_plan(self, today):
        """Test that a failing assistant gives no plan."""
        session, audit_storage = await open_session(today)
        flow = BudgetPlanFlow(session, FakeAssistant(fail=True))

        assert await flow.parse_plan("Rent is 1200") is None
        assert AuditEventType.PLAN_EXTRACTION_FAILED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_timeout_is_no_plan(self, today):
        """Test that a slow assistant gives no plan."""
        session, _ = await open_session(today)
        flow = BudgetPlanFlow(session, FakeAssistant(plan=self.PLAN, delay=1.0), timeout=0.01)

        assert await flow.parse_plan("Rent is 1200") is None

    @pytest.mark.asyncio
    async def test_empty_text_skips_assistant(self, today):
        """Test that blank text is never sent."""
        session, _ = await open_session(today)
        assistant = FakeAssistant(plan=self.PLAN)
        flow = BudgetPlanFlow(session, assistant)

        assert await flow.parse_plan("   ") is None
        assert assistant.calls == []

    @pytest.mark.asyncio
    async def test_set_limit(self, today):
        """Test manual limit editing."""
        session, audit_storage = await open_session(today)
        flow = BudgetPlanFlow(session)

        budget = await flow.set_limit("food", "250.50")
        assert budget.category is ExpenseCategory.FOOD
        assert budget.limit == Decimal("250.50")
        assert AuditEventType.LIMIT_UPDATED in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_set_limit_non_numeric_is_zero(self, today):
        """Test that junk input clears the limit."""
        session, _ = await open_session(today)
        flow = BudgetPlanFlow(session)
        await flow.set_limit(ExpenseCategory.FOOD, "300")

        budget = await flow.set_limit(ExpenseCategory.FOOD, "abc")
        assert budget.limit == Decimal("0")

    @pytest.mark.asyncio
    async def test_set_limit_unknown_category(self, today):
        """Test that limits only exist for expense categories."""
        session, _ = await open_session(today)
        flow = BudgetPlanFlow(session)

        with pytest.raises(ValueError):
            await flow.set_limit("Salary", "100")


class TestInsightFlow:
    """Tests for InsightFlow."""

    @pytest.mark.asyncio
    async def test_returns_answer(self, today):
        """Test the normal path."""
        session, _ = await open_session(today, seed=True)
        assistant = FakeAssistant(insights="- Nice work\n")
        flow = InsightFlow(session, assistant, transaction_count=2)

        assert await flow.get_insights() == "- Nice work"
        assert assistant.calls == [("generate_insights", 2)]

    @pytest.mark.asyncio
    async def test_empty_answer(self, today):
        """Test the empty-answer message."""
        session, _ = await open_session(today)
        flow = InsightFlow(session, FakeAssistant(insights=""))

        assert await flow.get_insights() == NO_INSIGHTS_MESSAGE

    @pytest.mark.asyncio
    async def test_failure(self, today):
        """Test the failure message."""
        session, _ = await open_session(today)
        flow = InsightFlow(session, FakeAssistant(fail=True))

        assert await flow.get_insights() == INSIGHTS_UNAVAILABLE_MESSAGE

    @pytest.mark.asyncio
    async def test_no_assistant(self, today):
        """Test that insights degrade without an assistant."""
        session, _ = await open_session(today)
        flow = InsightFlow(session)

        assert await flow.get_insights() == INSIGHTS_UNAVAILABLE_MESSAGE
