"""
Transaction Store and Ledger

TransactionStore is an append/remove-only log ordered newest first.
Ledger owns one store plus one Budget Set and keeps them consistent: every
mutation recomputes the budgets' spent values before it returns, so no
reader ever sees a Budget Set that lags behind the store.

DESIGN DECISION: Ledger is an explicitly owned object, not module state.
Tests, accounts and the app each get their own instance.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Iterator, Optional

from budgetbuddy.config import MonthMatching
from budgetbuddy.ledger.aggregator import apply_spent, recompute_spent
from budgetbuddy.ledger.reconciler import PlanMergeResult, merge_plan
from budgetbuddy.models.ledger import (
    BudgetSet,
    ExpenseCategory,
    IncomeCategory,
    LedgerSnapshot,
    ParsedPlan,
    Transaction,
    TransactionType,
)


class TransactionStore:
    """
    Ordered transaction log.

    Entries are never edited in place; the only operations are append
    (at the head) and whole-record removal.
    """

    def __init__(self, transactions: Optional[list[Transaction]] = None):
        self._transactions: list[Transaction] = list(transactions or [])

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._transactions))

    def __contains__(self, transaction_id: object) -> bool:
        return any(t.id == transaction_id for t in self._transactions)

    def append(self, transaction: Transaction) -> Transaction:
        """Insert at the head of the log."""
        if transaction.id in self:
            raise ValueError(f"Duplicate transaction id: {transaction.id}")
        self._transactions.insert(0, transaction)
        return transaction

    def remove(self, transaction_id: str) -> bool:
        """
        Remove the entry with `transaction_id`.

        Returns False (and changes nothing) if no such entry exists.
        """
        for index, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                del self._transactions[index]
                return True
        return False

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def snapshot(self) -> list[Transaction]:
        """Current contents, newest first."""
        return list(self._transactions)


def sample_transactions(today: date) -> list[Transaction]:
    """Starter entries for a brand-new ledger, newest first."""
    return [
        Transaction(
            id="1",
            amount=Decimal("5000"),
            kind=TransactionType.INCOME,
            category=IncomeCategory.SALARY,
            description="Monthly Salary",
            date=today,
        ),
        Transaction(
            id="2",
            amount=Decimal("1200"),
            kind=TransactionType.EXPENSE,
            category=ExpenseCategory.HOUSING,
            description="Rent Payment",
            date=today,
        ),
        Transaction(
            id="3",
            amount=Decimal("300"),
            kind=TransactionType.EXPENSE,
            category=ExpenseCategory.FOOD,
            description="Grocery Run",
            date=today,
        ),
    ]


class Ledger:
    """
    The single owner of a transaction log and its Budget Set.

    Args:
        transactions: Initial log, newest first
        budgets: Initial budgets (spent values are recomputed immediately)
        month_matching: Month comparison policy for aggregation
        today: Clock used as the reference date for "current month"
    """

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        budgets: Optional[BudgetSet] = None,
        month_matching: MonthMatching = MonthMatching.MONTH_ONLY,
        today: Callable[[], date] = date.today,
    ):
        self._store = TransactionStore(transactions)
        self._budgets = budgets or BudgetSet()
        self._month_matching = month_matching
        self._today = today
        self.recompute()

    @classmethod
    def from_snapshot(
        cls,
        snapshot: LedgerSnapshot,
        month_matching: MonthMatching = MonthMatching.MONTH_ONLY,
        today: Callable[[], date] = date.today,
    ) -> "Ledger":
        return cls(
            transactions=snapshot.transactions,
            budgets=BudgetSet.from_budgets(snapshot.budgets),
            month_matching=month_matching,
            today=today,
        )

    @property
    def budgets(self) -> BudgetSet:
        return self._budgets

    @property
    def transactions(self) -> list[Transaction]:
        """Newest first."""
        return self._store.snapshot()

    @property
    def month_matching(self) -> MonthMatching:
        return self._month_matching

    def today(self) -> date:
        return self._today()

    def current_spent(self) -> dict[ExpenseCategory, Decimal]:
        """Per-category spending for the current month (absent = 0)."""
        return recompute_spent(
            self._store,
            reference=self._today(),
            matching=self._month_matching,
        )

    def recompute(self) -> BudgetSet:
        """Refresh every budget's spent value from the store."""
        self._budgets = apply_spent(self._budgets, self.current_spent())
        return self._budgets

    def append(self, transaction: Transaction) -> Transaction:
        """Add a transaction and refresh spending."""
        self._store.append(transaction)
        self.recompute()
        return transaction

    def remove(self, transaction_id: str) -> bool:
        """Remove a transaction (no-op if unknown) and refresh spending."""
        removed = self._store.remove(transaction_id)
        if removed:
            self.recompute()
        return removed

    def apply_plan(self, plan: ParsedPlan) -> PlanMergeResult:
        """Merge a parsed plan's limits into the Budget Set."""
        result = merge_plan(self._budgets, plan)
        self._budgets = result.budgets
        return result

    def set_limit(self, category: ExpenseCategory, limit: Decimal) -> Decimal:
        """Set one category's limit. Returns the previous limit."""
        previous = self._budgets.get(category).limit
        self._budgets = self._budgets.with_limit(category, limit)
        return previous

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            transactions=self._store.snapshot(),
            budgets=list(self._budgets.budgets),
        )
