"""
Spending Aggregator

DESIGN DECISION: Aggregation is a PURE function of the transaction log and a
reference date. Budget `spent` values are always recomputed from scratch and
overwritten, never incremented in place, so repeated recomputation cannot
drift or double count.

The month policy is configurable (see MonthMatching). The default,
MONTH_ONLY, ignores the year: an expense from last March counts towards
this March.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, NamedTuple, Optional

import structlog

from budgetbuddy.config import MonthMatching
from budgetbuddy.models.ledger import (
    BudgetSet,
    ExpenseCategory,
    Transaction,
    TransactionType,
    match_category,
)


logger = structlog.get_logger(__name__)


class LedgerSummary(NamedTuple):
    """All-time totals for the dashboard."""
    total_income: Decimal
    total_expense: Decimal
    balance: Decimal


class BudgetProgress(NamedTuple):
    """One bar of the budget-vs-actual chart."""
    category: ExpenseCategory
    limit: Decimal
    spent: Decimal


def in_reference_month(
    day: date,
    reference: date,
    matching: MonthMatching = MonthMatching.MONTH_ONLY,
) -> bool:
    """Check whether `day` falls in the month of `reference` under `matching`."""
    if day.month != reference.month:
        return False
    if matching == MonthMatching.MONTH_AND_YEAR:
        return day.year == reference.year
    return True


def recompute_spent(
    transactions: Iterable[Transaction],
    reference: Optional[date] = None,
    matching: MonthMatching = MonthMatching.MONTH_ONLY,
) -> dict[ExpenseCategory, Decimal]:
    """
    Sum expense amounts per category for the reference month.

    Args:
        transactions: The full transaction log, in any order
        reference: Any day in the month to aggregate (defaults to today)
        matching: Month comparison policy

    Returns:
        {category: total}. Categories without matching expenses are absent,
        so callers must default to 0.
    """
    reference = reference or date.today()
    totals: dict[ExpenseCategory, Decimal] = defaultdict(Decimal)

    for transaction in transactions:
        if transaction.kind != TransactionType.EXPENSE:
            continue
        if not in_reference_month(transaction.date, reference, matching):
            continue
        category = match_category(transaction.category, TransactionType.EXPENSE)
        if category is None:
            # Malformed data (e.g. an income category on an expense)
            logger.debug(
                "aggregation_skipped_transaction",
                transaction_id=transaction.id,
                category=str(transaction.category),
            )
            continue
        totals[category] += transaction.amount

    return dict(totals)


def apply_spent(
    budgets: BudgetSet,
    spent: dict[ExpenseCategory, Decimal],
) -> BudgetSet:
    """Overwrite every budget's spent value with `spent` (0 where absent)."""
    return budgets.with_spent(spent)


def summarize(transactions: Iterable[Transaction]) -> LedgerSummary:
    """All-time income, expense and balance."""
    income = Decimal("0")
    expense = Decimal("0")
    for transaction in transactions:
        if transaction.kind == TransactionType.INCOME:
            income += transaction.amount
        else:
            expense += transaction.amount
    return LedgerSummary(
        total_income=income,
        total_expense=expense,
        balance=income - expense,
    )


def expense_breakdown(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """
    All-time expense totals per category, in first-seen order.

    Unlike recompute_spent this is not limited to one month; it feeds the
    spending pie chart.
    """
    totals: dict[str, Decimal] = {}
    for transaction in transactions:
        if transaction.kind != TransactionType.EXPENSE:
            continue
        key = getattr(transaction.category, "value", str(transaction.category))
        totals[key] = totals.get(key, Decimal("0")) + transaction.amount
    return totals


def budget_progress(budgets: BudgetSet) -> list[BudgetProgress]:
    """Budgets that have a limit set, in schema order."""
    return [
        BudgetProgress(budget.category, budget.limit, budget.spent)
        for budget in budgets.budgets
        if budget.limit > 0
    ]
