"""Ledger aggregation and budget reconciliation engine."""

from budgetbuddy.ledger.aggregator import (
    BudgetProgress,
    LedgerSummary,
    apply_spent,
    budget_progress,
    expense_breakdown,
    in_reference_month,
    recompute_spent,
    summarize,
)
from budgetbuddy.ledger.categories import (
    CategoryResolution,
    coerce_category,
    resolve_category,
)
from budgetbuddy.ledger.reconciler import (
    DroppedPlanLine,
    PlanMergeResult,
    merge_plan,
    resolve_plan_category,
)
from budgetbuddy.ledger.store import Ledger, TransactionStore, sample_transactions

__all__ = [
    "BudgetProgress",
    "CategoryResolution",
    "DroppedPlanLine",
    "Ledger",
    "LedgerSummary",
    "PlanMergeResult",
    "TransactionStore",
    "apply_spent",
    "budget_progress",
    "coerce_category",
    "expense_breakdown",
    "in_reference_month",
    "merge_plan",
    "recompute_spent",
    "resolve_category",
    "resolve_plan_category",
    "sample_transactions",
    "summarize",
]
