"""
Budget Plan Reconciler

Merges a parsed budget plan onto the canonical Budget Set.

The plan comes from a text-understanding service and is UNTRUSTED: category
names can use any casing, be synonyms, or not exist at all. The merge is
therefore strict about WHERE a limit can land and lenient about everything
else:

1. Direct pass: case-insensitive exact comparison against the names of the
   existing budget entries.
2. Fallback pass: case-insensitive resolution against the ExpenseCategory
   schema, then the entry for that canonical category.
3. Anything else is dropped. The Budget Set never gains entries.

Limits are taken as-is (zero and negative values included). Lines are applied
in order, so a later line for the same category wins.
"""

from decimal import Decimal
from typing import NamedTuple

from budgetbuddy.models.ledger import (
    BudgetSet,
    ExpenseCategory,
    ParsedPlan,
    PlanBudgetLine,
    TransactionType,
    match_category,
)


class DroppedPlanLine(NamedTuple):
    category: str
    limit: Decimal


class PlanMergeResult(NamedTuple):
    """
    Outcome of a plan merge.

    `applied` maps each touched category to its final limit. Income estimate
    and savings goal are advisory and passed through untouched.
    """
    budgets: BudgetSet
    advice: str
    income_estimate: Decimal
    savings_goal: Decimal
    applied: dict[ExpenseCategory, Decimal]
    dropped: list[DroppedPlanLine]


def _find_direct(budgets: BudgetSet, name: str):
    wanted = name.lower()
    for budget in budgets.budgets:
        if budget.category.value.lower() == wanted:
            return budget.category
    return None


def resolve_plan_category(budgets: BudgetSet, line: PlanBudgetLine):
    """
    Find the budget entry a plan line belongs to.

    Returns the canonical ExpenseCategory, or None if the line matches nothing.
    """
    category = _find_direct(budgets, line.category)
    if category is not None:
        return category

    mapped = match_category(line.category, TransactionType.EXPENSE)
    if mapped is None:
        return None
    if any(budget.category == mapped for budget in budgets.budgets):
        return mapped
    return None


def merge_plan(budgets: BudgetSet, plan: ParsedPlan) -> PlanMergeResult:
    """
    Apply a parsed plan's limits to a Budget Set.

    Entries the plan does not mention keep their limit and spent values.
    An empty plan returns an identical Budget Set.
    """
    applied: dict[ExpenseCategory, Decimal] = {}
    dropped: list[DroppedPlanLine] = []

    for line in plan.budgets:
        category = resolve_plan_category(budgets, line)
        if category is None:
            dropped.append(DroppedPlanLine(line.category, line.limit))
            continue
        applied[category] = line.limit

    merged = budgets
    for category, limit in applied.items():
        merged = merged.with_limit(category, limit)

    return PlanMergeResult(
        budgets=merged,
        advice=plan.advice,
        income_estimate=plan.income_estimate,
        savings_goal=plan.savings_goal,
        applied=applied,
        dropped=dropped,
    )
