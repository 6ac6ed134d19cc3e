"""
Data Models Package

This package contains all Pydantic models used by Budget Buddy.
All data flowing through the ledger must conform to these schemas.
"""

from budgetbuddy.models.ledger import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    Budget,
    BudgetSet,
    Category,
    ExpenseCategory,
    IncomeCategory,
    LedgerSnapshot,
    ParsedPlan,
    PlanBudgetLine,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    categories_for,
    fallback_category,
    match_category,
    to_decimal,
)
from budgetbuddy.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "Budget",
    "BudgetSet",
    "Category",
    "ExpenseCategory",
    "IncomeCategory",
    "LedgerSnapshot",
    "ParsedPlan",
    "PlanBudgetLine",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "categories_for",
    "fallback_category",
    "match_category",
    "to_decimal",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
