"""
Core Data Models for Budget Buddy

These models define the schemas for everything the ledger engine stores:
1. The closed category schema (expense and income categories)
2. Transactions (immutable once created)
3. Budgets (one per expense category, limit is user-owned, spent is derived)
4. Parsed budget plans coming back from the text-understanding service

DESIGN DECISION: Categories are closed enumerations with an explicit OTHER
member. Anything coming from outside (user input, LLM output, old snapshots)
is matched case-insensitively and stored in canonical form.
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class ExpenseCategory(str, Enum):
    """
    Valid expense categories, in display order.

    The Budget Set has exactly one entry per member.
    """
    HOUSING = "Housing"
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    ENTERTAINMENT = "Entertainment"
    UTILITIES = "Utilities"
    HEALTH = "Health"
    SHOPPING = "Shopping"
    OTHER = "Other"


class IncomeCategory(str, Enum):
    """Valid income categories, in display order."""
    SALARY = "Salary"
    INVESTMENT = "Investment"
    FREELANCE = "Freelance"
    OTHER = "Other"


Category = Union[ExpenseCategory, IncomeCategory]

EXPENSE_CATEGORIES: tuple[ExpenseCategory, ...] = tuple(ExpenseCategory)
INCOME_CATEGORIES: tuple[IncomeCategory, ...] = tuple(IncomeCategory)


def categories_for(kind: TransactionType) -> tuple[Category, ...]:
    """Return the closed category set that is valid for a transaction kind."""
    if TransactionType(kind) == TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


def fallback_category(kind: TransactionType) -> Category:
    """The OTHER member of the set matching `kind`."""
    if TransactionType(kind) == TransactionType.INCOME:
        return IncomeCategory.OTHER
    return ExpenseCategory.OTHER


def match_category(name: Any, kind: TransactionType) -> Optional[Category]:
    """
    Case-insensitive exact match of `name` against the set for `kind`.

    Returns the canonical member, or None if `name` is not in the set.
    """
    if isinstance(name, Enum):
        name = name.value
    if not isinstance(name, str):
        return None
    wanted = name.lower()
    for category in categories_for(kind):
        if category.value.lower() == wanted:
            return category
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Safely convert a value to Decimal.

    Returns None for missing, non-numeric or non-finite values.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def _coerce_date(value: Any) -> Any:
    """Accept ISO datetimes (as stored by older clients) where a date is expected."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        try:
            return dt.datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        except ValueError:
            return value
    return value


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry.

    Transactions are never mutated after creation. Removal is whole-record.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Opaque unique identifier"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount of money moved"
    )
    kind: TransactionType = Field(
        ...,
        description="Income or expense"
    )
    category: Category = Field(
        ...,
        description="Canonical category, valid for kind"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="What the money was for"
    )
    date: dt.date = Field(
        default_factory=dt.date.today,
        description="Calendar date of the transaction"
    )

    @model_validator(mode="before")
    @classmethod
    def canonicalize_category(cls, data: Any) -> Any:
        """Map the category onto the canonical member for the transaction kind."""
        if not isinstance(data, dict) or "category" not in data or "kind" not in data:
            return data
        try:
            kind = TransactionType(data["kind"])
        except ValueError:
            # Let field validation report the bad kind
            return data
        category = match_category(data["category"], kind)
        if category is None:
            raise ValueError(
                f"Category {data['category']!r} is not valid for "
                f"{kind.value.lower()} transactions"
            )
        return {**data, "category": category}

    @field_validator("date", mode="before")
    @classmethod
    def accept_iso_datetimes(cls, v: Any) -> Any:
        return _coerce_date(v)

    @property
    def is_expense(self) -> bool:
        return self.kind == TransactionType.EXPENSE

    def to_export_row(self) -> list:
        """
        Convert to a flat export row.

        Columns: [id, date, type, category, description, amount]
        """
        return [
            self.id,
            self.date.isoformat(),
            self.kind.value,
            self.category.value,
            self.description,
            str(self.amount),
        ]


class TransactionDraft(BaseModel):
    """
    A transaction as submitted by the user, before validation.

    All fields are optional because the form might be incomplete.
    A missing category is resolved by the categorization service.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Decimal] = None
    kind: TransactionType = TransactionType.EXPENSE
    category: Optional[str] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None

    @field_validator("category", mode="before")
    @classmethod
    def blank_category_is_missing(cls, v: Any) -> Any:
        if isinstance(v, Enum):
            return v.value
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("date", mode="before")
    @classmethod
    def accept_iso_datetimes(cls, v: Any) -> Any:
        return _coerce_date(v)


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(BaseModel):
    """
    Spending limit for one expense category.

    `limit` is owned by the user (0 means unset).
    `spent` is owned by the engine and recomputed from the transaction log.
    """
    model_config = ConfigDict(frozen=True)

    category: ExpenseCategory
    limit: Decimal = Field(
        default=Decimal("0"),
        description="User-set monthly limit"
    )
    spent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Current-month spending (derived)"
    )

    @field_validator("category", mode="before")
    @classmethod
    def canonicalize_category(cls, v: Any) -> Any:
        return match_category(v, TransactionType.EXPENSE) or v

    @property
    def has_limit(self) -> bool:
        return self.limit > 0

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.limit - self.spent)

    @property
    def percent_used(self) -> float:
        if self.limit <= 0:
            return 0.0
        return float(self.spent / self.limit * 100)

    @property
    def is_over_limit(self) -> bool:
        return self.has_limit and self.spent > self.limit


def _default_budgets() -> tuple[Budget, ...]:
    return tuple(Budget(category=category) for category in EXPENSE_CATEGORIES)


class BudgetSet(BaseModel):
    """
    The complete set of budgets.

    INVARIANT: exactly one entry per ExpenseCategory, in schema order.
    Entries are never added or removed, only their fields change.
    """
    model_config = ConfigDict(frozen=True)

    budgets: tuple[Budget, ...] = Field(default_factory=_default_budgets)

    @model_validator(mode="after")
    def check_one_entry_per_category(self) -> "BudgetSet":
        categories = [budget.category for budget in self.budgets]
        if categories != list(EXPENSE_CATEGORIES):
            raise ValueError(
                "Budget set must hold exactly one entry per expense category "
                f"in schema order, got {[c.value for c in categories]}"
            )
        return self

    @classmethod
    def from_budgets(cls, budgets: Iterable[Budget]) -> "BudgetSet":
        """
        Build a canonical set from arbitrary entries.

        Missing categories get an unset limit. For duplicates the first entry wins.
        """
        by_category: dict[ExpenseCategory, Budget] = {}
        for budget in budgets:
            by_category.setdefault(budget.category, budget)
        return cls(budgets=tuple(
            by_category.get(category, Budget(category=category))
            for category in EXPENSE_CATEGORIES
        ))

    def get(self, category: ExpenseCategory) -> Budget:
        """Get the entry for a category."""
        category = ExpenseCategory(category)
        for budget in self.budgets:
            if budget.category == category:
                return budget
        raise KeyError(category)

    def with_limit(self, category: ExpenseCategory, limit: Decimal) -> "BudgetSet":
        """Return a copy with one entry's limit replaced."""
        category = ExpenseCategory(category)
        return BudgetSet(budgets=tuple(
            budget.model_copy(update={"limit": limit})
            if budget.category == category else budget
            for budget in self.budgets
        ))

    def with_spent(self, spent: Mapping[ExpenseCategory, Decimal]) -> "BudgetSet":
        """Return a copy with every entry's spent replaced from `spent` (0 if absent)."""
        return BudgetSet(budgets=tuple(
            budget.model_copy(update={"spent": spent.get(budget.category, Decimal("0"))})
            for budget in self.budgets
        ))

    def limits(self) -> dict[ExpenseCategory, Decimal]:
        return {budget.category: budget.limit for budget in self.budgets}


# =============================================================================
# PARSED BUDGET PLAN (output of the plan-parsing service)
# =============================================================================

class PlanBudgetLine(BaseModel):
    """One `{category, limit}` pair from a parsed plan. Category is free text."""

    category: str
    limit: Decimal


class ParsedPlan(BaseModel):
    """
    Structured budget plan extracted from free text.

    CRITICAL: This is UNTRUSTED data. Category strings may use any casing or
    wording, and may not exist in the schema at all. Build it with
    `from_untrusted` so missing or malformed fields are defaulted.
    """
    model_config = ConfigDict(populate_by_name=True)

    month: str = Field(
        default="General",
        description="Month the plan is for, if mentioned"
    )
    budgets: list[PlanBudgetLine] = Field(default_factory=list)
    income_estimate: Decimal = Field(
        default=Decimal("0"),
        alias="incomeEstimate",
    )
    savings_goal: Decimal = Field(
        default=Decimal("0"),
        alias="savingsGoal",
    )
    advice: str = ""

    @classmethod
    def from_untrusted(cls, data: Any) -> Optional["ParsedPlan"]:
        """
        Build a plan from loosely-typed service output.

        Returns None if `data` is not plan-shaped at all. Budget lines without
        a text category or a numeric limit are discarded.
        """
        if not isinstance(data, Mapping):
            return None

        lines = []
        raw_lines = data.get("budgets")
        if isinstance(raw_lines, list):
            for raw in raw_lines:
                if not isinstance(raw, Mapping):
                    continue
                category = raw.get("category")
                limit = to_decimal(raw.get("limit"))
                if not isinstance(category, str) or not category or limit is None:
                    continue
                lines.append(PlanBudgetLine(category=category, limit=limit))

        month = data.get("month")
        advice = data.get("advice")
        return cls(
            month=month if isinstance(month, str) and month else "General",
            budgets=lines,
            income_estimate=to_decimal(data.get("incomeEstimate")) or Decimal("0"),
            savings_goal=to_decimal(data.get("savingsGoal")) or Decimal("0"),
            advice=advice if isinstance(advice, str) else "",
        )


# =============================================================================
# PERSISTENCE SNAPSHOT
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Serializable state of one ledger.

    Transactions are in store order (newest first), budgets in schema order.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    saved_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
    # Filled by from_records, never persisted
    skipped_records: list[str] = Field(default_factory=list, exclude=True)

    @classmethod
    def from_records(
        cls,
        transactions: Iterable[Any],
        budgets: Iterable[Any],
        saved_at: Optional[dt.datetime] = None,
    ) -> "LedgerSnapshot":
        """
        Leniently rebuild a snapshot from raw records.

        Records that fail validation are skipped and described in
        `skipped_records`.
        """
        skipped: list[str] = []
        good_transactions = []
        for record in transactions:
            try:
                good_transactions.append(Transaction.model_validate(record))
            except ValidationError as e:
                skipped.append(f"transaction {_record_id(record)}: {e.error_count()} errors")

        good_budgets = []
        for record in budgets:
            try:
                good_budgets.append(Budget.model_validate(record))
            except ValidationError as e:
                skipped.append(f"budget {_record_id(record)}: {e.error_count()} errors")

        snapshot = cls(
            transactions=good_transactions,
            budgets=good_budgets,
            skipped_records=skipped,
        )
        if saved_at is not None:
            snapshot.saved_at = saved_at
        return snapshot


def _record_id(record: Any) -> str:
    if isinstance(record, Mapping):
        return str(record.get("id") or record.get("category") or "?")
    return "?"


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a submitted transaction."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'future_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a transaction draft.

    Errors block the submission, warnings are shown but do not.
    """

    validated_at: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(dt.timezone.utc)
    )
    is_valid: bool = Field(
        ...,
        description="True if no error-severity issue was found"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]
