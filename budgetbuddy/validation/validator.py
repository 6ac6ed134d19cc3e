"""
Transaction Validation

Submissions are checked before anything reaches the Transaction Store.

STAGE 1 - REQUIRED FIELDS:
- Amount present and non-zero
- Amount not negative
- Description present
- Explicit category belongs to the set for the transaction kind

STAGE 2 - SANITY CHECKS (warnings only):
- Future date
- Very old date

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and a submission with any error is rejected whole.
"""

from datetime import date, timedelta
from typing import Callable

from budgetbuddy.models.ledger import (
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
    categories_for,
    match_category,
)


class TransactionValidator:
    """Validates transaction drafts before they are stored."""

    def __init__(
        self,
        today: Callable[[], date] = date.today,
        max_age_days: int = 365 * 2,
    ):
        self._today = today
        self._max_age_days = max_age_days

    def _validate_required(self, draft: TransactionDraft) -> list[ValidationIssue]:
        issues = []

        # A zero amount is treated as missing
        if draft.amount is None or draft.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter how much money was moved",
            ))
        elif draft.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
                suggested_fix="Enter the amount without a sign and pick income or expense",
            ))

        if not draft.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
                suggested_fix="Describe what the money was for",
            ))
        elif len(draft.description) > 500:
            issues.append(ValidationIssue(
                field="description",
                issue_type="invalid_value",
                message="Description is longer than 500 characters",
                severity="error",
            ))

        if draft.category is not None and match_category(draft.category, draft.kind) is None:
            valid = ", ".join(c.value for c in categories_for(draft.kind))
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=(
                    f"'{draft.category}' is not a valid "
                    f"{draft.kind.value.lower()} category"
                ),
                severity="error",
                suggested_fix=f"Pick one of: {valid}",
            ))

        return issues

    def _validate_dates(self, draft: TransactionDraft) -> list[ValidationIssue]:
        issues = []
        if draft.date is None:
            return issues

        today = self._today()
        if draft.date > today:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({draft.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))
        elif draft.date < today - timedelta(days=self._max_age_days):
            issues.append(ValidationIssue(
                field="date",
                issue_type="suspicious_date",
                message=f"Date ({draft.date}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))
        return issues

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        """
        Run both stages.

        Date checks only run once the required fields are in place.
        """
        issues = self._validate_required(draft)
        if not any(issue.severity == "error" for issue in issues):
            issues.extend(self._validate_dates(draft))

        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the form shows under the submit button.
        """
        if result.is_valid and not result.warnings:
            return "✅ Transaction looks good."

        lines = []

        if not result.is_valid:
            lines.append("❌ The transaction could not be added:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)


class TransactionValidationError(Exception):
    """Raised when a submission fails validation. Nothing was stored."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        errors = [issue.message for issue in issues if issue.severity == "error"]
        super().__init__("; ".join(errors) or "Invalid transaction")
