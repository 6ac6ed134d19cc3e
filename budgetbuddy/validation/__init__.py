"""Validation package."""

from budgetbuddy.validation.validator import (
    TransactionValidationError,
    TransactionValidator,
)

__all__ = ["TransactionValidationError", "TransactionValidator"]
