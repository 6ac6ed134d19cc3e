"""
Abstract Assistant Interface

The ledger engine relies on an external text-understanding service for three
things: guessing a category from a description, turning a free-text budget
plan into structured data, and writing advisory insights.

CRITICAL BOUNDARIES:
- Implementations return RAW answers. Category names and plan fields are
  validated by the engine, never trusted.
- Implementations may raise AssistantError. Callers fall back to a safe
  default; no assistant failure ever reaches stored data.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from budgetbuddy.models.ledger import BudgetSet, Transaction, TransactionType


class LedgerAssistant(ABC):
    """Contract for the text-understanding collaborator."""

    service_name: str = "assistant"

    @abstractmethod
    async def suggest_category(
        self,
        description: str,
        kind: TransactionType,
    ) -> Optional[str]:
        """
        Suggest a category name for a transaction description.

        Returns:
            Any string (may be outside the category schema), or None
        """
        pass

    @abstractmethod
    async def parse_budget_plan(self, plan_text: str) -> Optional[dict[str, Any]]:
        """
        Extract a plan-shaped mapping from free text.

        Returns:
            A mapping with (some of) month, budgets, incomeEstimate,
            savingsGoal and advice, or None if nothing could be extracted
        """
        pass

    @abstractmethod
    async def generate_insights(
        self,
        transactions: list[Transaction],
        budgets: BudgetSet,
    ) -> str:
        """
        Write short advisory text about recent activity.

        The text is shown to the user as-is and never parsed.
        """
        pass


class AssistantError(Exception):
    """The assistant could not produce an answer."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")
