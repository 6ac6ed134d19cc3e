"""
Gemini-backed Ledger Assistant

CRITICAL BOUNDARIES:
- CAN: Suggest a category name, extract a plan from free text, write advice
- CANNOT: Write to the ledger. Every answer goes back through the engine,
  which validates categories and defaults plan fields.
- CANNOT: Invent categories. Answers outside the schema become OTHER.

The LLM is a TRANSLATOR, not an ORACLE.
"""

import json
from typing import Any, Optional

import google.generativeai as genai
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from budgetbuddy.agents.interface import AssistantError, LedgerAssistant
from budgetbuddy.config import GeminiSettings, get_settings
from budgetbuddy.models.ledger import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    BudgetSet,
    Transaction,
    TransactionType,
)


# Shape the plan parser is asked to answer in
PLAN_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "month": {
            "type": "string",
            "description": "The month this plan is for, if specified, else 'General'",
        },
        "budgets": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "category": {"type": "string"},
                    "limit": {"type": "number"},
                },
            },
        },
        "incomeEstimate": {"type": "number"},
        "savingsGoal": {"type": "number"},
        "advice": {"type": "string"},
    },
}


def _all_category_names() -> list[str]:
    names = [c.value for c in EXPENSE_CATEGORIES if c.value != "Other"]
    names += [c.value for c in INCOME_CATEGORIES if c.value != "Other"]
    return names + ["Other"]


class GeminiAssistant(LedgerAssistant):
    """
    Text-understanding service backed by Google Gemini.

    Args:
        settings: Gemini settings. Loaded from the environment if None.
        model: Pre-built model object exposing `generate_content_async`.
               When given, genai is not configured (used in tests).
    """

    service_name = "gemini"

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Any = None,
        insight_transaction_count: int = 10,
    ):
        self._settings = settings or get_settings().gemini
        self._insight_transaction_count = insight_transaction_count
        if model is None:
            model = self._configure_genai()
        self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def _generate(
        self,
        operation: str,
        prompt: str,
        generation_config: Optional[dict] = None,
    ) -> str:
        """
        Send one prompt, retrying transient failures.

        Raises:
            AssistantError: If every attempt failed
        """
        kwargs = {}
        if generation_config is not None:
            kwargs["generation_config"] = generation_config

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                reraise=True,
            ):
                with attempt:
                    response = await self._model.generate_content_async(prompt, **kwargs)
                    # .text raises if the answer was blocked
                    text = response.text
        except Exception as e:
            raise AssistantError(operation, str(e)) from e

        return (text or "").strip()

    async def suggest_category(
        self,
        description: str,
        kind: TransactionType,
    ) -> Optional[str]:
        """Ask for a bare category name. The answer is validated by the caller."""
        prompt = (
            "Categorize this transaction description into one of these exact "
            f"categories: {', '.join(_all_category_names())}.\n"
            f"This is an {TransactionType(kind).value.lower()} transaction.\n"
            f'Description: "{description}".\n'
            "Return ONLY the category name."
        )
        text = await self._generate("suggest_category", prompt)
        return text or None

    async def parse_budget_plan(self, plan_text: str) -> Optional[dict[str, Any]]:
        """
        Extract a structured plan from free text.

        Returns None if the answer is empty or not a JSON object.
        """
        prompt = (
            "Analyze this budget plan text and extract structured data.\n"
            f'The text is: "{plan_text}".\n'
            "Extract a list of category budgets, an estimated income, and a "
            "savings goal if mentioned.\n"
            "Also provide a short, encouraging summary advice based on the "
            "tone of the plan."
        )
        text = await self._generate(
            "parse_budget_plan",
            prompt,
            generation_config={
                "response_mime_type": "application/json",
                "response_schema": PLAN_RESPONSE_SCHEMA,
            },
        )
        if not text:
            return None

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None

    async def generate_insights(
        self,
        transactions: list[Transaction],
        budgets: BudgetSet,
    ) -> str:
        """Ask for three short insights on the most recent transactions."""
        summary = json.dumps({
            "recentTransactions": [
                t.model_dump(mode="json")
                for t in transactions[:self._insight_transaction_count]
            ],
            "budgets": [b.model_dump(mode="json") for b in budgets.budgets],
        })
        prompt = (
            "You are a witty and helpful financial coach called BudgetBuddy.\n"
            f"Analyze these recent transactions and budget status: {summary}.\n"
            "Provide 3 short, bulleted insights or actionable advice.\n"
            "Keep it modern, concise, and professional but friendly."
        )
        return await self._generate("generate_insights", prompt)
