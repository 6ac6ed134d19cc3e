"""Shared fixtures. No test talks to Gemini or Google Sheets."""

import asyncio
from datetime import date
from typing import Any, Optional

import pytest

from budgetbuddy.agents import AssistantError, LedgerAssistant


TODAY = date(2024, 3, 15)


class FakeAssistant(LedgerAssistant):
    """Scripted assistant. Set `fail` to raise, `delay` to be slow."""

    service_name = "fake"

    def __init__(
        self,
        category: Optional[str] = "Food",
        plan: Any = None,
        insights: str = "- Spend less on coffee",
        fail: bool = False,
        delay: float = 0.0,
    ):
        self.category = category
        self.plan = plan
        self.insights = insights
        self.fail = fail
        self.delay = delay
        self.calls: list[tuple] = []

    async def _answer(self, operation: str, value: Any) -> Any:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise AssistantError(operation, "service unavailable")
        return value

    async def suggest_category(self, description, kind):
        self.calls.append(("suggest_category", description, kind))
        return await self._answer("suggest_category", self.category)

    async def parse_budget_plan(self, plan_text):
        self.calls.append(("parse_budget_plan", plan_text))
        return await self._answer("parse_budget_plan", self.plan)

    async def generate_insights(self, transactions, budgets):
        self.calls.append(("generate_insights", len(transactions)))
        return await self._answer("generate_insights", self.insights)


@pytest.fixture
def today() -> date:
    return TODAY
