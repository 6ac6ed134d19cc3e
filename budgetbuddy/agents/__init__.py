"""Text-understanding assistants package."""

from budgetbuddy.agents.interface import AssistantError, LedgerAssistant
from budgetbuddy.agents.ai_agents import GeminiAssistant

__all__ = [
    "AssistantError",
    "GeminiAssistant",
    "LedgerAssistant",
]
