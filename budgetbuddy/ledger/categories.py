"""
Category Resolution

Turns a transaction description into a canonical category using the
assistant, then validates the answer against the closed category set for
the transaction kind.

The validation step is mandatory: anything that is not a member of the set
(hallucination, typo, timeout, service failure) becomes OTHER.
"""

import asyncio
from typing import NamedTuple, Optional

import structlog

from budgetbuddy.agents.interface import LedgerAssistant
from budgetbuddy.models.ledger import (
    Category,
    TransactionType,
    fallback_category,
    match_category,
)


logger = structlog.get_logger(__name__)

# Characters LLMs like to wrap a bare answer in
_ANSWER_PUNCTUATION = " \t\r\n\"'`.*"


class CategoryResolution(NamedTuple):
    category: Category
    suggested: Optional[str]
    fell_back: bool
    error: Optional[str] = None


def clean_suggestion(suggestion: Optional[str]) -> Optional[str]:
    """Strip whitespace, quotes and trailing periods from a bare answer."""
    if not isinstance(suggestion, str):
        return None
    return suggestion.strip(_ANSWER_PUNCTUATION)


def coerce_category(suggestion: Optional[str], kind: TransactionType) -> Category:
    """Map a suggestion onto the set for `kind`, OTHER if it is not a member."""
    return match_category(clean_suggestion(suggestion), kind) or fallback_category(kind)


async def resolve_category(
    description: str,
    kind: TransactionType,
    assistant: Optional[LedgerAssistant],
    timeout: Optional[float] = None,
) -> CategoryResolution:
    """
    Ask the assistant for a category and validate the answer.

    Never raises. On timeout or failure the category is OTHER and
    `error` says why.
    """
    if assistant is None:
        return CategoryResolution(fallback_category(kind), None, True, "no assistant configured")

    try:
        suggestion = await asyncio.wait_for(
            assistant.suggest_category(description, kind),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("category_suggestion_timeout", timeout=timeout)
        return CategoryResolution(fallback_category(kind), None, True, "timed out")
    except Exception as e:
        logger.warning("category_suggestion_failed", error=str(e))
        return CategoryResolution(fallback_category(kind), None, True, str(e))

    matched = match_category(clean_suggestion(suggestion), kind)
    if matched is None:
        return CategoryResolution(fallback_category(kind), suggestion, True)
    return CategoryResolution(matched, suggestion, False)
