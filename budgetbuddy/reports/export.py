"""
Transaction Export

Flat rows in store order (newest first), and their CSV rendering.
"""

from typing import Iterable

import pandas as pd

from budgetbuddy.models.ledger import Transaction


EXPORT_COLUMNS = ["ID", "Date", "Type", "Category", "Description", "Amount"]
EXPORT_FILENAME = "budget_buddy_transactions.csv"


def transactions_to_rows(transactions: Iterable[Transaction]) -> list[list[str]]:
    """One row per transaction, without the header."""
    return [transaction.to_export_row() for transaction in transactions]


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    return pd.DataFrame(transactions_to_rows(transactions), columns=EXPORT_COLUMNS)


def export_csv(transactions: Iterable[Transaction]) -> str:
    """Render the header and every transaction as CSV text."""
    return transactions_to_frame(transactions).to_csv(index=False, lineterminator="\n")
