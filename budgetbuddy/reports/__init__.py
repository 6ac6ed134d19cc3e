"""Reports package."""

from budgetbuddy.reports.export import (
    EXPORT_COLUMNS,
    EXPORT_FILENAME,
    export_csv,
    transactions_to_frame,
    transactions_to_rows,
)

__all__ = [
    "EXPORT_COLUMNS",
    "EXPORT_FILENAME",
    "export_csv",
    "transactions_to_frame",
    "transactions_to_rows",
]
