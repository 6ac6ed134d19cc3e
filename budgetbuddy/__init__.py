"""
Budget Buddy - Source Package

A personal finance tracker: transactions, per-category monthly budgets,
and an assistant that reads budget plans written in plain words.

DESIGN PRINCIPLES:
1. Assistant suggests → Engine validates → Ledger stores
2. Limits belong to the user, spending is always recomputed
3. No silent corrections of what the user typed
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Buddy Team"
