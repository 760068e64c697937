"""Aggregation helpers for expense amounts."""
from decimal import Decimal
from typing import Iterable

from models.expense import Expense


def calculate_total(expenses: Iterable[Expense]) -> float:
    """
    Sums the amount of every expense.

    Each float is converted through its repr so that 0.1 + 0.2 adds up to 0.3
    instead of accumulating binary rounding error.
    """
    total = sum((Decimal(repr(expense.amount)) for expense in expenses), Decimal("0"))
    return float(total)
