"""Yearly and monthly spending from a user's expense shares."""

from datetime import date
from decimal import Decimal
from typing import Iterable

from splitledger.balances.primitives import ZERO
from splitledger.models.balances import MonthlyTotal
from splitledger.models.ledger import Expense


def _user_shares(user_id: str, expenses: Iterable[Expense], year: int):
    for expense in expenses:
        if expense.date.year != year:
            continue
        split = expense.split_for(user_id)
        if split is not None:
            yield expense, split.amount


def total_spent(user_id: str, expenses: Iterable[Expense], year: int) -> Decimal:
    """Sum of the user's own split amounts over one calendar year, group and one-to-one alike."""
    return sum((amount for _, amount in _user_shares(user_id, expenses, year)), ZERO)


def monthly_spending(user_id: str, expenses: Iterable[Expense], year: int) -> list[MonthlyTotal]:
    """Twelve monthly totals for the year, January first; empty months are zero."""
    totals = {month: ZERO for month in range(1, 13)}
    for expense, amount in _user_shares(user_id, expenses, year):
        totals[expense.date.month] += amount

    return [
        MonthlyTotal(month=date(year, month, 1), total=total)
        for month, total in sorted(totals.items())
    ]
