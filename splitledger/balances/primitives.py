"""
Ledger Primitives

The signed contribution of one split and one settlement to the
relationship between two parties, plus the single rounding policy
used when amounts leave the system.

Sign conventions:
- split_debt: the split's user owes the payer `split.amount`.
- settlement_credit: the payer owes the receiver `-settlement.amount`,
  i.e. a settlement only ever reduces the payer's debt to the receiver.
"""

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterator, Optional

from splitledger.models.balances import DirectedDebt
from splitledger.models.ledger import Expense, Settlement, Split


ZERO = Decimal("0")


def split_debt(expense: Expense, split: Split) -> Optional[DirectedDebt]:
    """
    Debt created by one split of an expense.

    Returns None for the payer's own split and for splits already
    marked paid.
    """
    if split.user_id == expense.paid_by_user_id or split.paid:
        return None
    return DirectedDebt(
        debtor_id=split.user_id,
        creditor_id=expense.paid_by_user_id,
        amount=split.amount,
    )


def expense_debts(expense: Expense) -> Iterator[DirectedDebt]:
    """All debts created by an expense, in split order."""
    for split in expense.splits:
        debt = split_debt(expense, split)
        if debt is not None:
            yield debt


def settlement_credit(settlement: Settlement) -> DirectedDebt:
    """Credit from a settlement, expressed as a negative payer -> receiver debt."""
    return DirectedDebt(
        debtor_id=settlement.paid_by_user_id,
        creditor_id=settlement.received_by_user_id,
        amount=-settlement.amount,
    )


def round_amount(
    value: Decimal,
    places: int = 2,
    rounding: str = ROUND_HALF_EVEN,
) -> Decimal:
    """
    Round an amount for output.

    Only call this at the edge (formatting, reports). Running sums are
    kept exact.
    """
    quantum = Decimal(1).scaleb(-places)
    return Decimal(value).quantize(quantum, rounding=rounding)


def format_amount(
    value: Decimal,
    places: int = 2,
    rounding: str = ROUND_HALF_EVEN,
) -> str:
    """Rounded amount as a plain string, e.g. '12.50'."""
    return f"{round_amount(value, places, rounding):.{places}f}"
