"""
User Balance Aggregator

Computes one user's "you owe" / "you are owed" totals and the
per-counterparty breakdown from their one-to-one (non-group) expenses
and settlements.

Every counterparty gets an `owed` / `owing` pair seen from the current
user's side: `owed` is what they owe the user, `owing` is what the user
owes them. The net `owed - owing` decides which list they land in.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional

import structlog

from splitledger.balances.primitives import ZERO, expense_debts, settlement_credit
from splitledger.models.balances import (
    CounterpartyBalance,
    OweDetails,
    UserBalances,
)
from splitledger.models.ledger import Expense, Settlement, User


logger = structlog.get_logger(__name__)


@dataclass
class _Counterparty:
    owed: Decimal = ZERO
    owing: Decimal = ZERO


def _direct_expenses(user_id: str, expenses: Iterable[Expense]) -> list[Expense]:
    return [e for e in expenses if e.is_direct and e.involves(user_id)]


def _direct_settlements(user_id: str, settlements: Iterable[Settlement]) -> list[Settlement]:
    return [s for s in settlements if s.is_direct and s.involves(user_id)]


def compute_user_balances(
    user_id: str,
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    users: Optional[Mapping[str, User]] = None,
) -> UserBalances:
    """
    Aggregate a user's one-to-one balances.

    Group expenses and records that do not involve the user are ignored,
    so callers may pass a superset.

    Both breakdown lists are sorted by amount, largest first. Among equal
    amounts the order is the order in which counterparties were first
    seen (expenses in input order, then settlements).

    Self-settlements are skipped and logged.
    """
    users = users or {}
    you_owe = ZERO
    you_are_owed = ZERO
    by_user: dict[str, _Counterparty] = {}

    for expense in _direct_expenses(user_id, expenses):
        for debt in expense_debts(expense):
            if debt.creditor_id == user_id:
                you_are_owed += debt.amount
                by_user.setdefault(debt.debtor_id, _Counterparty()).owed += debt.amount
            elif debt.debtor_id == user_id:
                you_owe += debt.amount
                by_user.setdefault(debt.creditor_id, _Counterparty()).owing += debt.amount

    for settlement in _direct_settlements(user_id, settlements):
        if settlement.paid_by_user_id == settlement.received_by_user_id:
            logger.warning(
                "settlement_skipped",
                settlement_id=settlement.id,
                paid_by_user_id=settlement.paid_by_user_id,
                received_by_user_id=settlement.received_by_user_id,
            )
            continue
        credit = settlement_credit(settlement)
        if credit.debtor_id == user_id:
            # User paid someone: reduces what the user owes
            you_owe += credit.amount
            by_user.setdefault(credit.creditor_id, _Counterparty()).owing += credit.amount
        else:
            # Someone paid the user: reduces what they owe
            you_are_owed += credit.amount
            by_user.setdefault(credit.debtor_id, _Counterparty()).owed += credit.amount

    you_owe_list = []
    you_are_owed_by_list = []

    for counterpart_id, position in by_user.items():
        net = position.owed - position.owing
        if net == 0:
            continue

        counterpart = users.get(counterpart_id)
        entry = CounterpartyBalance(
            user_id=counterpart_id,
            name=counterpart.name if counterpart else "Unknown",
            image_url=counterpart.image_url if counterpart else None,
            amount=abs(net),
        )
        if net > 0:
            you_are_owed_by_list.append(entry)
        else:
            you_owe_list.append(entry)

    you_owe_list.sort(key=lambda entry: entry.amount, reverse=True)
    you_are_owed_by_list.sort(key=lambda entry: entry.amount, reverse=True)

    return UserBalances(
        you_owe=you_owe,
        you_are_owed=you_are_owed,
        total_balance=you_are_owed - you_owe,
        owe_details=OweDetails(
            you_owe=you_owe_list,
            you_are_owed_by=you_are_owed_by_list,
        ),
    )


def compute_pair_balance(
    user_id: str,
    other_user_id: str,
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> Decimal:
    """
    Signed one-to-one balance between two users.

    Positive means the other user owes `user_id`. Only one-to-one
    records involving both users count.
    """
    balance = ZERO

    for expense in expenses:
        if not expense.is_direct:
            continue
        for debt in expense_debts(expense):
            if debt.debtor_id == other_user_id and debt.creditor_id == user_id:
                balance += debt.amount
            elif debt.debtor_id == user_id and debt.creditor_id == other_user_id:
                balance -= debt.amount

    for settlement in settlements:
        if not settlement.is_direct:
            continue
        if (settlement.paid_by_user_id, settlement.received_by_user_id) == (user_id, other_user_id):
            balance += settlement.amount
        elif (settlement.paid_by_user_id, settlement.received_by_user_id) == (other_user_id, user_id):
            balance -= settlement.amount

    return balance
