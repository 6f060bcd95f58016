"""
Group Balance Aggregator

One signed balance per group for list and dashboard views. No
per-counterparty breakdown and no simplification.
"""

from decimal import Decimal
from typing import Iterable, Mapping

from splitledger.balances.primitives import ZERO
from splitledger.models.balances import GroupBalanceSummary
from splitledger.models.ledger import Expense, Group, Settlement


def compute_group_balance(
    user_id: str,
    group_id: str,
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> Decimal:
    """
    User's signed balance in one group.

    + unpaid splits owed to the user on expenses they paid
    - the user's own unpaid split on expenses someone else paid
    + settlements the user paid, - settlements the user received
    """
    balance = ZERO

    for expense in expenses:
        if expense.group_id != group_id:
            continue
        if expense.paid_by_user_id == user_id:
            for split in expense.splits:
                if split.user_id != user_id and not split.paid:
                    balance += split.amount
        else:
            own_split = expense.split_for(user_id)
            if own_split is not None and not own_split.paid:
                balance -= own_split.amount

    for settlement in settlements:
        if settlement.group_id != group_id:
            continue
        if settlement.paid_by_user_id == user_id:
            balance += settlement.amount
        elif settlement.received_by_user_id == user_id:
            balance -= settlement.amount

    return balance


def summarize_user_groups(
    user_id: str,
    groups: Iterable[Group],
    expenses_by_group: Mapping[str, list[Expense]],
    settlements_by_group: Mapping[str, list[Settlement]],
) -> list[GroupBalanceSummary]:
    """Balance of every group the user belongs to, in input order."""
    summaries = []
    for group in groups:
        if not group.is_member(user_id):
            continue
        summaries.append(GroupBalanceSummary(
            id=group.id,
            name=group.name,
            description=group.description,
            invite_token=group.invite_token,
            created_by=group.created_by,
            member_count=len(group.members),
            balance=compute_group_balance(
                user_id,
                group.id,
                expenses_by_group.get(group.id, []),
                settlements_by_group.get(group.id, []),
            ),
        ))
    return summaries
