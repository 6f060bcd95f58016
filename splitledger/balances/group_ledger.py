"""
Group Ledger Builder

Builds the fully simplified ledger of one group: who owes whom (net,
per pair) and every member's total balance.

Steps:
1. Zero totals and a zero directed ledger over the member ids
2. Apply expenses: debtor owes payer each unpaid non-payer split
3. Apply settlements: payer's debt to receiver goes down
4. Net every unordered pair once, in canonical id order
5. Assemble per-member owes / owed_by lists

Records that reference users outside the group are skipped and logged;
the arithmetic never raises.
"""

from decimal import Decimal
from typing import Iterable, Mapping, Optional

import structlog

from splitledger.balances.netting import DebtLedger
from splitledger.balances.primitives import ZERO, expense_debts, settlement_credit
from splitledger.errors import ForbiddenError, NotFoundError
from splitledger.models.balances import (
    GroupLedger,
    GroupMemberBalance,
    GroupSummary,
    MemberDetail,
    OwedByEntry,
    OwesEntry,
)
from splitledger.models.ledger import Expense, Group, Settlement, User


logger = structlog.get_logger(__name__)


def member_details(
    group: Group,
    users: Optional[Mapping[str, User]] = None,
) -> list[MemberDetail]:
    """Members of a group with their user details, in membership order."""
    users = users or {}
    details = []
    for membership in group.members:
        user = users.get(membership.user_id)
        details.append(MemberDetail(
            id=membership.user_id,
            name=user.name if user else "Unknown",
            email=user.email if user else None,
            image_url=user.image_url if user else None,
            role=membership.role,
        ))
    return details


def group_summary(group: Group) -> GroupSummary:
    return GroupSummary(
        id=group.id,
        name=group.name,
        description=group.description,
        invite_token=group.invite_token,
        created_by=group.created_by,
        member_count=len(group.members),
    )


def compute_group_totals_and_ledger(
    member_ids: list[str],
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
) -> tuple[dict[str, Decimal], DebtLedger]:
    """
    Totals per member and the simplified pairwise ledger.

    Totals: the payer gains each debt, the debtor loses it. A settlement
    raises the payer's total and lowers the receiver's, so every record
    moves the group's totals by a net of zero.
    """
    totals: dict[str, Decimal] = {member_id: ZERO for member_id in member_ids}
    ledger = DebtLedger(member_ids)

    for expense in expenses:
        for debt in expense_debts(expense):
            if not ledger.apply(debt):
                logger.warning(
                    "expense_split_skipped",
                    expense_id=expense.id,
                    debtor_id=debt.debtor_id,
                    payer_id=debt.creditor_id,
                )
                continue
            totals[debt.creditor_id] += debt.amount
            totals[debt.debtor_id] -= debt.amount

    for settlement in settlements:
        if not ledger.apply(settlement_credit(settlement)):
            logger.warning(
                "settlement_skipped",
                settlement_id=settlement.id,
                paid_by_user_id=settlement.paid_by_user_id,
                received_by_user_id=settlement.received_by_user_id,
            )
            continue
        totals[settlement.paid_by_user_id] += settlement.amount
        totals[settlement.received_by_user_id] -= settlement.amount

    return totals, ledger.simplify()


def build_group_ledger(
    group: Optional[Group],
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    requesting_user_id: str,
    users: Optional[Mapping[str, User]] = None,
) -> GroupLedger:
    """
    Build the simplified ledger of a group for one of its members.

    Raises:
        NotFoundError: group is None
        ForbiddenError: requesting user is not a member
    """
    if group is None:
        raise NotFoundError("Group not found")
    if not group.is_member(requesting_user_id):
        raise ForbiddenError("You are not a member of this group")

    expenses = [e for e in expenses if e.group_id == group.id]
    settlements = [s for s in settlements if s.group_id == group.id]

    members = member_details(group, users)
    member_ids = [m.id for m in members]

    totals, ledger = compute_group_totals_and_ledger(member_ids, expenses, settlements)

    balances = [
        GroupMemberBalance(
            **member.model_dump(),
            total_balance=totals[member.id],
            owes=[OwesEntry(to=other, amount=amount) for other, amount in ledger.owes(member.id)],
            owed_by=[
                OwedByEntry(from_=other, amount=amount)
                for other, amount in ledger.owed_by(member.id)
            ],
        )
        for member in members
    ]

    return GroupLedger(
        group=group_summary(group),
        members=members,
        expenses=expenses,
        settlements=settlements,
        balances=balances,
        debts=ledger.edges(),
        user_lookup={member.id: member for member in members},
    )
