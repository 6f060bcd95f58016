"""
Ledger Query Service

DESIGN DECISION: Queries are split in two halves.
1. Fetch: read a snapshot of the rows through the storage interface
   (independent reads fan out with asyncio.gather)
2. Compute: hand the snapshot to the pure balance engine

The current user is always an explicit argument; nothing here reads
ambient request state. Permission checks happen before any expense or
settlement rows are read.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from splitledger.audit import AuditLogger
from splitledger.balances import (
    build_group_ledger,
    compute_pair_balance,
    compute_user_balances,
    group_summary,
    monthly_spending,
    summarize_user_groups,
    total_spent,
)
from splitledger.errors import ForbiddenError, NotFoundError
from splitledger.models.balances import (
    GroupBalanceSummary,
    GroupLedger,
    GroupMembersView,
    MemberDetail,
    MonthlyTotal,
    PairBalance,
    UserBalances,
)
from splitledger.models.ledger import Group, User
from splitledger.services.storage import LedgerStorageInterface


class LedgerQueryService:
    """
    Read-side entry points of the ledger.

    GUARANTEES:
    - Balances are recomputed from current rows on every call
    - Non-members never see a group's rows
    - Missing groups/users raise NotFoundError, never an empty result
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def _users_by_id(self, user_ids: Iterable[str]) -> dict[str, User]:
        """Resolve users in parallel; unknown ids are left out."""
        unique_ids = list(dict.fromkeys(user_ids))
        users = await asyncio.gather(*(self._storage.get_user(uid) for uid in unique_ids))
        return {user.id: user for user in users if user is not None}

    async def _require_member_group(self, group_id: str, current_user_id: str) -> Group:
        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        if not group.is_member(current_user_id):
            if self._audit_logger:
                await self._audit_logger.log_access_denied(
                    actor_id=current_user_id,
                    entity_type="group",
                    entity_id=group_id,
                    reason="not a member of this group",
                )
            raise ForbiddenError("You are not a member of this group")
        return group

    # -------------------------------------------------------------------------
    # Balances
    # -------------------------------------------------------------------------

    async def get_user_balances(self, current_user_id: str) -> UserBalances:
        """One-to-one balances of the current user."""
        expenses, settlements = await asyncio.gather(
            self._storage.list_direct_expenses_for_user(current_user_id),
            self._storage.list_direct_settlements_for_user(current_user_id),
        )

        counterpart_ids = [e.paid_by_user_id for e in expenses]
        counterpart_ids += [s.user_id for e in expenses for s in e.splits]
        counterpart_ids += [s.paid_by_user_id for s in settlements]
        counterpart_ids += [s.received_by_user_id for s in settlements]
        users = await self._users_by_id(
            uid for uid in counterpart_ids if uid != current_user_id
        )

        balances = compute_user_balances(current_user_id, expenses, settlements, users)

        if self._audit_logger:
            await self._audit_logger.log_balances_computed(
                actor_id=current_user_id,
                total_balance=balances.total_balance,
                counterparty_count=(
                    len(balances.owe_details.you_owe)
                    + len(balances.owe_details.you_are_owed_by)
                ),
            )
        return balances

    async def get_group_expenses(self, group_id: str, current_user_id: str) -> GroupLedger:
        """
        Simplified ledger of a group.

        Raises:
            NotFoundError: group does not exist
            ForbiddenError: current user is not a member
        """
        group = await self._require_member_group(group_id, current_user_id)

        expenses, settlements, users = await asyncio.gather(
            self._storage.list_group_expenses(group_id),
            self._storage.list_group_settlements(group_id),
            self._users_by_id(group.member_ids),
        )

        ledger = build_group_ledger(group, expenses, settlements, current_user_id, users)

        if self._audit_logger:
            await self._audit_logger.log_group_ledger_computed(
                group_id=group_id,
                actor_id=current_user_id,
                expense_count=len(ledger.expenses),
                settlement_count=len(ledger.settlements),
                debt_count=len(ledger.debts),
            )
        return ledger

    async def get_user_groups(self, current_user_id: str) -> list[GroupBalanceSummary]:
        """The user's groups, each with the user's signed balance."""
        groups = await self._storage.list_groups_for_user(current_user_id)

        expense_lists, settlement_lists = await asyncio.gather(
            asyncio.gather(*(self._storage.list_group_expenses(g.id) for g in groups)),
            asyncio.gather(*(self._storage.list_group_settlements(g.id) for g in groups)),
        )

        return summarize_user_groups(
            current_user_id,
            groups,
            {g.id: expenses for g, expenses in zip(groups, expense_lists)},
            {g.id: settlements for g, settlements in zip(groups, settlement_lists)},
        )

    async def get_group_or_members(
        self,
        current_user_id: str,
        group_id: Optional[str] = None,
    ) -> GroupMembersView:
        """
        The user's groups, and the members of `group_id` when given.

        Members whose user record cannot be found are left out.
        """
        groups = await self._storage.list_groups_for_user(current_user_id)
        view = GroupMembersView(groups=[group_summary(g) for g in groups])

        if group_id is None:
            return view

        selected = next((g for g in groups if g.id == group_id), None)
        if selected is None:
            raise NotFoundError("Group not found or you're not a member")

        users = await self._users_by_id(selected.member_ids)
        view.selected_group = group_summary(selected)
        view.selected_members = [
            MemberDetail(
                id=membership.user_id,
                name=users[membership.user_id].name,
                email=users[membership.user_id].email,
                image_url=users[membership.user_id].image_url,
                role=membership.role,
            )
            for membership in selected.members
            if membership.user_id in users
        ]
        return view

    async def get_expenses_between_users(
        self,
        current_user_id: str,
        other_user_id: str,
    ) -> PairBalance:
        """One-to-one expenses and settlements between two users, newest first."""
        other = await self._storage.get_user(other_user_id)
        if other is None:
            raise NotFoundError("User not found")

        expenses, settlements = await asyncio.gather(
            self._storage.list_direct_expenses_for_user(current_user_id),
            self._storage.list_direct_settlements_for_user(current_user_id),
        )

        pair = {current_user_id, other_user_id}
        shared_expenses = [
            e for e in expenses
            if e.involves(current_user_id) and e.involves(other_user_id)
            and e.paid_by_user_id in pair
        ]
        shared_settlements = [
            s for s in settlements
            if {s.paid_by_user_id, s.received_by_user_id} == pair
        ]
        shared_expenses.sort(key=lambda e: e.date, reverse=True)
        shared_settlements.sort(key=lambda s: s.date, reverse=True)

        return PairBalance(
            other_user=MemberDetail(
                id=other.id,
                name=other.name,
                email=other.email,
                image_url=other.image_url,
            ),
            expenses=shared_expenses,
            settlements=shared_settlements,
            balance=compute_pair_balance(
                current_user_id,
                other_user_id,
                shared_expenses,
                shared_settlements,
            ),
        )

    # -------------------------------------------------------------------------
    # Spending
    # -------------------------------------------------------------------------

    async def get_total_spent(self, current_user_id: str, year: Optional[int] = None) -> Decimal:
        """Sum of the user's shares this year (or `year`)."""
        year = year or date.today().year
        expenses = await self._storage.list_user_expenses_since(
            current_user_id, datetime(year, 1, 1)
        )
        return total_spent(current_user_id, expenses, year)

    async def get_monthly_spending(
        self,
        current_user_id: str,
        year: Optional[int] = None,
    ) -> list[MonthlyTotal]:
        """Monthly sums of the user's shares this year (or `year`)."""
        year = year or date.today().year
        expenses = await self._storage.list_user_expenses_since(
            current_user_id, datetime(year, 1, 1)
        )
        return monthly_spending(current_user_id, expenses, year)
