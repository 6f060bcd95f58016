"""
In-Memory Storage Implementation

Keeps rows in dicts in insertion order. Used by the test-suite and for
local runs without Google Sheets. Reads return copies so callers can
never mutate stored rows.
"""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import Expense, Group, Settlement, User
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(
        self,
        users: Iterable[User] = (),
        groups: Iterable[Group] = (),
        expenses: Iterable[Expense] = (),
        settlements: Iterable[Settlement] = (),
    ):
        self._users: dict[str, User] = {u.id: u for u in users}
        self._groups: dict[str, Group] = {g.id: g for g in groups}
        self._expenses: dict[str, Expense] = {e.id: e for e in expenses}
        self._settlements: dict[str, Settlement] = {s.id: s for s in settlements}

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_group(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def get_group_by_invite_token(self, token: str) -> Optional[Group]:
        for group in self._groups.values():
            if group.invite_token and group.invite_token == token:
                return group.model_copy(deep=True)
        return None

    async def list_users(self) -> list[User]:
        return [u.model_copy(deep=True) for u in self._users.values()]

    async def list_groups(self) -> list[Group]:
        return [g.model_copy(deep=True) for g in self._groups.values()]

    async def list_groups_for_user(self, user_id: str) -> list[Group]:
        return [
            g.model_copy(deep=True)
            for g in self._groups.values()
            if g.is_member(user_id)
        ]

    async def list_group_expenses(self, group_id: str) -> list[Expense]:
        return [
            e.model_copy(deep=True)
            for e in self._expenses.values()
            if e.group_id == group_id
        ]

    async def list_group_settlements(self, group_id: str) -> list[Settlement]:
        return [
            s.model_copy(deep=True)
            for s in self._settlements.values()
            if s.group_id == group_id
        ]

    async def list_direct_expenses_for_user(self, user_id: str) -> list[Expense]:
        return [
            e.model_copy(deep=True)
            for e in self._expenses.values()
            if e.is_direct and e.involves(user_id)
        ]

    async def list_direct_settlements_for_user(self, user_id: str) -> list[Settlement]:
        return [
            s.model_copy(deep=True)
            for s in self._settlements.values()
            if s.is_direct and s.involves(user_id)
        ]

    async def list_user_expenses_since(self, user_id: str, since: datetime) -> list[Expense]:
        return [
            e.model_copy(deep=True)
            for e in self._expenses.values()
            if e.date >= since and e.involves(user_id)
        ]

    async def save_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(deep=True)
        return True

    async def save_settlement(self, settlement: Settlement) -> bool:
        if settlement.id in self._settlements:
            raise DuplicateError(f"Settlement already exists: {settlement.id}")
        self._settlements[settlement.id] = settlement.model_copy(deep=True)
        return True

    async def save_group(self, group: Group) -> bool:
        self._groups[group.id] = group.model_copy(deep=True)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit storage."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)
