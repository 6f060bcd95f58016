"""
Abstract Storage Interface

DESIGN DECISION: The ledger reads and writes rows through an abstract
interface. This allows us to:
1. Keep the balance engine free of any storage concern
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

Every read is expected to return a point-in-time consistent snapshot.
The interface is intentionally small: query-by-index and point-get.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.ledger import Expense, Group, Settlement, User


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Point gets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        """Retrieve a user by ID, or None."""
        pass

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Group]:
        """Retrieve a group by ID, or None."""
        pass

    @abstractmethod
    async def get_group_by_invite_token(self, token: str) -> Optional[Group]:
        """Retrieve the group whose current invite token is `token`, or None."""
        pass

    # -------------------------------------------------------------------------
    # Index queries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_users(self) -> list[User]:
        """All users."""
        pass

    @abstractmethod
    async def list_groups(self) -> list[Group]:
        """All groups."""
        pass

    @abstractmethod
    async def list_groups_for_user(self, user_id: str) -> list[Group]:
        """Groups where the user is a member."""
        pass

    @abstractmethod
    async def list_group_expenses(self, group_id: str) -> list[Expense]:
        """All expenses of a group."""
        pass

    @abstractmethod
    async def list_group_settlements(self, group_id: str) -> list[Settlement]:
        """All settlements of a group."""
        pass

    @abstractmethod
    async def list_direct_expenses_for_user(self, user_id: str) -> list[Expense]:
        """One-to-one expenses where the user is payer or has a split."""
        pass

    @abstractmethod
    async def list_direct_settlements_for_user(self, user_id: str) -> list[Settlement]:
        """One-to-one settlements where the user paid or received."""
        pass

    @abstractmethod
    async def list_user_expenses_since(self, user_id: str, since: datetime) -> list[Expense]:
        """Expenses (group or one-to-one) dated on/after `since` that involve the user."""
        pass

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Persist a new expense.

        Raises:
            DuplicateError: an expense with this ID exists
            StorageError: if save fails
        """
        pass

    @abstractmethod
    async def save_settlement(self, settlement: Settlement) -> bool:
        """
        Persist a new settlement.

        Raises:
            DuplicateError: a settlement with this ID exists
            StorageError: if save fails
        """
        pass

    @abstractmethod
    async def save_group(self, group: Group) -> bool:
        """Insert or replace a group (membership and invite token changes)."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log. Returns True if logged."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate row."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
