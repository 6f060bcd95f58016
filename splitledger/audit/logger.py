"""
Audit Logger

DESIGN DECISION: Every ledger write, permission failure and reminder
run is logged. This provides:
1. Traceability of who recorded what
2. Debugging capability when balances look off
3. A history of invite links issued and redeemed

The audit logger:
- Is async so it can write to remote storage
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from splitledger.models.audit import AuditEvent, AuditEventBuilder
from splitledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("splitledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_recorded(
        self,
        expense_id: str,
        actor_id: str,
        amount: Decimal,
        group_id: Optional[str],
        split_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.expense_recorded(
            expense_id=expense_id,
            actor_id=actor_id,
            amount=amount,
            group_id=group_id,
            split_count=split_count,
        ))

    async def log_settlement_recorded(
        self,
        settlement_id: str,
        actor_id: str,
        paid_by: str,
        received_by: str,
        amount: Decimal,
        group_id: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.settlement_recorded(
            settlement_id=settlement_id,
            actor_id=actor_id,
            paid_by=paid_by,
            received_by=received_by,
            amount=amount,
            group_id=group_id,
        ))

    async def log_validation_failed(
        self,
        entity_type: str,
        entity_id: str,
        actor_id: str,
        issues: list[dict],
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            issues=issues,
        ))

    async def log_invite_token_generated(self, group_id: str, actor_id: str) -> None:
        await self.log(AuditEventBuilder.invite_token_generated(group_id, actor_id))

    async def log_member_joined(
        self,
        group_id: str,
        actor_id: str,
        already_member: bool,
    ) -> None:
        await self.log(AuditEventBuilder.member_joined(group_id, actor_id, already_member))

    async def log_access_denied(
        self,
        actor_id: str,
        entity_type: str,
        entity_id: str,
        reason: str,
    ) -> None:
        """Log a rejected read or write."""
        await self.log(AuditEventBuilder.access_denied(
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            reason=reason,
        ))

    async def log_balances_computed(
        self,
        actor_id: str,
        total_balance: Decimal,
        counterparty_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.balances_computed(
            actor_id=actor_id,
            total_balance=total_balance,
            counterparty_count=counterparty_count,
        ))

    async def log_group_ledger_computed(
        self,
        group_id: str,
        actor_id: str,
        expense_count: int,
        settlement_count: int,
        debt_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.group_ledger_computed(
            group_id=group_id,
            actor_id=actor_id,
            expense_count=expense_count,
            settlement_count=settlement_count,
            debt_count=debt_count,
        ))

    async def log_reminder_sent(
        self,
        user_id: str,
        debt_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reminder_sent(user_id, debt_count, correlation_id))

    async def log_reminder_failed(
        self,
        user_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reminder_failed(user_id, error_message, correlation_id))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage call that failed; the caller still re-raises."""
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g. a reminder run)
    and pass it through all subsequent operations.
    """
    return uuid4()
