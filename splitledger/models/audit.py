"""
Audit Models for splitledger

Every write and every permission failure in the ledger is logged.
This provides:
1. Traceability of who recorded which expense or settlement
2. Debugging information when balances look wrong
3. A record of invite links issued and redeemed

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Writes
    EXPENSE_RECORDED = "expense_recorded"
    SETTLEMENT_RECORDED = "settlement_recorded"
    VALIDATION_FAILED = "validation_failed"

    # Groups
    INVITE_TOKEN_GENERATED = "invite_token_generated"
    MEMBER_JOINED = "member_joined"

    # Reads
    BALANCES_COMPUTED = "balances_computed"
    GROUP_LEDGER_COMPUTED = "group_ledger_computed"
    ACCESS_DENIED = "access_denied"

    # Reminders
    REMINDER_SENT = "reminder_sent"
    REMINDER_FAILED = "reminder_failed"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'settlement', 'group')"
    )
    entity_id: Optional[str] = None

    # Who did it
    actor_id: Optional[str] = Field(
        default=None,
        description="User that triggered the event"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one reminder run)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_recorded(expense_id, user_id, ...)
        event = AuditEventBuilder.access_denied(user_id, "group", group_id, reason)
    """

    @staticmethod
    def expense_recorded(
        expense_id: str,
        actor_id: str,
        amount: Decimal,
        group_id: Optional[str],
        split_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            entity_type="expense",
            entity_id=expense_id,
            actor_id=actor_id,
            description=f"Expense recorded: {amount} across {split_count} splits",
            details={
                "amount": str(amount),
                "group_id": group_id,
                "split_count": split_count,
            },
        )

    @staticmethod
    def settlement_recorded(
        settlement_id: str,
        actor_id: str,
        paid_by: str,
        received_by: str,
        amount: Decimal,
        group_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            entity_type="settlement",
            entity_id=settlement_id,
            actor_id=actor_id,
            description=f"Settlement recorded: {paid_by} paid {received_by} {amount}",
            details={
                "paid_by_user_id": paid_by,
                "received_by_user_id": received_by,
                "amount": str(amount),
                "group_id": group_id,
            },
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        entity_id: str,
        actor_id: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            description=f"{entity_type.capitalize()} rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def invite_token_generated(group_id: str, actor_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVITE_TOKEN_GENERATED,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description="Group invite token regenerated",
        )

    @staticmethod
    def member_joined(group_id: str, actor_id: str, already_member: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_JOINED,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description=(
                "User followed invite link (already a member)"
                if already_member
                else "User joined group via invite link"
            ),
            details={"already_member": already_member},
        )

    @staticmethod
    def access_denied(
        actor_id: str,
        entity_type: str,
        entity_id: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            description=f"Access denied: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def balances_computed(
        actor_id: str,
        total_balance: Decimal,
        counterparty_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="user",
            entity_id=actor_id,
            actor_id=actor_id,
            description=f"User balances computed for {counterparty_count} counterparties",
            details={"total_balance": str(total_balance)},
        )

    @staticmethod
    def group_ledger_computed(
        group_id: str,
        actor_id: str,
        expense_count: int,
        settlement_count: int,
        debt_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_LEDGER_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="group",
            entity_id=group_id,
            actor_id=actor_id,
            description=f"Group ledger simplified to {debt_count} debts",
            details={
                "expense_count": expense_count,
                "settlement_count": settlement_count,
                "debt_count": debt_count,
            },
        )

    @staticmethod
    def reminder_sent(user_id: str, debt_count: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_SENT,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description=f"Payment reminder sent for {debt_count} debts",
            details={"debt_count": debt_count},
        )

    @staticmethod
    def reminder_failed(user_id: str, error_message: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDER_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="user",
            entity_id=user_id,
            correlation_id=correlation_id,
            description="Payment reminder could not be sent",
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Storage failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
