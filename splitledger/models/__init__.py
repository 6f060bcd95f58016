"""
Data Models Package

This package contains all Pydantic models used by splitledger.
Stored records live in `ledger`, derived balances in `balances`.
"""

from splitledger.models.ledger import (
    Expense,
    Group,
    MemberRole,
    Membership,
    Settlement,
    Split,
    User,
    ValidationIssue,
    ValidationResult,
    new_record_id,
)
from splitledger.models.balances import (
    CounterpartyBalance,
    DirectedDebt,
    GroupBalanceSummary,
    GroupLedger,
    GroupMemberBalance,
    GroupMembersView,
    GroupSummary,
    MemberDetail,
    MonthlyTotal,
    NetDebt,
    OutstandingDebt,
    OwedByEntry,
    OweDetails,
    OwesEntry,
    PairBalance,
    ReminderMessage,
    ReminderOutcome,
    ReminderRunResult,
    UserBalances,
    UserDebtReport,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger records
    "Expense",
    "Group",
    "MemberRole",
    "Membership",
    "Settlement",
    "Split",
    "User",
    "ValidationIssue",
    "ValidationResult",
    "new_record_id",
    # Derived balances
    "CounterpartyBalance",
    "DirectedDebt",
    "GroupBalanceSummary",
    "GroupLedger",
    "GroupMemberBalance",
    "GroupMembersView",
    "GroupSummary",
    "MemberDetail",
    "MonthlyTotal",
    "NetDebt",
    "OutstandingDebt",
    "OwedByEntry",
    "OweDetails",
    "OwesEntry",
    "PairBalance",
    "ReminderMessage",
    "ReminderOutcome",
    "ReminderRunResult",
    "UserBalances",
    "UserDebtReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
