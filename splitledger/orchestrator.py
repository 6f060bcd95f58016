"""
Main Orchestrator for Splitledger

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger writes (record → validate → save → audit)
2. Group invites (generate token → share → join)
3. Payment reminders (collect debts → render → send → report)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No record persists without passing validation
- No group write without membership
- Every step is audited

Message delivery is injected; this module only renders reminders.
"""

import asyncio
import html
import secrets
import string
from datetime import datetime
from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog

from splitledger.audit import AuditLogger, create_correlation_id
from splitledger.balances import (
    compute_group_totals_and_ledger,
    compute_user_balances,
    format_amount,
)
from splitledger.balances.netting import DebtLedger
from splitledger.config import get_settings
from splitledger.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationFailedError,
)
from splitledger.models.balances import (
    OutstandingDebt,
    ReminderMessage,
    ReminderOutcome,
    ReminderRunResult,
    UserDebtReport,
)
from splitledger.models.ledger import (
    Expense,
    Group,
    MemberRole,
    Membership,
    Settlement,
    User,
    ValidationResult,
)
from splitledger.queries import LedgerQueryService
from splitledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from splitledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)

INVITE_TOKEN_ALPHABET = string.ascii_letters + string.digits + "_-"

ReminderSender = Callable[[ReminderMessage], Awaitable[None]]


class LedgerWriteFlow:
    """
    Orchestrates expense and settlement writes.

    Flow:
    1. Permission → group writes require membership,
       one-to-one writes require the current user to be involved
    2. Validate → split sums, membership, amounts
    3. Save → Persist to storage
    4. Audit

    Invalid records are NEVER saved.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._audit_logger = audit_logger

    async def _load_group(
        self,
        group_id: Optional[str],
        entity_type: str,
        entity_id: str,
        current_user_id: str,
    ) -> Optional[Group]:
        if group_id is None:
            return None

        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        if not group.is_member(current_user_id):
            await self._deny(current_user_id, entity_type, entity_id, "not a member of this group")
            raise ForbiddenError("You are not a member of this group")
        return group

    async def _deny(self, actor_id: str, entity_type: str, entity_id: str, reason: str) -> None:
        if self._audit_logger:
            await self._audit_logger.log_access_denied(
                actor_id=actor_id,
                entity_type=entity_type,
                entity_id=entity_id,
                reason=reason,
            )

    async def _storage_failed(self, operation: str, error: StorageError, actor_id: str) -> None:
        logger.error("storage_write_failed", operation=operation, actor_id=actor_id, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                actor_id=actor_id,
            )

    async def _reject_invalid(
        self,
        result: ValidationResult,
        entity_type: str,
        current_user_id: str,
    ) -> None:
        if not result.has_errors:
            return

        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                entity_type=entity_type,
                entity_id=result.record_id,
                actor_id=current_user_id,
                issues=[issue.model_dump() for issue in result.issues],
            )
        raise ValidationFailedError(
            f"{entity_type.capitalize()} failed validation with {result.error_count} errors",
            result,
        )

    async def record_expense(self, expense: Expense, current_user_id: str) -> Expense:
        """
        Validate and save an expense on behalf of the current user.

        Raises:
            NotFoundError: the expense's group does not exist
            ForbiddenError: the current user may not write this expense
            ValidationFailedError: the expense is invalid (nothing saved)
        """
        group = await self._load_group(expense.group_id, "expense", expense.id, current_user_id)
        if group is None and not expense.involves(current_user_id):
            await self._deny(current_user_id, "expense", expense.id, "not part of this expense")
            raise ForbiddenError("You are not part of this expense")

        expense = expense.model_copy(update={"created_by": current_user_id})
        await self._reject_invalid(
            self._validator.validate_expense(expense, group),
            "expense",
            current_user_id,
        )

        try:
            await self._storage.save_expense(expense)
        except StorageError as e:
            await self._storage_failed("save_expense", e, current_user_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_recorded(
                expense_id=expense.id,
                actor_id=current_user_id,
                amount=expense.amount,
                group_id=expense.group_id,
                split_count=len(expense.splits),
            )
        return expense

    async def record_settlement(self, settlement: Settlement, current_user_id: str) -> Settlement:
        """
        Validate and save a settlement on behalf of the current user.

        Raises:
            NotFoundError: the settlement's group does not exist
            ForbiddenError: the current user may not write this settlement
            ValidationFailedError: the settlement is invalid (nothing saved)
        """
        group = await self._load_group(
            settlement.group_id, "settlement", settlement.id, current_user_id
        )
        if group is None and not settlement.involves(current_user_id):
            await self._deny(current_user_id, "settlement", settlement.id, "not part of this settlement")
            raise ForbiddenError("You are not part of this settlement")

        settlement = settlement.model_copy(update={"created_by": current_user_id})
        await self._reject_invalid(
            self._validator.validate_settlement(settlement, group),
            "settlement",
            current_user_id,
        )

        try:
            await self._storage.save_settlement(settlement)
        except StorageError as e:
            await self._storage_failed("save_settlement", e, current_user_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_settlement_recorded(
                settlement_id=settlement.id,
                actor_id=current_user_id,
                paid_by=settlement.paid_by_user_id,
                received_by=settlement.received_by_user_id,
                amount=settlement.amount,
                group_id=settlement.group_id,
            )
        return settlement


class GroupInviteFlow:
    """
    Orchestrates group invite links.

    Only admins can (re)generate a group's token. Anyone holding the
    token can join; following the link twice is harmless.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        token_length: Optional[int] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._token_length = token_length or get_settings().ledger.invite_token_length

    def _new_token(self) -> str:
        return "".join(
            secrets.choice(INVITE_TOKEN_ALPHABET) for _ in range(self._token_length)
        )

    async def generate_invite_token(self, group_id: str, current_user_id: str) -> str:
        """
        Replace the group's invite token and return the new one.

        Raises:
            NotFoundError: group does not exist
            ForbiddenError: current user is not an admin of the group
        """
        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")

        if not group.is_admin(current_user_id):
            if self._audit_logger:
                await self._audit_logger.log_access_denied(
                    actor_id=current_user_id,
                    entity_type="group",
                    entity_id=group_id,
                    reason="only admins can generate invite links",
                )
            raise ForbiddenError("Only group admins can generate invite links")

        group.invite_token = self._new_token()
        await self._storage.save_group(group)

        if self._audit_logger:
            await self._audit_logger.log_invite_token_generated(group_id, current_user_id)
        return group.invite_token

    async def join_group_by_token(self, token: str, current_user_id: str) -> str:
        """
        Add the current user to the group behind `token`.

        Returns:
            The group id (also when the user was already a member)

        Raises:
            InvalidStateError: no group has this token
        """
        group = await self._storage.get_group_by_invite_token(token)
        if group is None:
            raise InvalidStateError("Invalid invite link")

        already_member = group.is_member(current_user_id)
        if not already_member:
            group.members.append(Membership(
                user_id=current_user_id,
                role=MemberRole.MEMBER,
                joined_at=datetime.utcnow(),
            ))
            await self._storage.save_group(group)

        if self._audit_logger:
            await self._audit_logger.log_member_joined(group.id, current_user_id, already_member)
        return group.id


class PaymentReminderFlow:
    """
    Orchestrates payment reminders.

    Flow:
    1. Collect → every user's one-to-one and simplified group debts
    2. Render → subject and HTML table per user with debts
    3. Send → injected async sender, one user at a time failing independently
    4. Report → processed / successes / failures

    Users without outstanding debts are skipped, never messaged.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        settings = get_settings()
        self._ledger_settings = settings.ledger
        self._reminder_settings = settings.reminders

    async def _group_ledgers(self) -> list[tuple[Group, DebtLedger]]:
        groups = await self._storage.list_groups()
        expense_lists, settlement_lists = await asyncio.gather(
            asyncio.gather(*(self._storage.list_group_expenses(g.id) for g in groups)),
            asyncio.gather(*(self._storage.list_group_settlements(g.id) for g in groups)),
        )
        ledgers = []
        for group, expenses, settlements in zip(groups, expense_lists, settlement_lists):
            _, ledger = compute_group_totals_and_ledger(group.member_ids, expenses, settlements)
            ledgers.append((group, ledger))
        return ledgers

    async def _direct_debts(self, user: User, users: dict[str, User]) -> list[OutstandingDebt]:
        expenses, settlements = await asyncio.gather(
            self._storage.list_direct_expenses_for_user(user.id),
            self._storage.list_direct_settlements_for_user(user.id),
        )
        balances = compute_user_balances(user.id, expenses, settlements, users)
        return [
            OutstandingDebt(
                user_id=entry.user_id,
                name=entry.name,
                amount=entry.amount,
            )
            for entry in balances.owe_details.you_owe
        ]

    async def find_users_with_outstanding_debts(self) -> list[UserDebtReport]:
        """Every user who owes someone, with what they owe and to whom."""
        users = await self._storage.list_users()
        users_by_id = {u.id: u for u in users}

        group_ledgers = await self._group_ledgers()
        direct_debts = await asyncio.gather(
            *(self._direct_debts(user, users_by_id) for user in users)
        )

        reports = []
        for user, debts in zip(users, direct_debts):
            for group, ledger in group_ledgers:
                if user.id not in ledger:
                    continue
                for creditor_id, amount in ledger.owes(user.id):
                    creditor = users_by_id.get(creditor_id)
                    debts.append(OutstandingDebt(
                        user_id=creditor_id,
                        name=creditor.name if creditor else "Unknown",
                        amount=amount,
                        group_id=group.id,
                    ))

            if debts:
                reports.append(UserDebtReport(
                    user_id=user.id,
                    name=user.name,
                    email=user.email,
                    debts=debts,
                ))
        return reports

    def build_reminder(self, report: UserDebtReport) -> Optional[ReminderMessage]:
        """Render the reminder for one user; None when nothing is owed."""
        if not report.debts:
            return None

        places = self._ledger_settings.decimal_places
        rounding = self._ledger_settings.rounding_mode
        currency = html.escape(self._ledger_settings.currency_code)

        rows = "".join(
            "<tr>"
            f"<td style=\"padding: 4px 8px;\">{html.escape(debt.name)}</td>"
            f"<td style=\"padding: 4px 8px;\">{currency} {format_amount(debt.amount, places, rounding)}</td>"
            "</tr>"
            for debt in report.debts
        )
        body = (
            f"<h2>{html.escape(self._reminder_settings.app_name)} Payment Reminder</h2>"
            f"<p>Hi {html.escape(report.name)}, you have the following pending payments:</p>"
            "<table cellspacing=\"0\" cellpadding=\"0\" border=\"1\" "
            "style=\"border-collapse: collapse;\">"
            "<thead><tr><th style=\"padding: 4px 8px;\">To</th>"
            "<th style=\"padding: 4px 8px;\">Amount</th></tr></thead>"
            f"<tbody>{rows}</tbody>"
            "</table>"
            "<p>Please settle up soon. Thanks!</p>"
        )

        return ReminderMessage(
            user_id=report.user_id,
            to=report.email,
            subject=self._reminder_settings.subject,
            html=body,
        )

    async def _remind(
        self,
        report: UserDebtReport,
        send: ReminderSender,
        correlation_id: UUID,
    ) -> ReminderOutcome:
        message = self.build_reminder(report)
        if message is None:
            return ReminderOutcome(user_id=report.user_id, skipped=True)

        try:
            await send(message)
        except Exception as e:
            logger.error("reminder_send_failed", user_id=report.user_id, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_reminder_failed(report.user_id, str(e), correlation_id)
            return ReminderOutcome(user_id=report.user_id, success=False, error=str(e))

        if self._audit_logger:
            await self._audit_logger.log_reminder_sent(
                report.user_id, len(report.debts), correlation_id
            )
        return ReminderOutcome(user_id=report.user_id, success=True)

    async def run(
        self,
        send: ReminderSender,
        correlation_id: Optional[UUID] = None,
    ) -> ReminderRunResult:
        """
        Send reminders to every user with outstanding debts.

        A failed send is reported in the result; it does not stop the run.
        A storage failure while collecting debts is audited and re-raised.
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            reports = await self.find_users_with_outstanding_debts()
        except StorageError as e:
            logger.error(
                "reminder_collection_failed",
                correlation_id=str(correlation_id),
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="find_users_with_outstanding_debts",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        outcomes = await asyncio.gather(
            *(self._remind(report, send, correlation_id) for report in reports)
        )

        result = ReminderRunResult(
            processed=len(outcomes),
            successes=sum(1 for o in outcomes if o.success is True),
            failures=sum(1 for o in outcomes if o.success is False),
            outcomes=list(outcomes),
        )
        logger.info(
            "reminder_run_completed",
            correlation_id=str(correlation_id),
            processed=result.processed,
            successes=result.successes,
            failures=result.failures,
        )
        return result


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerQueryService, LedgerWriteFlow, GroupInviteFlow, PaymentReminderFlow]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (query_service, write_flow, invite_flow, reminder_flow)
    """
    storage: LedgerStorageInterface
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            storage = InMemoryLedgerStorage()
            audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    return (
        LedgerQueryService(storage, audit_logger),
        LedgerWriteFlow(storage, audit_logger=audit_logger),
        GroupInviteFlow(storage, audit_logger=audit_logger),
        PaymentReminderFlow(storage, audit_logger=audit_logger),
    )
