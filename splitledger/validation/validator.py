"""
Write-Side Validation

DESIGN DECISION: The balance engine trusts its input (split sums,
membership). That trust is earned here: every expense and settlement is
validated before it is saved.

Checks:
- Amounts are positive
- Split amounts add up exactly to the expense total
- A user appears at most once in the splits
- Group records only reference group members
- Nobody settles with themselves

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the caller can reject the write.
"""

from typing import Optional

from splitledger.balances.primitives import ZERO
from splitledger.models.ledger import (
    Expense,
    Group,
    Settlement,
    ValidationIssue,
    ValidationResult,
)


class LedgerValidator:
    """Validates expenses and settlements before they are persisted."""

    def validate_expense(
        self,
        expense: Expense,
        group: Optional[Group] = None,
    ) -> ValidationResult:
        """
        Validate an expense.

        Args:
            expense: The expense to check
            group: The expense's group; required when expense.group_id is set
        """
        issues = []

        if expense.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Expense amount must be greater than zero",
                severity="error",
            ))

        if not expense.splits:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="missing",
                message="Expense must be split across at least one participant",
                severity="error",
            ))
        else:
            issues.extend(self._check_splits(expense))

        if expense.group_id is not None:
            issues.extend(self._check_expense_membership(expense, group))

        return ValidationResult(record_id=expense.id, issues=issues)

    def _check_splits(self, expense: Expense) -> list[ValidationIssue]:
        issues = []

        user_ids = [split.user_id for split in expense.splits]
        duplicates = sorted({uid for uid in user_ids if user_ids.count(uid) > 1})
        if duplicates:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="duplicate_participant",
                message=f"Participants appear more than once: {', '.join(duplicates)}",
                severity="error",
            ))

        split_total = sum((split.amount for split in expense.splits), ZERO)
        if split_total != expense.amount:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="sum_mismatch",
                message=(
                    f"Split amounts add up to {split_total}, "
                    f"but the expense total is {expense.amount}"
                ),
                severity="error",
            ))

        if all(split.user_id == expense.paid_by_user_id for split in expense.splits):
            issues.append(ValidationIssue(
                field="splits",
                issue_type="no_debt",
                message="Only the payer is part of this expense; nobody will owe anything",
                severity="warning",
            ))

        return issues

    def _check_expense_membership(
        self,
        expense: Expense,
        group: Optional[Group],
    ) -> list[ValidationIssue]:
        if group is None or group.id != expense.group_id:
            return [ValidationIssue(
                field="group_id",
                issue_type="not_found",
                message=f"Group not found: {expense.group_id}",
                severity="error",
            )]

        issues = []
        if not group.is_member(expense.paid_by_user_id):
            issues.append(ValidationIssue(
                field="paid_by_user_id",
                issue_type="not_a_member",
                message=f"Payer {expense.paid_by_user_id} is not a member of the group",
                severity="error",
            ))

        outsiders = [s.user_id for s in expense.splits if not group.is_member(s.user_id)]
        if outsiders:
            issues.append(ValidationIssue(
                field="splits",
                issue_type="not_a_member",
                message=f"Participants are not members of the group: {', '.join(outsiders)}",
                severity="error",
            ))
        return issues

    def validate_settlement(
        self,
        settlement: Settlement,
        group: Optional[Group] = None,
    ) -> ValidationResult:
        """Validate a settlement; `group` is required for group settlements."""
        issues = []

        if settlement.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Settlement amount must be greater than zero",
                severity="error",
            ))

        if settlement.paid_by_user_id == settlement.received_by_user_id:
            issues.append(ValidationIssue(
                field="received_by_user_id",
                issue_type="self_settlement",
                message="A user cannot settle up with themselves",
                severity="error",
            ))

        if settlement.group_id is not None:
            if group is None or group.id != settlement.group_id:
                issues.append(ValidationIssue(
                    field="group_id",
                    issue_type="not_found",
                    message=f"Group not found: {settlement.group_id}",
                    severity="error",
                ))
            else:
                for field in ("paid_by_user_id", "received_by_user_id"):
                    user_id = getattr(settlement, field)
                    if not group.is_member(user_id):
                        issues.append(ValidationIssue(
                            field=field,
                            issue_type="not_a_member",
                            message=f"{user_id} is not a member of the group",
                            severity="error",
                        ))

        return ValidationResult(record_id=settlement.id, issues=issues)
