"""
Core Ledger Records for splitledger

These models define the strict schemas for the rows the ledger reads:
users, groups, expenses and settlements. They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal from the first parse
3. Be serializable for storage and logging

DESIGN DECISION: Expenses and settlements are immutable once created.
Balances are never stored on them; they are recomputed from these rows
on every query.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def new_record_id() -> str:
    """Generate an opaque record identifier."""
    return uuid4().hex


def to_naive_utc(value: datetime) -> datetime:
    """
    Convert an offset-aware datetime to naive UTC.

    All ledger timestamps are naive UTC so they compare with each other
    and with year boundaries.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS
# =============================================================================

class MemberRole(str, Enum):
    """
    Role of a user inside a group.

    Only admins may regenerate the group's invite token.
    """
    ADMIN = "admin"
    MEMBER = "member"


# =============================================================================
# PEOPLE AND GROUPS
# =============================================================================

class User(BaseModel):
    """
    A person known to the ledger.

    Users are owned by the surrounding product (authentication);
    the ledger only reads them to put names on balances.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_record_id,
        min_length=1,
        description="Unique user ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Email address"
    )
    image_url: Optional[str] = Field(
        default=None,
        description="Avatar reference"
    )


class Membership(BaseModel):
    """A user's membership in a group."""

    user_id: str = Field(..., min_length=1)
    role: MemberRole = Field(default=MemberRole.MEMBER)
    joined_at: datetime = Field(default_factory=datetime.utcnow)


class Group(BaseModel):
    """
    A group of people sharing expenses.

    Membership order is preserved: it is the order members are
    reported in on the group ledger.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_record_id,
        min_length=1,
        description="Unique group ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Group name"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=1000
    )
    members: list[Membership] = Field(default_factory=list)
    invite_token: Optional[str] = Field(
        default=None,
        description="Opaque token that lets a user join the group"
    )
    created_by: Optional[str] = Field(
        default=None,
        description="User ID of the group creator"
    )

    @model_validator(mode='after')
    def validate_unique_members(self) -> 'Group':
        """A user can only be a member once."""
        seen = set()
        for membership in self.members:
            if membership.user_id in seen:
                raise ValueError(f"Duplicate group member: {membership.user_id}")
            seen.add(membership.user_id)
        return self

    @property
    def member_ids(self) -> list[str]:
        """Member user IDs in membership order."""
        return [m.user_id for m in self.members]

    def get_membership(self, user_id: str) -> Optional[Membership]:
        for membership in self.members:
            if membership.user_id == user_id:
                return membership
        return None

    def is_member(self, user_id: str) -> bool:
        return self.get_membership(user_id) is not None

    def is_admin(self, user_id: str) -> bool:
        membership = self.get_membership(user_id)
        return membership is not None and membership.role == MemberRole.ADMIN


# =============================================================================
# MONEY MOVEMENTS
# =============================================================================

class Split(BaseModel):
    """
    One participant's share of a single expense.

    A split marked `paid` has already been squared up and
    no longer contributes debt.
    """

    user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Share of the expense owed by this participant"
    )
    paid: bool = Field(default=False)


class Expense(BaseModel):
    """
    An expense paid by one user and split across participants.

    CRITICAL: an expense without group_id is a one-to-one expense.
    The sum of split amounts is expected to equal `amount`; that is
    checked on the write side (LedgerValidator), not here, so that
    historic rows can always be read back.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id, min_length=1)
    group_id: Optional[str] = Field(
        default=None,
        description="Group the expense belongs to; None for one-to-one"
    )
    paid_by_user_id: str = Field(..., min_length=1)
    date: datetime = Field(default_factory=datetime.utcnow)
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Total amount of the expense"
    )
    description: str = Field(default="", max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)
    splits: list[Split] = Field(default_factory=list)
    created_by: Optional[str] = None

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @property
    def is_direct(self) -> bool:
        """True for one-to-one expenses."""
        return self.group_id is None

    def split_for(self, user_id: str) -> Optional[Split]:
        """The given user's split, if they have one."""
        for split in self.splits:
            if split.user_id == user_id:
                return split
        return None

    def involves(self, user_id: str) -> bool:
        return self.paid_by_user_id == user_id or self.split_for(user_id) is not None


class Settlement(BaseModel):
    """
    Money that has actually changed hands between two users.

    A settlement reduces the payer's debt to the receiver.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_record_id, min_length=1)
    group_id: Optional[str] = None
    paid_by_user_id: str = Field(..., min_length=1)
    received_by_user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    date: datetime = Field(default_factory=datetime.utcnow)
    note: Optional[str] = Field(default=None, max_length=500)
    created_by: Optional[str] = None

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @property
    def is_direct(self) -> bool:
        return self.group_id is None

    def involves(self, user_id: str) -> bool:
        return user_id in (self.paid_by_user_id, self.received_by_user_id)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'sum_mismatch', 'not_a_member')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating an expense or settlement before it is saved."""

    record_id: str = Field(
        ...,
        description="ID of the record being validated"
    )
    validated_at: datetime = Field(default_factory=datetime.utcnow)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors
