"""
Derived Balance Models

Everything in this module is computed from expenses and settlements on
every query. None of it is persisted.

Amounts here are exact Decimals. Rounding for display happens in
splitledger.balances.primitives.format_amount and nowhere else.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from splitledger.models.ledger import Expense, MemberRole, Settlement


# =============================================================================
# PRIMITIVE CONTRIBUTIONS
# =============================================================================

class DirectedDebt(BaseModel):
    """
    `debtor_id` owes `creditor_id` `amount`.

    A negative amount is a credit in the same direction (used for
    settlements), never a debt in the opposite direction.
    """
    model_config = ConfigDict(frozen=True)

    debtor_id: str
    creditor_id: str
    amount: Decimal


class NetDebt(BaseModel):
    """
    Result of netting the two directed debts of one pair.

    At most one of `a_owes_b` / `b_owes_a` is non-zero and both are
    non-negative.
    """
    model_config = ConfigDict(frozen=True)

    party_a: str
    party_b: str
    a_owes_b: Decimal = Field(ge=0)
    b_owes_a: Decimal = Field(ge=0)

    @property
    def is_settled(self) -> bool:
        return self.a_owes_b == 0 and self.b_owes_a == 0

    @property
    def debtor_id(self) -> Optional[str]:
        if self.a_owes_b > 0:
            return self.party_a
        if self.b_owes_a > 0:
            return self.party_b
        return None

    @property
    def creditor_id(self) -> Optional[str]:
        if self.a_owes_b > 0:
            return self.party_b
        if self.b_owes_a > 0:
            return self.party_a
        return None

    @property
    def amount(self) -> Decimal:
        """Magnitude of the net debt, whatever its direction."""
        return self.a_owes_b if self.a_owes_b > 0 else self.b_owes_a


# =============================================================================
# USER BALANCES (one-to-one)
# =============================================================================

class CounterpartyBalance(BaseModel):
    """Net position with one counterparty."""

    user_id: str
    name: str = "Unknown"
    image_url: Optional[str] = None
    amount: Decimal = Field(ge=0)


class OweDetails(BaseModel):
    """Per-counterparty breakdown, largest amounts first."""

    you_owe: list[CounterpartyBalance] = Field(default_factory=list)
    you_are_owed_by: list[CounterpartyBalance] = Field(default_factory=list)


class UserBalances(BaseModel):
    """A user's one-to-one balances."""

    you_owe: Decimal = Decimal("0")
    you_are_owed: Decimal = Decimal("0")
    total_balance: Decimal = Decimal("0")
    owe_details: OweDetails = Field(default_factory=OweDetails)


class PairBalance(BaseModel):
    """
    One-to-one history between the current user and another user.

    `balance` is from the current user's point of view:
    positive means the other user owes them.
    """

    other_user: "MemberDetail"
    expenses: list[Expense] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)
    balance: Decimal = Decimal("0")


# =============================================================================
# GROUP LEDGER
# =============================================================================

class MemberDetail(BaseModel):
    """A group member as shown on the group page."""

    id: str
    name: str = "Unknown"
    email: Optional[str] = None
    image_url: Optional[str] = None
    role: Optional[MemberRole] = None


class OwesEntry(BaseModel):
    """Member owes `to` the given amount."""

    to: str
    amount: Decimal = Field(gt=0)


class OwedByEntry(BaseModel):
    """Member is owed the given amount by `from`."""
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    amount: Decimal = Field(gt=0)


class GroupMemberBalance(MemberDetail):
    """A member's aggregate position inside a group."""

    total_balance: Decimal = Decimal("0")
    owes: list[OwesEntry] = Field(default_factory=list)
    owed_by: list[OwedByEntry] = Field(default_factory=list)


class GroupSummary(BaseModel):
    """Group header information."""

    id: str
    name: str
    description: Optional[str] = None
    invite_token: Optional[str] = None
    created_by: Optional[str] = None
    member_count: int = Field(default=0, ge=0)


class GroupLedger(BaseModel):
    """
    Fully simplified ledger of a group.

    `debts` holds the simplified pairwise edges (positive amounts only),
    in canonical pair order.
    """

    group: GroupSummary
    members: list[MemberDetail] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)
    balances: list[GroupMemberBalance] = Field(default_factory=list)
    debts: list[DirectedDebt] = Field(default_factory=list)
    user_lookup: dict[str, MemberDetail] = Field(default_factory=dict)

    def balance_for(self, user_id: str) -> Optional[GroupMemberBalance]:
        for balance in self.balances:
            if balance.id == user_id:
                return balance
        return None


class GroupBalanceSummary(GroupSummary):
    """A group in the dashboard list, with the user's signed balance."""

    balance: Decimal = Decimal("0")


class GroupMembersView(BaseModel):
    """The user's groups, plus member details of one selected group."""

    selected_group: Optional[GroupSummary] = None
    selected_members: list[MemberDetail] = Field(default_factory=list)
    groups: list[GroupSummary] = Field(default_factory=list)


# =============================================================================
# SPENDING
# =============================================================================

class MonthlyTotal(BaseModel):
    """Sum of a user's shares for one calendar month."""

    month: date = Field(..., description="First day of the month")
    total: Decimal = Decimal("0")


# =============================================================================
# REMINDERS
# =============================================================================

class OutstandingDebt(BaseModel):
    """Something a user still owes someone."""

    user_id: str = Field(..., description="Who is owed")
    name: str = "Unknown"
    amount: Decimal = Field(gt=0)
    group_id: Optional[str] = None


class UserDebtReport(BaseModel):
    """All outstanding debts of one user."""

    user_id: str
    name: str
    email: str
    debts: list[OutstandingDebt] = Field(default_factory=list)


class ReminderMessage(BaseModel):
    """A rendered reminder, ready for an external sender."""

    user_id: str
    to: str
    subject: str
    html: str


class ReminderOutcome(BaseModel):
    user_id: str
    success: Optional[bool] = None
    skipped: bool = False
    error: Optional[str] = None


class ReminderRunResult(BaseModel):
    """Summary of one reminder run."""

    executed_at: datetime = Field(default_factory=datetime.utcnow)
    processed: int = Field(default=0, ge=0)
    successes: int = Field(default=0, ge=0)
    failures: int = Field(default=0, ge=0)
    outcomes: list[ReminderOutcome] = Field(default_factory=list)


PairBalance.model_rebuild()
