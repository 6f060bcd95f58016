"""Tests for the storage-backed query service."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from splitledger.audit import AuditLogger
from splitledger.errors import ForbiddenError, NotFoundError
from splitledger.models.audit import AuditEventType
from splitledger.queries import LedgerQueryService
from splitledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from tests.factories import D, make_expense, make_group, make_settlement, make_user


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def storage():
    users = [make_user("u1", "Ana"), make_user("u2", "Bo"), make_user("u3", "Cy"), make_user("u4", "Di")]
    groups = [
        make_group("g1", ["u1", "u2", "u3"], admin_ids=("u1",)),
        make_group("g2", ["u2", "u4"], admin_ids=("u4",)),
    ]
    expenses = [
        make_expense("u1", {"u1": "20", "u2": "20", "u3": "20"}, group_id="g1",
                     date=datetime(2024, 3, 5)),
        make_expense("u4", {"u2": "8"}, group_id="g2", date=datetime(2024, 4, 1)),
        make_expense("u1", {"u1": "15", "u2": "15"}, date=datetime(2024, 5, 10)),
        make_expense("u2", {"u1": "6"}, date=datetime(2024, 6, 11)),
        make_expense("u3", {"u1": "9"}, date=datetime(2023, 11, 2)),
    ]
    settlements = [
        make_settlement("u2", "u1", "10", group_id="g1", date=datetime(2024, 3, 6)),
        make_settlement("u2", "u1", "4", date=datetime(2024, 7, 1)),
    ]
    return InMemoryLedgerStorage(users, groups, expenses, settlements)


@pytest.fixture
def service(storage, audit_storage):
    return LedgerQueryService(storage, AuditLogger(audit_storage))


class TestUserBalancesQuery:
    """Tests for one-to-one balances through storage."""

    def test_balances_with_names(self, service):
        """Balances only use one-to-one rows and resolve names."""
        balances = asyncio.run(service.get_user_balances("u1"))

        # u2: owes 15, u1 owes back 6, u2 paid 4 -> u2 owes 5
        # u3: u1 owes 9, so u1 owes 6 + 9 in total
        assert balances.you_are_owed == D(11)
        assert balances.you_owe == D(15)
        assert [(c.name, c.amount) for c in balances.owe_details.you_are_owed_by] == [("Bo", D(5))]
        assert [(c.name, c.amount) for c in balances.owe_details.you_owe] == [("Cy", D(9))]

    def test_user_without_records(self, service):
        """A user without one-to-one rows gets zeros."""
        balances = asyncio.run(service.get_user_balances("u4"))
        assert balances.total_balance == D(0)
        assert balances.owe_details.you_owe == []

    def test_balances_are_audited(self, service, audit_storage):
        """Each computation leaves an audit event."""
        asyncio.run(service.get_user_balances("u1"))
        assert [e.event_type for e in audit_storage.events] == [AuditEventType.BALANCES_COMPUTED]


class TestGroupQueries:
    """Tests for group level queries."""

    def test_group_ledger(self, service):
        """Members see the simplified group ledger."""
        ledger = asyncio.run(service.get_group_expenses("g1", "u3"))

        assert [(d.debtor_id, d.creditor_id, d.amount) for d in ledger.debts] == [
            ("u2", "u1", D(10)),
            ("u3", "u1", D(20)),
        ]
        assert ledger.balance_for("u1").total_balance == D(30)
        assert ledger.user_lookup["u2"].name == "Bo"

    def test_non_member_forbidden_and_audited(self, service, audit_storage):
        """Outsiders are refused before any rows are read."""
        with pytest.raises(ForbiddenError):
            asyncio.run(service.get_group_expenses("g1", "u4"))
        assert audit_storage.events[-1].event_type == AuditEventType.ACCESS_DENIED
        assert audit_storage.events[-1].actor_id == "u4"

    def test_missing_group(self, service):
        """Unknown group ids are not found."""
        with pytest.raises(NotFoundError):
            asyncio.run(service.get_group_expenses("nope", "u1"))

    def test_user_groups(self, service):
        """Each of the user's groups carries the user's balance."""
        summaries = asyncio.run(service.get_user_groups("u2"))
        assert [(s.id, s.balance) for s in summaries] == [("g1", D(-10)), ("g2", D(-8))]

    def test_group_list_without_selection(self, service):
        """Without a group id only the list is returned."""
        view = asyncio.run(service.get_group_or_members("u1"))
        assert [g.id for g in view.groups] == ["g1"]
        assert view.selected_group is None
        assert view.selected_members == []

    def test_group_members_of_selection(self, service):
        """Selecting a group adds its member details."""
        view = asyncio.run(service.get_group_or_members("u2", "g2"))
        assert view.selected_group.id == "g2"
        assert [(m.id, m.name, m.role.value) for m in view.selected_members] == [
            ("u2", "Bo", "member"),
            ("u4", "Di", "admin"),
        ]

    def test_selected_group_must_be_users(self, service):
        """Selecting a group the user is not part of fails."""
        with pytest.raises(NotFoundError):
            asyncio.run(service.get_group_or_members("u1", "g2"))


class TestPairQuery:
    """Tests for the history between two users."""

    def test_between_users(self, service):
        """Only one-to-one rows between the two, newest first."""
        pair = asyncio.run(service.get_expenses_between_users("u1", "u2"))

        assert pair.other_user.name == "Bo"
        assert [e.date.month for e in pair.expenses] == [6, 5]
        assert len(pair.settlements) == 1
        assert pair.balance == D(5)

    def test_unknown_other_user(self, service):
        """The other user must exist."""
        with pytest.raises(NotFoundError):
            asyncio.run(service.get_expenses_between_users("u1", "ghost"))


class TestSpendingQueries:
    """Tests for spending totals through storage."""

    def test_total_spent(self, service):
        """Shares of the year, group and one-to-one."""
        assert asyncio.run(service.get_total_spent("u1", 2024)) == D(41)
        assert asyncio.run(service.get_total_spent("u1", 2023)) == D(9)

    def test_monthly_spending(self, service):
        """Twelve months with the user's shares."""
        months = asyncio.run(service.get_monthly_spending("u1", 2024))
        assert len(months) == 12
        assert months[2].total == D(20)
        assert months[4].total == D(15)
        assert months[5].total == D(6)

    def test_offset_aware_dates(self):
        """Expenses stored with a UTC offset count in the right year and month."""
        storage = InMemoryLedgerStorage(expenses=[
            make_expense("u2", {"u1": "8"}, date=datetime(2024, 3, 5, tzinfo=timezone.utc)),
            make_expense(
                "u2",
                {"u1": "2"},
                date=datetime(2025, 1, 1, 1, 30, tzinfo=timezone(timedelta(hours=2))),
            ),
        ])
        service = LedgerQueryService(storage)

        assert asyncio.run(service.get_total_spent("u1", 2024)) == D(10)
        months = asyncio.run(service.get_monthly_spending("u1", 2024))
        assert months[2].total == D(8)
        assert months[11].total == D(2)
