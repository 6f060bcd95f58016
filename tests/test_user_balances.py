"""Tests for one-to-one user balances."""

from splitledger.balances import compute_pair_balance, compute_user_balances
from tests.factories import D, make_expense, make_settlement, make_user


class TestComputeUserBalances:
    """Tests for the one-to-one balance aggregator."""

    def test_no_records(self):
        """A user with no one-to-one activity has nothing owed either way."""
        balances = compute_user_balances("u1", [], [])
        assert balances.you_owe == D(0)
        assert balances.you_are_owed == D(0)
        assert balances.total_balance == D(0)
        assert balances.owe_details.you_owe == []
        assert balances.owe_details.you_are_owed_by == []

    def test_owed_and_owing(self):
        """Debts in both directions land in the right lists."""
        expenses = [
            make_expense("u1", {"u1": "10", "u2": "10", "u3": "10"}),
            make_expense("u2", {"u1": "25", "u2": "25"}),
        ]
        balances = compute_user_balances("u1", expenses, [])

        assert balances.you_owe == D(25)
        assert balances.you_are_owed == D(20)
        assert balances.total_balance == D(-5)
        assert [(c.user_id, c.amount) for c in balances.owe_details.you_owe] == [("u2", D(15))]
        assert [(c.user_id, c.amount) for c in balances.owe_details.you_are_owed_by] == [
            ("u3", D(10)),
        ]

    def test_settlement_paid_reduces_you_owe(self):
        """Paying someone back reduces what the user owes."""
        expenses = [
            make_expense("u1", {"u1": "10", "u2": "10", "u3": "10"}),
            make_expense("u2", {"u1": "25", "u2": "25"}),
        ]
        settlements = [make_settlement("u1", "u2", "15")]
        balances = compute_user_balances("u1", expenses, settlements)

        assert balances.you_owe == D(10)
        assert balances.total_balance == D(10)
        # Net zero with u2 drops them from both lists
        assert balances.owe_details.you_owe == []
        assert [c.user_id for c in balances.owe_details.you_are_owed_by] == ["u3"]

    def test_settlement_received_reduces_you_are_owed(self):
        """Being paid back reduces what the user is owed."""
        expenses = [make_expense("u1", {"u1": "30", "u2": "30"})]
        settlements = [make_settlement("u2", "u1", "20")]
        balances = compute_user_balances("u1", expenses, settlements)

        assert balances.you_are_owed == D(10)
        assert [(c.user_id, c.amount) for c in balances.owe_details.you_are_owed_by] == [
            ("u2", D(10)),
        ]

    def test_self_settlement_skipped(self):
        """A settlement from a user to themselves never makes them their own counterparty."""
        expenses = [make_expense("u2", {"u1": "8", "u2": "8"})]
        settlements = [make_settlement("u1", "u1", "5")]
        balances = compute_user_balances("u1", expenses, settlements)

        assert balances.you_owe == D(8)
        assert balances.you_are_owed == D(0)
        assert balances.total_balance == D(-8)
        assert [c.user_id for c in balances.owe_details.you_owe] == ["u2"]
        assert balances.owe_details.you_are_owed_by == []

        alone = compute_user_balances("u1", [], settlements)
        assert (alone.you_owe, alone.you_are_owed) == (D(0), D(0))
        assert alone.owe_details.you_owe == []
        assert alone.owe_details.you_are_owed_by == []

    def test_sorted_largest_first(self):
        """Breakdown lists are sorted by amount, descending."""
        expenses = [make_expense("u1", {"u2": "5", "u3": "30", "u4": "12"})]
        balances = compute_user_balances("u1", expenses, [])
        assert [c.user_id for c in balances.owe_details.you_are_owed_by] == ["u3", "u4", "u2"]

    def test_ties_keep_first_seen_order(self):
        """Equal amounts keep the order counterparties were first seen."""
        expenses = [make_expense("u1", {"u3": "5", "u2": "5"})]
        balances = compute_user_balances("u1", expenses, [])
        assert [c.user_id for c in balances.owe_details.you_are_owed_by] == ["u3", "u2"]

    def test_group_records_ignored(self):
        """Only one-to-one records count."""
        expenses = [make_expense("u1", {"u2": "50"}, group_id="g1")]
        settlements = [make_settlement("u2", "u1", "10", group_id="g1")]
        balances = compute_user_balances("u1", expenses, settlements)
        assert balances.total_balance == D(0)
        assert balances.owe_details.you_are_owed_by == []

    def test_records_of_other_users_ignored(self):
        """Records not involving the user are ignored."""
        expenses = [make_expense("u2", {"u3": "50"})]
        balances = compute_user_balances("u1", expenses, [])
        assert balances.you_owe == D(0)
        assert balances.you_are_owed == D(0)

    def test_paid_splits_ignored(self):
        """Splits marked paid no longer create debt."""
        expenses = [make_expense("u1", {"u2": "10", "u3": "10"}, paid=("u2",))]
        balances = compute_user_balances("u1", expenses, [])
        assert balances.you_are_owed == D(10)

    def test_counterparty_details_resolved(self):
        """Counterparty names come from the user lookup."""
        expenses = [make_expense("u1", {"u2": "10", "u9": "5"})]
        users = {"u2": make_user("u2", "Bea")}
        balances = compute_user_balances("u1", expenses, [], users)
        names = {c.user_id: c.name for c in balances.owe_details.you_are_owed_by}
        assert names == {"u2": "Bea", "u9": "Unknown"}

    def test_totals_consistent_with_breakdown(self):
        """Total balance equals owed-by minus owe when nobody is over-settled."""
        expenses = [
            make_expense("u1", {"u2": "7.50", "u3": "2.25"}),
            make_expense("u3", {"u1": "4.10"}),
        ]
        balances = compute_user_balances("u1", expenses, [])
        owed_by = sum(c.amount for c in balances.owe_details.you_are_owed_by)
        owe = sum(c.amount for c in balances.owe_details.you_owe)
        assert balances.total_balance == owed_by - owe


class TestComputePairBalance:
    """Tests for the signed balance between two users."""

    def test_positive_when_other_owes(self):
        """Positive means the other user owes."""
        expenses = [
            make_expense("u1", {"u1": "10", "u2": "10"}),
            make_expense("u2", {"u1": "4"}),
        ]
        assert compute_pair_balance("u1", "u2", expenses, []) == D(6)
        assert compute_pair_balance("u2", "u1", expenses, []) == D(-6)

    def test_settlements_move_balance(self):
        """Settlements between the two shift the balance."""
        expenses = [make_expense("u1", {"u2": "10"})]
        settlements = [make_settlement("u2", "u1", "10")]
        assert compute_pair_balance("u1", "u2", expenses, settlements) == D(0)

    def test_third_parties_ignored(self):
        """Debts with other users do not count."""
        expenses = [make_expense("u1", {"u3": "10"})]
        assert compute_pair_balance("u1", "u2", expenses, []) == D(0)
