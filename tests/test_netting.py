"""Tests for pairwise netting."""

from decimal import Decimal

import pytest

from splitledger.balances.netting import DebtLedger, canonical_pair, net_pair
from splitledger.models.balances import DirectedDebt
from tests.factories import D


class TestNetPair:
    """Tests for netting two opposite debts."""

    def test_a_owes_more(self):
        """The larger side keeps the difference."""
        netted = net_pair("a", "b", D(30), D(10))
        assert netted.a_owes_b == D(20)
        assert netted.b_owes_a == D(0)
        assert netted.debtor_id == "a"
        assert netted.creditor_id == "b"
        assert netted.amount == D(20)

    def test_b_owes_more(self):
        """Direction flips when the other side is larger."""
        netted = net_pair("a", "b", D(5), D(12))
        assert netted.a_owes_b == D(0)
        assert netted.b_owes_a == D(7)
        assert netted.debtor_id == "b"

    def test_equal_debts_cancel(self):
        """Equal opposite debts leave nothing owed."""
        netted = net_pair("a", "b", D(8), D(8))
        assert netted.is_settled
        assert netted.debtor_id is None
        assert netted.amount == D(0)

    def test_at_most_one_side_positive(self):
        """Netting never leaves debts in both directions."""
        for owes_ab, owes_ba in [(D(1), D(2)), (D(2), D(1)), (D(0), D(0)), (D(-3), D(4))]:
            netted = net_pair("a", "b", owes_ab, owes_ba)
            assert netted.a_owes_b >= 0 and netted.b_owes_a >= 0
            assert netted.a_owes_b == 0 or netted.b_owes_a == 0

    def test_negative_cell_becomes_reverse_debt(self):
        """An over-settled pair turns into a debt the other way."""
        netted = net_pair("a", "b", D(-5), D(0))
        assert netted.b_owes_a == D(5)

    def test_symmetry(self):
        """Swapping the parties swaps the result."""
        forward = net_pair("a", "b", D(9), D(4))
        backward = net_pair("b", "a", D(4), D(9))
        assert forward.a_owes_b == backward.b_owes_a
        assert forward.b_owes_a == backward.a_owes_b

    def test_canonical_pair(self):
        """Pairs are ordered lexicographically."""
        assert canonical_pair("u2", "u1") == ("u1", "u2")
        assert canonical_pair("u1", "u2") == ("u1", "u2")


class TestDebtLedger:
    """Tests for the dense pairwise ledger."""

    def test_starts_at_zero(self):
        """Every ordered pair starts at zero."""
        ledger = DebtLedger(["u1", "u2", "u3"])
        assert ledger.amount("u1", "u2") == Decimal("0")
        assert ledger.edges() == []

    def test_duplicate_parties_collapse(self):
        """Parties keep first occurrence order."""
        ledger = DebtLedger(["u2", "u1", "u2"])
        assert ledger.parties == ["u2", "u1"]

    def test_unknown_party_is_skipped(self):
        """Debts with outsiders change nothing."""
        ledger = DebtLedger(["u1", "u2"])
        assert ledger.add("u1", "u9", D(5)) is False
        assert ledger.add("u1", "u1", D(5)) is False
        assert ledger.edges() == []

    def test_apply_accumulates(self):
        """Debts in the same direction add up."""
        ledger = DebtLedger(["u1", "u2"])
        ledger.apply(DirectedDebt(debtor_id="u2", creditor_id="u1", amount=D(10)))
        ledger.apply(DirectedDebt(debtor_id="u2", creditor_id="u1", amount=D("2.5")))
        assert ledger.amount("u2", "u1") == D("12.5")

    def test_pairs_in_canonical_order(self):
        """Each unordered pair is visited once, sorted."""
        ledger = DebtLedger(["u3", "u1", "u2"])
        assert list(ledger.pairs()) == [("u1", "u2"), ("u1", "u3"), ("u2", "u3")]

    def test_simplify_nets_each_pair(self):
        """Opposite debts collapse into one direction."""
        ledger = DebtLedger(["u1", "u2"])
        ledger.add("u1", "u2", D(30))
        ledger.add("u2", "u1", D(10))
        simplified = ledger.simplify()
        assert simplified.amount("u1", "u2") == D(20)
        assert simplified.amount("u2", "u1") == D(0)

    def test_simplify_does_not_modify_original(self):
        """Simplification returns a new ledger."""
        ledger = DebtLedger(["u1", "u2"])
        ledger.add("u1", "u2", D(30))
        ledger.add("u2", "u1", D(10))
        ledger.simplify()
        assert ledger.amount("u2", "u1") == D(10)

    def test_simplify_is_idempotent(self):
        """Simplifying twice changes nothing."""
        ledger = DebtLedger(["u1", "u2", "u3"])
        ledger.add("u1", "u2", D(4))
        ledger.add("u2", "u1", D(9))
        ledger.add("u3", "u1", D(-2))
        once = ledger.simplify()
        twice = once.simplify()
        assert once.edges() == twice.edges()

    def test_three_way_cycle_is_not_cancelled(self):
        """Netting is pairwise only."""
        ledger = DebtLedger(["u1", "u2", "u3"])
        ledger.add("u1", "u2", D(10))
        ledger.add("u2", "u3", D(15))
        ledger.add("u3", "u1", D(5))
        edges = ledger.simplify().edges()
        assert [(e.debtor_id, e.creditor_id, e.amount) for e in edges] == [
            ("u1", "u2", D(10)),
            ("u3", "u1", D(5)),
            ("u2", "u3", D(15)),
        ]

    def test_owes_and_owed_by(self):
        """Per-party views list positive debts in party order."""
        ledger = DebtLedger(["u1", "u2", "u3"])
        ledger.add("u2", "u1", D(3))
        ledger.add("u3", "u1", D(4))
        assert ledger.owes("u2") == [("u1", D(3))]
        assert ledger.owed_by("u1") == [("u2", D(3)), ("u3", D(4))]
        assert ledger.owes("u1") == []

    @pytest.mark.parametrize("party", ["u1", "u2"])
    def test_contains(self, party):
        """Membership test over the party set."""
        ledger = DebtLedger(["u1", "u2"])
        assert party in ledger
        assert "u9" not in ledger
