"""
Pairwise Netting Engine

Collapses the two directed debts between a pair of parties into one
net directed debt.

DESIGN DECISION: Netting is strictly pairwise. A cycle A -> B -> C -> A
is only reduced where a single pair owes in both directions; no
min-flow cancellation runs across three or more parties.

Pairs are always visited in canonical (lexicographic) order so every
unordered pair is netted exactly once.
"""

from decimal import Decimal
from itertools import combinations
from typing import Iterable, Iterator

import structlog

from splitledger.balances.primitives import ZERO
from splitledger.models.balances import DirectedDebt, NetDebt


logger = structlog.get_logger(__name__)


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    """Order two party ids by the canonical total order."""
    return (a, b) if a <= b else (b, a)


def net_pair(a: str, b: str, owes_ab: Decimal, owes_ba: Decimal) -> NetDebt:
    """
    Net two opposite directed debts.

    diff = owes_ab - owes_ba
      diff > 0  -> a owes b diff
      diff < 0  -> b owes a -diff
      diff == 0 -> nothing owed either way
    """
    diff = owes_ab - owes_ba
    if diff > 0:
        return NetDebt(party_a=a, party_b=b, a_owes_b=diff, b_owes_a=ZERO)
    if diff < 0:
        return NetDebt(party_a=a, party_b=b, a_owes_b=ZERO, b_owes_a=-diff)
    return NetDebt(party_a=a, party_b=b, a_owes_b=ZERO, b_owes_a=ZERO)


class DebtLedger:
    """
    Directed debts between a fixed set of parties.

    `amount(a, b)` is how much a owes b. Every ordered pair of distinct
    parties starts at zero. Cells may go negative while settlements are
    applied; simplify() brings every pair back to one non-negative side.
    """

    def __init__(self, party_ids: Iterable[str]):
        # Keep first occurrence order, drop duplicates
        self._parties: list[str] = list(dict.fromkeys(party_ids))
        self._known = set(self._parties)
        self._cells: dict[tuple[str, str], Decimal] = {
            (a, b): ZERO
            for a in self._parties
            for b in self._parties
            if a != b
        }

    @property
    def parties(self) -> list[str]:
        return list(self._parties)

    def __contains__(self, party_id: str) -> bool:
        return party_id in self._known

    def amount(self, debtor_id: str, creditor_id: str) -> Decimal:
        return self._cells.get((debtor_id, creditor_id), ZERO)

    def add(self, debtor_id: str, creditor_id: str, amount: Decimal) -> bool:
        """
        Add to the debt debtor -> creditor.

        Returns False (and changes nothing) when the pair is not part of
        the ledger: unknown parties or a party owing itself.
        """
        key = (debtor_id, creditor_id)
        if key not in self._cells:
            logger.warning(
                "ledger_pair_skipped",
                debtor_id=debtor_id,
                creditor_id=creditor_id,
                amount=str(amount),
            )
            return False
        self._cells[key] += amount
        return True

    def apply(self, debt: DirectedDebt) -> bool:
        return self.add(debt.debtor_id, debt.creditor_id, debt.amount)

    def pairs(self) -> Iterator[tuple[str, str]]:
        """Every unordered pair once, canonical order within and across pairs."""
        for a, b in combinations(sorted(self._parties), 2):
            yield a, b

    def net(self, a: str, b: str) -> NetDebt:
        a, b = canonical_pair(a, b)
        return net_pair(a, b, self.amount(a, b), self.amount(b, a))

    def simplify(self) -> "DebtLedger":
        """Return a new ledger where each pair owes in at most one direction."""
        simplified = DebtLedger(self._parties)
        for a, b in self.pairs():
            netted = self.net(a, b)
            simplified._cells[(a, b)] = netted.a_owes_b
            simplified._cells[(b, a)] = netted.b_owes_a
        return simplified

    def edges(self) -> list[DirectedDebt]:
        """Positive debts, in canonical pair order."""
        result = []
        for a, b in self.pairs():
            for debtor, creditor in ((a, b), (b, a)):
                value = self._cells[(debtor, creditor)]
                if value > 0:
                    result.append(DirectedDebt(
                        debtor_id=debtor,
                        creditor_id=creditor,
                        amount=value,
                    ))
        return result

    def owes(self, debtor_id: str) -> list[tuple[str, Decimal]]:
        """Positive debts of one party, in party order."""
        return [
            (other, self._cells[(debtor_id, other)])
            for other in self._parties
            if other != debtor_id and self._cells[(debtor_id, other)] > 0
        ]

    def owed_by(self, creditor_id: str) -> list[tuple[str, Decimal]]:
        """Positive debts owed to one party, in party order."""
        return [
            (other, self._cells[(other, creditor_id)])
            for other in self._parties
            if other != creditor_id and self._cells[(other, creditor_id)] > 0
        ]

