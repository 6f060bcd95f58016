"""
Balance Engine

Pure computations that turn expense and settlement rows into balances.
Nothing in this package performs I/O.
"""

from splitledger.balances.group_balances import compute_group_balance, summarize_user_groups
from splitledger.balances.group_ledger import (
    build_group_ledger,
    compute_group_totals_and_ledger,
    group_summary,
    member_details,
)
from splitledger.balances.netting import DebtLedger, canonical_pair, net_pair
from splitledger.balances.primitives import (
    expense_debts,
    format_amount,
    round_amount,
    settlement_credit,
    split_debt,
)
from splitledger.balances.spending import monthly_spending, total_spent
from splitledger.balances.user_balances import compute_pair_balance, compute_user_balances

__all__ = [
    "DebtLedger",
    "build_group_ledger",
    "canonical_pair",
    "compute_group_balance",
    "compute_group_totals_and_ledger",
    "compute_pair_balance",
    "compute_user_balances",
    "expense_debts",
    "format_amount",
    "group_summary",
    "member_details",
    "monthly_spending",
    "net_pair",
    "round_amount",
    "settlement_credit",
    "split_debt",
    "summarize_user_groups",
    "total_spent",
]
