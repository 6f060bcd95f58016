"""
splitledger - Shared Expense Ledger

Tracks money owed between members of a group (or between two people),
records expenses split across participants and direct settlements, and
reports a simplified net-debt view.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Money is Decimal end to end, rounded only for display
3. The current user is always passed explicitly
4. Lookup and permission failures are loud and terminal
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "splitledger Team"
