"""
Cashflow - Source Package

A multi-tenant bookkeeping assistant: businesses own books,
books own transactions, and teams collaborate with roles.

DESIGN PRINCIPLES:
1. State is an immutable tree; every command returns a new tree
2. Derived numbers (balances, totals) are never stored
3. AI assists, it never writes ledger data on its own
4. Every mutation is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Cashflow Team"
