"""
FinVise - Source Package

Personal finance tracking: transactions, monthly budgets, a debt ledger
and a gift-money ledger, with optional AI advice.

DESIGN PRINCIPLES:
1. Hosted services own persistence, auth and files
2. Every read and write is scoped to the signed-in owner
3. Aggregates are pure functions of in-memory collections
4. Remote failures degrade to empty or local-only data, never crash a view
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FinVise Team"
