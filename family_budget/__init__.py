"""
Family Budget - Source Package

A shared household ledger for a couple, with a monthly Ma'aser (tithe)
tracker computed from the same transactions.

DESIGN PRINCIPLES:
1. Transactions are the only stored truth; every view is recomputed
2. Currencies are never mixed in a calculation
3. AI prefills and explains, never decides
4. Every change to the ledger is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Family Budget Team"
