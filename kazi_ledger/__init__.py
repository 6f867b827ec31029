"""
Kazi Ledger - Source Package

A small-business ledger that records sales, expenses and credit from
short typed sentences ("Sold bread 5000", "Musa owes me 15000").

DESIGN PRINCIPLES:
1. Extractor suggests → Human confirms → System saves
2. The extractor never throws and never persists
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Kazi Ledger Team"
