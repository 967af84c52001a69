"""
CrossLock Ledger - Settlement Journal

Append-only, hash-chained, signed record of every committed transition.
"""

from crosslock.ledger.ledger import Ledger, LedgerEntry

__all__ = ["Ledger", "LedgerEntry"]
