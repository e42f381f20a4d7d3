"""
Persistence — Append-only run ledger.
"""

from .ledger import RunLedger

__all__ = ["RunLedger"]
