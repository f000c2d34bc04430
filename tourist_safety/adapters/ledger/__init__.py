"""
Incident ledger HTTP adapter for tourist safety tracking.
"""

from .client import IncidentLedgerClient

__all__ = ["IncidentLedgerClient"]
