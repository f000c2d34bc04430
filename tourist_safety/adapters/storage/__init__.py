"""
Storage adapters for tourist safety hexagonal architecture.

SQLite-backed alert ledger, region store, entity registry and the
notification outbox.
"""

from .sqlite_alerts import SQLiteAlertLedger
from .sqlite_entities import SQLiteEntityRegistry
from .sqlite_outbox import SQLiteOutbox
from .sqlite_regions import SQLiteRegionStore

__all__ = ["SQLiteAlertLedger", "SQLiteEntityRegistry", "SQLiteOutbox", "SQLiteRegionStore"]
