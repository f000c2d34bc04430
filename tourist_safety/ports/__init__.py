"""
Port interfaces for tourist safety hexagonal architecture.

This module defines the port interfaces (Protocols) that define
the contracts between the core domain and external adapters.
"""

from .alert_store import AlertLedgerPort
from .region_store import RegionSourcePort
from .entities import EntityRegistryPort
from .notify import NotificationPort, IncidentLedgerPort
from .ingest import LocationIngestPort

__all__ = [
    "AlertLedgerPort",
    "RegionSourcePort",
    "EntityRegistryPort",
    "NotificationPort",
    "IncidentLedgerPort",
    "LocationIngestPort",
]
