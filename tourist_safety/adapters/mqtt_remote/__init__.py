"""
Remote MQTT ingestion adapter for tourist safety tracking.
"""

from .client_async import LocationIngestor

__all__ = ["LocationIngestor"]
