"""
Orchestrators for tourist safety tracking.

This module contains the orchestrators that coordinate
the flow between ports and adapters.
"""
from .tracking import TrackingOrchestrator, LocationOutcome

__all__ = ["TrackingOrchestrator", "LocationOutcome"]
