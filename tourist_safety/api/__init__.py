"""
REST routers for tourist safety tracking.
"""

from .alerts import router as alerts_router
from .entities import router as entities_router
from .regions import router as regions_router
from .tracking import router as tracking_router

__all__ = ["alerts_router", "entities_router", "regions_router", "tracking_router"]
