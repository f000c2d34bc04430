"""
Core domain models and pure functions for tourist safety tracking.

This module contains the domain models, the error taxonomy and the
payload normalizers, independent of concrete storage and transport.
The geofence engine lives in `tourist_safety.core.geofence`.
"""

from .models import AlertRecord, GeofenceRegion, LocationSample, TrackedEntity, Severity
from .errors import TrackingError, InvalidArgument, NotFound, AlreadyAcknowledged, DuplicateKey
from .normalize import to_location_sample, to_alert_query

__all__ = [
    "AlertRecord", "GeofenceRegion", "LocationSample", "TrackedEntity", "Severity",
    "TrackingError", "InvalidArgument", "NotFound", "AlreadyAcknowledged", "DuplicateKey",
    "to_location_sample", "to_alert_query",
]
