"""
Local MQTT broadcast adapter for tourist safety tracking.

This module provides the NotificationPort implementation that
publishes dashboard events to the local MQTT broker.
"""

from .publisher_async import DashboardPublisher

__all__ = ["DashboardPublisher"]
