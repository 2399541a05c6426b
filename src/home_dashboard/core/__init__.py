"""
Core components of home-dashboard.

This package contains:
- bus: Event Bus implementation
- config: DashboardConfig
- errors: error taxonomy
- feed: persistence feed interface and in-memory mock
- session: auth and session lifecycle
"""

from home_dashboard.core.bus import Event, EventBus, EventFilter
from home_dashboard.core.config import DashboardConfig
from home_dashboard.core.errors import (
    DashboardError,
    AuthError,
    FeedError,
    DispatchError,
    ValidationError,
)
from home_dashboard.core.feed import (
    Document,
    Snapshot,
    Subscription,
    PersistenceFeed,
    FeedScope,
    MockFeed,
    namespace_for,
)

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "DashboardConfig",
    "DashboardError",
    "AuthError",
    "FeedError",
    "DispatchError",
    "ValidationError",
    "Document",
    "Snapshot",
    "Subscription",
    "PersistenceFeed",
    "FeedScope",
    "MockFeed",
    "namespace_for",
]
