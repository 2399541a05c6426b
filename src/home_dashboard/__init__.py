"""
home-dashboard: the headless core of a smart-home dashboard.

This library provides:
- A per-user session mirroring devices, rules and history from a document store
- An automation rules engine with idempotent corrective actions
- Typed device commands and a mutation dispatcher
- A simulated thermostat telemetry source
"""

from home_dashboard.core.bus import Event, EventBus, EventFilter
from home_dashboard.core.config import DashboardConfig
from home_dashboard.core.feed import MockFeed, PersistenceFeed
from home_dashboard.core.session import (
    AuthProvider,
    MockAuthProvider,
    Session,
    SessionIdentity,
)

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "DashboardConfig",
    "MockFeed",
    "PersistenceFeed",
    "AuthProvider",
    "MockAuthProvider",
    "Session",
    "SessionIdentity",
]
