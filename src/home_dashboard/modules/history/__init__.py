"""
History module for home-dashboard.

Keeps a per-device window of the latest telemetry samples, recomputed from
the append-only history collection.
"""

from .models import HistorySample, format_timestamp, parse_timestamp
from .buffer import HistoryBuffer

__all__ = [
    "HistorySample",
    "HistoryBuffer",
    "format_timestamp",
    "parse_timestamp",
]
