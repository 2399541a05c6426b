"""
Telemetry module for home-dashboard.

Simulated data source that drives the device store and history buffer.
"""

from .simulator import TelemetrySimulator

__all__ = ["TelemetrySimulator"]
