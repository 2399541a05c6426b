"""
Session configuration.

A single versioned dataclass holds every tunable of a dashboard session.
Hosts persist it with to_dict() and load it back with from_dict(), which
also upgrades older layouts.
"""

from dataclasses import dataclass
from typing import Any, Dict

import logging

logger = logging.getLogger(__name__)

CURRENT_CONFIG_VERSION = 2


@dataclass
class DashboardConfig:
    """Configuration for a dashboard session."""

    version: int = CURRENT_CONFIG_VERSION
    app_id: str = "default-app-id"
    history_window: int = 30  # Samples kept per device in window_for()
    telemetry_device_id: str = "thermostat-1"
    telemetry_interval: int = 1  # Seconds between simulator checks
    telemetry_jitter: float = 0.75  # Half-width of the uniform step
    telemetry_default_value: float = 75.0  # Used when no reading is known
    seed_defaults: bool = True  # Seed default devices into an empty store

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "version": self.version,
            "app_id": self.app_id,
            "history_window": self.history_window,
            "telemetry": {
                "device_id": self.telemetry_device_id,
                "interval": self.telemetry_interval,
                "jitter": self.telemetry_jitter,
                "default_value": self.telemetry_default_value,
            },
            "seed_defaults": self.seed_defaults,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DashboardConfig":
        """Deserialize from dict, migrating older versions first."""
        data = migrate_config(data)
        telemetry = data.get("telemetry", {})
        config = cls(
            version=data.get("version", CURRENT_CONFIG_VERSION),
            app_id=data.get("app_id", "default-app-id"),
            history_window=int(data.get("history_window", 30)),
            telemetry_device_id=telemetry.get("device_id", "thermostat-1"),
            telemetry_interval=int(telemetry.get("interval", 1)),
            telemetry_jitter=float(telemetry.get("jitter", 0.75)),
            telemetry_default_value=float(telemetry.get("default_value", 75.0)),
            seed_defaults=data.get("seed_defaults", True),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Check values are usable.

        Raises:
            ValueError: If a value is out of range
        """
        if self.history_window < 1:
            raise ValueError(f"history_window must be >= 1, got {self.history_window}")
        if self.telemetry_interval < 1:
            raise ValueError(f"telemetry_interval must be >= 1, got {self.telemetry_interval}")
        if self.telemetry_jitter < 0:
            raise ValueError(f"telemetry_jitter must be >= 0, got {self.telemetry_jitter}")


def migrate_config(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate a config dict to the current version.

    Version 1 kept the telemetry settings flat at the top level
    (``telemetry_device_id`` etc.); version 2 nests them under ``telemetry``.

    Args:
        data: Configuration dict (potentially older version)

    Returns:
        Migrated configuration dict
    """
    version = data.get("version", CURRENT_CONFIG_VERSION)
    if version >= CURRENT_CONFIG_VERSION:
        return data

    migrated = dict(data)
    if version == 1:
        telemetry = {}
        for key in ("device_id", "interval", "jitter", "default_value"):
            flat_key = f"telemetry_{key}"
            if flat_key in migrated:
                telemetry[key] = migrated.pop(flat_key)
        migrated["telemetry"] = telemetry
        logger.info("Migrated dashboard config from version 1 to 2")

    migrated["version"] = CURRENT_CONFIG_VERSION
    return migrated
