"""
Devices module for home-dashboard.

Provides the device variants, typed device commands and the DeviceStore
that mirrors the session's devices collection.
"""

from .models import (
    DeviceType,
    Thermostat,
    Light,
    Fan,
    HumiditySensor,
    Device,
    Mutation,
    apply_mutation,
    default_devices,
    device_from_dict,
    device_to_dict,
    has_on_off,
    is_on,
    numeric_reading,
)
from .commands import (
    SetOn,
    SetTargetTemp,
    SetBrightness,
    SetCurrentTemp,
    DeviceCommand,
)
from .store import DeviceStore

__all__ = [
    # Variants
    "DeviceType",
    "Thermostat",
    "Light",
    "Fan",
    "HumiditySensor",
    "Device",
    # Mutations
    "Mutation",
    "apply_mutation",
    # Helpers
    "default_devices",
    "device_from_dict",
    "device_to_dict",
    "has_on_off",
    "is_on",
    "numeric_reading",
    # Commands
    "SetOn",
    "SetTargetTemp",
    "SetBrightness",
    "SetCurrentTemp",
    "DeviceCommand",
    # Store
    "DeviceStore",
]
