"""
Typed device commands.

Each command targets one device, is validated against that device's
variant and turns into exactly one Mutation.
"""

import math
from dataclasses import dataclass

from home_dashboard.core.errors import ValidationError

from .models import (
    Device,
    DeviceType,
    Mutation,
    TARGET_TEMP_MAX,
    TARGET_TEMP_MIN,
    has_on_off,
)


def _require_type(device: Device, expected: DeviceType, command: str) -> None:
    if device.device_type != expected:
        raise ValidationError(
            f"{command} needs a {expected.value}, {device.id} is a {device.device_type.value}"
        )


def _require_range(value: float, low: float, high: float, what: str) -> None:
    if math.isnan(value) or not low <= value <= high:
        raise ValidationError(f"{what} must be between {low:g} and {high:g}, got {value}")


@dataclass(frozen=True)
class SetOn:
    """Switch a light or fan on or off."""

    device_id: str
    is_on: bool

    def to_mutation(self, device: Device) -> Mutation:
        if not has_on_off(device):
            raise ValidationError(f"{device.id} ({device.device_type.value}) has no on/off switch")
        return Mutation(device_id=self.device_id, field="isOn", new_value=bool(self.is_on))


@dataclass(frozen=True)
class SetTargetTemp:
    """Change a thermostat's target temperature (60-85)."""

    device_id: str
    target_temp: float

    def to_mutation(self, device: Device) -> Mutation:
        _require_type(device, DeviceType.THERMOSTAT, "SetTargetTemp")
        value = float(self.target_temp)
        _require_range(value, TARGET_TEMP_MIN, TARGET_TEMP_MAX, "Target temperature")
        return Mutation(device_id=self.device_id, field="targetTemp", new_value=value)


@dataclass(frozen=True)
class SetBrightness:
    """Change a light's brightness (0-100)."""

    device_id: str
    brightness: float

    def to_mutation(self, device: Device) -> Mutation:
        _require_type(device, DeviceType.LIGHT, "SetBrightness")
        value = float(self.brightness)
        _require_range(value, 0.0, 100.0, "Brightness")
        return Mutation(device_id=self.device_id, field="brightness", new_value=value)


@dataclass(frozen=True)
class SetCurrentTemp:
    """Report a new measured temperature for a thermostat (telemetry)."""

    device_id: str
    current_temp: float

    def to_mutation(self, device: Device) -> Mutation:
        _require_type(device, DeviceType.THERMOSTAT, "SetCurrentTemp")
        value = float(self.current_temp)
        if not math.isfinite(value):
            raise ValidationError(f"Current temperature must be finite, got {value}")
        return Mutation(device_id=self.device_id, field="currentTemp", new_value=value)


DeviceCommand = SetOn | SetTargetTemp | SetBrightness | SetCurrentTemp
