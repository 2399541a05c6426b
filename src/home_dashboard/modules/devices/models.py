"""
Data models for devices.

Devices are a closed set of variants, each with its own fields:

- Thermostat: target and current temperature
- Light: on/off and brightness
- Fan: on/off and optional speed
- HumiditySensor: read-only humidity

Documents in the feed use camelCase field names ("isOn", "currentTemp");
the dataclasses use snake_case and convert at the edge.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Enums
# =============================================================================


class DeviceType(Enum):
    """Device variants. The type of a device never changes after creation."""

    THERMOSTAT = "thermostat"
    LIGHT = "light"
    FAN = "fan"
    HUMIDITY = "humidity"


# Document field name -> dataclass attribute
FIELD_ATTRS: Dict[str, str] = {
    "isOn": "is_on",
    "targetTemp": "target_temp",
    "currentTemp": "current_temp",
    "brightness": "brightness",
    "speed": "speed",
    "humidity": "humidity",
}

TARGET_TEMP_MIN = 60.0
TARGET_TEMP_MAX = 85.0


# =============================================================================
# Device Variants
# =============================================================================


@dataclass(frozen=True)
class Thermostat:
    """Thermostat with a settable target and a measured current temperature."""

    id: str
    name: str
    room: str
    target_temp: float = 72.0  # 60-85
    current_temp: Optional[float] = None

    @property
    def device_type(self) -> DeviceType:
        return DeviceType.THERMOSTAT


@dataclass(frozen=True)
class Light:
    """Dimmable light. Brightness only matters while on."""

    id: str
    name: str
    room: str
    is_on: bool = False
    brightness: float = 0.0  # 0-100

    @property
    def device_type(self) -> DeviceType:
        return DeviceType.LIGHT


@dataclass(frozen=True)
class Fan:
    """Switchable fan."""

    id: str
    name: str
    room: str
    is_on: bool = False
    speed: Optional[float] = None

    @property
    def device_type(self) -> DeviceType:
        return DeviceType.FAN


@dataclass(frozen=True)
class HumiditySensor:
    """Read-only humidity sensor."""

    id: str
    name: str
    room: str
    humidity: float = 0.0  # 0-100

    @property
    def device_type(self) -> DeviceType:
        return DeviceType.HUMIDITY


Device = Thermostat | Light | Fan | HumiditySensor


# =============================================================================
# Capabilities
# =============================================================================

# Variants with an on/off switch
ON_OFF_TYPES = frozenset({DeviceType.LIGHT, DeviceType.FAN})

# Variant -> attribute compared by ">" and "<" triggers.
# Only thermostats take part in numeric triggers.
READING_ATTRS: Dict[DeviceType, str] = {
    DeviceType.THERMOSTAT: "current_temp",
}


def has_on_off(device: Device) -> bool:
    """Check whether a device can be switched on and off."""
    return device.device_type in ON_OFF_TYPES


def is_on(device: Device) -> Optional[bool]:
    """On/off state, or None for devices without a switch."""
    if not has_on_off(device):
        return None
    return device.is_on


def numeric_reading(device: Device) -> Optional[float]:
    """Current numeric reading used by comparison triggers, if any."""
    attr = READING_ATTRS.get(device.device_type)
    if attr is None:
        return None
    return getattr(device, attr)


# =============================================================================
# Mutations
# =============================================================================


@dataclass(frozen=True)
class Mutation:
    """
    A single field-level change to one device.

    rule_id/rule_name record which rule produced the change (None for user
    commands and telemetry); they do not take part in equality.
    """

    device_id: str
    field: str  # Document field name, e.g. "isOn"
    new_value: Any
    rule_id: Optional[str] = field(default=None, compare=False)
    rule_name: Optional[str] = field(default=None, compare=False)

    def to_record(self) -> Dict[str, Any]:
        """Partial document written to the feed."""
        return {self.field: self.new_value}


def apply_mutation(device: Device, mutation: Mutation) -> Device:
    """
    Return a copy of the device with the mutation applied.

    Raises:
        ValueError: If the mutation targets another device or a field the
            variant does not have
    """
    if mutation.device_id != device.id:
        raise ValueError(f"Mutation for {mutation.device_id} applied to {device.id}")
    attr = FIELD_ATTRS.get(mutation.field)
    if attr is None or not hasattr(device, attr):
        raise ValueError(f"{device.device_type.value} has no field {mutation.field!r}")
    return replace(device, **{attr: mutation.new_value})


# =============================================================================
# Serialization
# =============================================================================


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _switch_state(value: Any) -> bool:
    if value is None:
        return False
    if value is True or value is False:
        return value
    raise ValueError(f"isOn must be a boolean, got {value!r}")


def device_from_dict(doc_id: str, data: Dict[str, Any]) -> Device:
    """
    Build a device from a feed document.

    Args:
        doc_id: Document id (the device id)
        data: Document fields

    Returns:
        The device variant named by data["type"]

    Raises:
        ValueError: If the type is missing or unknown, or isOn is not a boolean
    """
    device_type = DeviceType(data.get("type"))
    name = data.get("name", doc_id)
    room = data.get("room", "")

    if device_type == DeviceType.THERMOSTAT:
        return Thermostat(
            id=doc_id,
            name=name,
            room=room,
            target_temp=float(data.get("targetTemp", 72.0)),
            current_temp=_optional_float(data.get("currentTemp")),
        )
    elif device_type == DeviceType.LIGHT:
        return Light(
            id=doc_id,
            name=name,
            room=room,
            is_on=_switch_state(data.get("isOn")),
            brightness=float(data.get("brightness", 0.0)),
        )
    elif device_type == DeviceType.FAN:
        return Fan(
            id=doc_id,
            name=name,
            room=room,
            is_on=_switch_state(data.get("isOn")),
            speed=_optional_float(data.get("speed")),
        )
    else:
        return HumiditySensor(
            id=doc_id,
            name=name,
            room=room,
            humidity=float(data.get("humidity", 0.0)),
        )


def device_to_dict(device: Device) -> Dict[str, Any]:
    """Serialize a device to its feed document layout."""
    result: Dict[str, Any] = {
        "id": device.id,
        "name": device.name,
        "type": device.device_type.value,
        "room": device.room,
    }
    for doc_field, attr in FIELD_ATTRS.items():
        if hasattr(device, attr):
            result[doc_field] = getattr(device, attr)
    return result


# =============================================================================
# Defaults
# =============================================================================


def default_devices() -> List[Device]:
    """The devices seeded into a fresh, empty session."""
    return [
        Thermostat(
            id="thermostat-1",
            name="Living Room Thermostat",
            room="Living Room",
            target_temp=72.0,
            current_temp=75.0,
        ),
        Light(
            id="light-1",
            name="Main Living Light",
            room="Living Room",
            is_on=True,
            brightness=80.0,
        ),
        Fan(id="fan-1", name="Ceiling Fan", room="Living Room", is_on=False, speed=0.0),
        Light(id="light-2", name="Kitchen Light", room="Kitchen", is_on=False, brightness=50.0),
        HumiditySensor(id="humidity-1", name="Bedroom Humidifier", room="Bedroom", humidity=45.0),
        Light(id="light-3", name="Bedroom Lamp", room="Bedroom", is_on=True, brightness=60.0),
    ]
