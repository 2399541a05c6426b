"""
Data models for telemetry history.
"""

from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Any, Dict


@dataclass(frozen=True)
class HistorySample:
    """
    One telemetry reading.

    Attributes:
        device_id: Device the reading belongs to
        value: Reading value
        timestamp: When the reading was taken
    """

    device_id: str
    value: float
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the feed document layout."""
        return {
            "deviceId": self.device_id,
            "value": self.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistorySample":
        """
        Deserialize a feed document.

        Timestamps may be datetimes, ISO strings or epoch seconds.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a field cannot be parsed
        """
        return cls(
            device_id=str(data["deviceId"]),
            value=float(data["value"]),
            timestamp=parse_timestamp(data["timestamp"]),
        )


def parse_timestamp(value: Any) -> datetime:
    """Coerce a stored timestamp to an aware datetime (naive values are UTC)."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        ts = datetime.fromisoformat(value)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            ts = datetime.fromtimestamp(value, UTC)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    else:
        raise ValueError(f"Unsupported timestamp: {value!r}")

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


def format_timestamp(ts: datetime) -> str:
    """Short clock label for charts, e.g. "03:45 PM"."""
    return ts.strftime("%I:%M %p")
