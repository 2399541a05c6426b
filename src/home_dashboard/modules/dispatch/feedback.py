"""
User-visible feedback notifications.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Deque, List, Optional

from home_dashboard.core.bus import Event, EventBus

logger = logging.getLogger(__name__)


class FeedbackType(Enum):
    """Banner flavour."""

    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Feedback:
    """A transient message shown to the user."""

    message: str
    type: FeedbackType
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        return {"message": self.message, "type": self.type.value}


class FeedbackChannel:
    """
    Holds the latest feedback message and publishes each one on the bus.

    The UI shows `latest` as a banner; hosts may also subscribe to
    "feedback" events.
    """

    HISTORY_SIZE = 20

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        self._bus = bus
        self._latest: Optional[Feedback] = None
        self._history: Deque[Feedback] = deque(maxlen=self.HISTORY_SIZE)

    def set_bus(self, bus: Optional[EventBus]) -> None:
        self._bus = bus

    @property
    def latest(self) -> Optional[Feedback]:
        return self._latest

    def notify(self, feedback: Feedback) -> None:
        """Show a feedback message."""
        self._latest = feedback
        self._history.append(feedback)
        logger.debug(f"Feedback ({feedback.type.value}): {feedback.message}")
        if self._bus:
            self._bus.publish(
                Event(
                    type="feedback",
                    source="dispatch",
                    payload=feedback.to_dict(),
                    timestamp=feedback.timestamp,
                )
            )

    def success(self, message: str) -> None:
        self.notify(Feedback(message=message, type=FeedbackType.SUCCESS))

    def error(self, message: str) -> None:
        self.notify(Feedback(message=message, type=FeedbackType.ERROR))

    def clear(self) -> None:
        """Dismiss the current banner."""
        self._latest = None

    def history(self) -> List[Feedback]:
        """Recent messages, oldest first."""
        return list(self._history)
