"""
HistoryBuffer: bounded, time-ordered windows over the history log.

The history collection is an append-only log of unbounded length. Windowing
is a read-side projection recomputed from the full snapshot on every
refresh; nothing is ever deleted on write.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from home_dashboard.core.bus import Event, EventBus
from home_dashboard.core.errors import DispatchError, FeedError
from home_dashboard.core.feed import HISTORY, Snapshot, Subscription
from home_dashboard.modules.base import SessionModule, cancel_all

from .models import HistorySample, format_timestamp

if TYPE_CHECKING:
    from home_dashboard.core.feed import FeedScope
    from home_dashboard.modules.dispatch import FeedbackChannel

logger = logging.getLogger(__name__)


class HistoryBuffer(SessionModule):
    """
    Per-device windows of the most recent telemetry samples.

    Each window holds at most `window_size` samples, ascending by timestamp.
    """

    def __init__(
        self,
        window_size: int = 30,
        feedback: Optional["FeedbackChannel"] = None,
    ) -> None:
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self._window_size = window_size
        self._feedback = feedback
        self._bus: Optional[EventBus] = None
        self._scope: Optional["FeedScope"] = None
        self._windows: Dict[str, List[HistorySample]] = {}
        self._subscriptions: List[Subscription] = []

    @property
    def id(self) -> str:
        return "history"

    @property
    def window_size(self) -> int:
        return self._window_size

    def attach(self, bus: EventBus, scope: "FeedScope") -> None:
        """Subscribe to the history collection."""
        logger.info("Attaching HistoryBuffer")
        self._bus = bus
        self._scope = scope
        self._subscriptions.append(scope.subscribe(HISTORY, self.update_from_snapshot))

    def detach(self) -> None:
        cancel_all(self._subscriptions)
        self._bus = None
        self._scope = None

    def default_config(self) -> Dict:
        return {"window_size": 30}

    # =========================================================================
    # Writes
    # =========================================================================

    def record(self, device_id: str, value: float, timestamp: datetime) -> Optional[str]:
        """
        Append one sample to the history log.

        Fire-and-forget: the sample appears in windows once the feed delivers
        it back. Failures are logged and reported, not retried.

        Args:
            device_id: Device the reading belongs to
            value: Reading value
            timestamp: When the reading was taken

        Returns:
            Generated document id, or None if the append failed
        """
        if not self._scope:
            logger.warning("Cannot record history: buffer not attached")
            return None

        sample = HistorySample(device_id=device_id, value=value, timestamp=timestamp)
        try:
            return self._scope.append(HISTORY, sample.to_dict())
        except FeedError as e:
            error = DispatchError(
                f"Error adding history data for {device_id}: {e}",
                collection=HISTORY,
            )
            logger.error(str(error), exc_info=True)
            if self._feedback:
                self._feedback.error("Failed to record history data.")
            return None

    # =========================================================================
    # Feed handling
    # =========================================================================

    def update_from_snapshot(self, snapshot: Snapshot) -> None:
        """Recompute every device window from the full history snapshot."""
        samples: List[HistorySample] = []
        for doc in snapshot:
            try:
                samples.append(HistorySample.from_dict(doc.data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping history sample {doc.id}: {e}")

        # Stable sort keeps arrival order among equal timestamps
        samples.sort(key=lambda s: s.timestamp)

        by_device: Dict[str, List[HistorySample]] = {}
        for sample in samples:
            by_device.setdefault(sample.device_id, []).append(sample)

        self._windows = {
            device_id: device_samples[-self._window_size :]
            for device_id, device_samples in by_device.items()
        }
        logger.debug(
            f"History snapshot: {len(samples)} samples across {len(self._windows)} devices"
        )

        if self._bus:
            self._bus.publish(
                Event(
                    type="history.updated",
                    source=self.id,
                    payload={"devices": sorted(self._windows)},
                )
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def window_for(self, device_id: str) -> List[HistorySample]:
        """Most recent samples for a device, ascending by timestamp."""
        return list(self._windows.get(device_id, []))

    def latest(self, device_id: str) -> Optional[HistorySample]:
        """Newest sample for a device, if any."""
        window = self._windows.get(device_id)
        return window[-1] if window else None

    def tracked_devices(self) -> List[str]:
        """Device ids that have at least one sample."""
        return list(self._windows)

    def chart_points(self, device_id: str) -> List[Tuple[str, float]]:
        """(clock label, value) pairs for charting a device window."""
        return [(format_timestamp(s.timestamp), s.value) for s in self.window_for(device_id)]
