"""
TelemetrySimulator: synthetic thermostat readings.

Stands in for a real IoT hub. Once a minute it nudges the thermostat's
temperature by a small random step, appends the reading to history and
updates the device's current temperature.

The simulator does NOT schedule itself. The host is responsible for:
1. Calling tick(now) every `interval` seconds
2. Using next_tick(now) to know when to schedule the next call
"""

import logging
import random
from datetime import datetime, timedelta, UTC
from typing import Dict, Optional

from home_dashboard.core.bus import EventBus
from home_dashboard.modules.base import SessionModule
from home_dashboard.modules.devices import DeviceStore, SetCurrentTemp, numeric_reading
from home_dashboard.modules.dispatch import MutationDispatcher
from home_dashboard.modules.history import HistoryBuffer

logger = logging.getLogger(__name__)


class TelemetrySimulator(SessionModule):
    """
    Random-walk temperature source for one device.

    Checks run every `interval` seconds but only act when the wall-clock
    second is 0, i.e. at most once per minute.
    """

    def __init__(
        self,
        devices: DeviceStore,
        history: HistoryBuffer,
        dispatcher: MutationDispatcher,
        device_id: str = "thermostat-1",
        interval: int = 1,
        jitter: float = 0.75,
        default_value: float = 75.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._devices = devices
        self._history = history
        self._dispatcher = dispatcher
        self._device_id = device_id
        self._interval = interval
        self._jitter = jitter
        self._default_value = default_value
        self._rng = rng or random.Random()
        self._running = False
        self._last_emitted: Optional[datetime] = None
        self._readings = 0

    @property
    def id(self) -> str:
        return "telemetry"

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def running(self) -> bool:
        return self._running

    def attach(self, bus: EventBus, scope) -> None:
        logger.info(f"Attaching TelemetrySimulator for {self._device_id}")
        self.start()

    def detach(self) -> None:
        self.stop()

    def default_config(self) -> Dict:
        return {
            "device_id": "thermostat-1",
            "interval": 1,
            "jitter": 0.75,
            "default_value": 75.0,
        }

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        """Stop acting on ticks; a stopped simulator never writes."""
        if self._running:
            logger.debug("TelemetrySimulator stopped")
        self._running = False

    # =========================================================================
    # Ticks
    # =========================================================================

    def next_tick(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """When the host should call tick() next, or None when stopped."""
        if not self._running:
            return None
        if now is None:
            now = datetime.now(UTC)
        return now + timedelta(seconds=self._interval)

    def tick(self, now: Optional[datetime] = None) -> Optional[float]:
        """
        Periodic check; produces a reading when the second is 0.

        Args:
            now: Current time (defaults to datetime.now(UTC))

        Returns:
            The new reading, or None if nothing was produced
        """
        if not self._running:
            return None
        if now is None:
            now = datetime.now(UTC)
        if now.second != 0:
            return None

        # One reading per minute even if the host ticks twice within second 0
        minute = now.replace(second=0, microsecond=0)
        if self._last_emitted == minute:
            return None
        self._last_emitted = minute

        return self.emit(now)

    def emit(self, now: Optional[datetime] = None) -> float:
        """
        Produce one reading right away.

        new value = last known value + uniform(-jitter, +jitter); the last
        known value falls back to the default when the device or its
        reading is unknown.
        """
        if now is None:
            now = datetime.now(UTC)

        value = self._last_known() + self._rng.uniform(-self._jitter, self._jitter)
        self._readings += 1
        logger.debug(f"Simulated reading for {self._device_id}: {value:.2f}")

        self._history.record(self._device_id, value, now)
        self._dispatcher.send(SetCurrentTemp(device_id=self._device_id, current_temp=value))
        return value

    def _last_known(self) -> float:
        device = self._devices.get(self._device_id)
        if device is None:
            return self._default_value
        reading = numeric_reading(device)
        return reading if reading is not None else self._default_value

    def dump_state(self) -> Dict:
        return {
            "running": self._running,
            "readings": self._readings,
            "last_emitted": self._last_emitted.isoformat() if self._last_emitted else None,
        }
