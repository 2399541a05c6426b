"""
DeviceStore: the session's in-memory mirror of the devices collection.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from home_dashboard.core.bus import Event, EventBus
from home_dashboard.core.errors import FeedError
from home_dashboard.core.feed import DEVICES, Snapshot, Subscription
from home_dashboard.modules.base import SessionModule, cancel_all

from .models import Device, default_devices, device_from_dict, device_to_dict

if TYPE_CHECKING:
    from home_dashboard.core.feed import FeedScope
    from home_dashboard.modules.dispatch import FeedbackChannel

logger = logging.getLogger(__name__)


class DeviceStore(SessionModule):
    """
    Authoritative snapshot of all devices for the active session.

    Refreshed from the devices feed; every refresh replaces the whole
    snapshot and publishes a "devices.updated" event.

    When a snapshot arrives empty and seeding is enabled, the default
    devices are written through the feed. The store itself does not change
    until the feed delivers them back.
    """

    def __init__(
        self,
        seed_defaults: bool = True,
        defaults: Optional[Sequence[Device]] = None,
        feedback: Optional["FeedbackChannel"] = None,
    ) -> None:
        self._bus: Optional[EventBus] = None
        self._scope: Optional["FeedScope"] = None
        self._feedback = feedback
        self._seed_defaults = seed_defaults
        self._defaults: List[Device] = list(defaults) if defaults is not None else default_devices()
        self._devices: List[Device] = []
        self._subscriptions: List[Subscription] = []
        self._snapshots_received = 0
        self._seeded = False

    @property
    def id(self) -> str:
        return "devices"

    def attach(self, bus: EventBus, scope: "FeedScope") -> None:
        """Subscribe to the devices collection."""
        logger.info("Attaching DeviceStore")
        self._bus = bus
        self._scope = scope
        self._subscriptions.append(scope.subscribe(DEVICES, self.update_from_snapshot))

    def detach(self) -> None:
        cancel_all(self._subscriptions)
        self._bus = None
        self._scope = None

    def default_config(self) -> Dict:
        return {"seed_defaults": True}

    # =========================================================================
    # Queries
    # =========================================================================

    def list(self) -> List[Device]:
        """Devices in the order the feed delivered them."""
        return list(self._devices)

    def get(self, device_id: str) -> Optional[Device]:
        """Get a device by ID."""
        for device in self._devices:
            if device.id == device_id:
                return device
        return None

    def by_room(self) -> Dict[str, List[Device]]:
        """Devices grouped by room, rooms in first-seen order."""
        rooms: Dict[str, List[Device]] = {}
        for device in self._devices:
            rooms.setdefault(device.room, []).append(device)
        return rooms

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return any(d.id == device_id for d in self._devices)

    # =========================================================================
    # Feed handling
    # =========================================================================

    def update_from_snapshot(self, snapshot: Snapshot) -> None:
        """
        Replace the device snapshot.

        Documents that cannot be parsed are skipped with a warning. Duplicate
        ids keep their first occurrence.
        """
        devices: List[Device] = []
        seen = set()
        for doc in snapshot:
            if doc.id in seen:
                logger.warning(f"Duplicate device id in snapshot: {doc.id}")
                continue
            try:
                devices.append(device_from_dict(doc.id, doc.data))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping device {doc.id}: {e}")
                continue
            seen.add(doc.id)

        self._devices = devices
        self._snapshots_received += 1
        logger.debug(f"Devices snapshot: {len(devices)} devices")

        if snapshot.is_empty and self._seed_defaults:
            self.seed_if_empty(self._defaults)

        if self._bus:
            self._bus.publish(
                Event(
                    type="devices.updated",
                    source=self.id,
                    payload={"count": len(devices)},
                )
            )

    def seed_if_empty(self, defaults: Sequence[Device]) -> None:
        """
        Write the default devices when the store is empty.

        Each device is written under its fixed id. Nothing is returned; the
        devices show up through the next snapshot. Write failures are logged
        and reported, never raised. Seeding happens at most once per session.

        Args:
            defaults: Devices to write
        """
        if self._devices or self._seeded:
            return
        if not self._scope:
            logger.warning("Cannot seed devices: store not attached")
            return

        self._seeded = True
        logger.info(f"Device collection empty, seeding {len(defaults)} default devices")
        for device in defaults:
            record = device_to_dict(device)
            try:
                self._scope.write(DEVICES, device.id, record, merge=False)
            except FeedError as e:
                logger.error(f"Error seeding device {device.id}: {e}", exc_info=True)
                if self._feedback:
                    self._feedback.error(f"Failed to create device {device.name}.")

    def dump_state(self) -> Dict:
        return {
            "devices": [device_to_dict(d) for d in self._devices],
            "snapshots_received": self._snapshots_received,
            "seeded": self._seeded,
        }
