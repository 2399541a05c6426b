"""
MutationDispatcher: applies device mutations through the persistence feed.

Every mutation becomes exactly one partial write to the device's document.
Failures are logged and reported as error feedback; they are never retried.
The next devices snapshot shows whatever actually persisted.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

from home_dashboard.core.bus import EventBus
from home_dashboard.core.errors import (
    DashboardError,
    DispatchError,
    FeedError,
    ValidationError,
)
from home_dashboard.core.feed import DEVICES
from home_dashboard.modules.base import SessionModule
from home_dashboard.modules.devices import (
    DeviceCommand,
    DeviceStore,
    Mutation,
    SetBrightness,
    SetOn,
    SetTargetTemp,
    has_on_off,
)

from .feedback import FeedbackChannel

if TYPE_CHECKING:
    from home_dashboard.core.feed import FeedScope

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of applying one mutation."""

    mutation: Optional[Mutation]
    error: Optional[DashboardError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MutationDispatcher(SessionModule):
    """
    Writes single-field device updates to the feed.

    Used by the automation module for rule actions, by the telemetry
    simulator for new readings and by the UI for toggles and sliders.
    """

    def __init__(self, devices: DeviceStore, feedback: FeedbackChannel) -> None:
        self._devices = devices
        self._feedback = feedback
        self._bus: Optional[EventBus] = None
        self._scope: Optional["FeedScope"] = None
        self._applied = 0
        self._failed = 0

    @property
    def id(self) -> str:
        return "dispatch"

    @property
    def feedback(self) -> FeedbackChannel:
        return self._feedback

    def attach(self, bus: EventBus, scope: "FeedScope") -> None:
        logger.info("Attaching MutationDispatcher")
        self._bus = bus
        self._scope = scope

    def detach(self) -> None:
        self._bus = None
        self._scope = None

    # =========================================================================
    # Mutations
    # =========================================================================

    def apply(self, mutation: Mutation) -> DispatchResult:
        """
        Write one mutation to its device document.

        Args:
            mutation: The change to persist

        Returns:
            DispatchResult; on failure `error` holds a DispatchError
        """
        if not self._scope:
            error = DispatchError(
                f"Dispatcher detached, dropping update to {mutation.device_id}",
                collection=DEVICES,
                doc_id=mutation.device_id,
            )
            logger.warning(str(error))
            self._failed += 1
            return DispatchResult(mutation=mutation, error=error)

        try:
            self._scope.write(DEVICES, mutation.device_id, mutation.to_record())
        except FeedError as e:
            error = DispatchError(
                f"Error updating {mutation.device_id}.{mutation.field}: {e}",
                collection=DEVICES,
                doc_id=mutation.device_id,
            )
            logger.error(str(error), exc_info=True)
            self._failed += 1
            self._feedback.error(f"Failed to update {self._device_name(mutation.device_id)}.")
            return DispatchResult(mutation=mutation, error=error)

        self._applied += 1
        logger.debug(
            f"Applied {mutation.field}={mutation.new_value!r} to {mutation.device_id}"
        )
        return DispatchResult(mutation=mutation)

    def apply_all(self, mutations: List[Mutation]) -> List[DispatchResult]:
        """Apply mutations in order; a failure does not stop the rest."""
        return [self.apply(m) for m in mutations]

    # =========================================================================
    # Commands
    # =========================================================================

    def send(self, command: DeviceCommand) -> DispatchResult:
        """
        Validate a device command against its device and apply it.

        Unknown devices and invalid values are rejected locally (no write)
        and reported as error feedback.

        Args:
            command: One of SetOn, SetTargetTemp, SetBrightness, SetCurrentTemp

        Returns:
            DispatchResult for the single resulting write
        """
        device = self._devices.get(command.device_id)
        if device is None:
            error = DispatchError(
                f"Unknown device: {command.device_id}",
                collection=DEVICES,
                doc_id=command.device_id,
            )
            logger.warning(str(error))
            self._feedback.error(f"Device {command.device_id} not found.")
            return DispatchResult(mutation=None, error=error)

        try:
            mutation = command.to_mutation(device)
        except ValidationError as e:
            logger.warning(f"Rejected {type(command).__name__} for {device.id}: {e}")
            self._feedback.error(str(e))
            return DispatchResult(mutation=None, error=e)

        return self.apply(mutation)

    def toggle(self, device_id: str) -> DispatchResult:
        """Flip a light or fan."""
        device = self._devices.get(device_id)
        current = bool(device.is_on) if device is not None and has_on_off(device) else False
        return self.send(SetOn(device_id=device_id, is_on=not current))

    def set_target_temp(self, device_id: str, value: float) -> DispatchResult:
        return self.send(SetTargetTemp(device_id=device_id, target_temp=value))

    def set_brightness(self, device_id: str, value: float) -> DispatchResult:
        return self.send(SetBrightness(device_id=device_id, brightness=value))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _device_name(self, device_id: str) -> str:
        device = self._devices.get(device_id)
        return device.name if device else device_id

    def dump_state(self) -> Dict:
        return {"applied": self._applied, "failed": self._failed}
