"""
AutomationModule implementation.

Re-evaluates every rule whenever the device or rule snapshot changes and
applies the resulting mutations through the dispatcher.
"""

import logging
from datetime import datetime, UTC
from typing import TYPE_CHECKING, Dict, List, Optional

from home_dashboard.core.bus import Event, EventBus, EventFilter
from home_dashboard.modules.base import SessionModule
from home_dashboard.modules.devices import DeviceStore

from .engine import RuleEngine
from .models import EngineResult
from .store import RuleStore

if TYPE_CHECKING:
    from home_dashboard.core.feed import FeedScope
    from home_dashboard.modules.dispatch import MutationDispatcher

logger = logging.getLogger(__name__)


class AutomationModule(SessionModule):
    """
    Module that runs the rules engine.

    Features:
    - Evaluates on every devices/rules refresh (one pass each)
    - One feed write per emitted mutation
    - One "Rule triggered: <name>" notification per successful write
    - Firing history for debugging
    """

    def __init__(
        self,
        devices: DeviceStore,
        rules: RuleStore,
        dispatcher: "MutationDispatcher",
        enabled: bool = True,
    ) -> None:
        self._devices = devices
        self._rules = rules
        self._dispatcher = dispatcher
        self._engine = RuleEngine()
        self._bus: Optional[EventBus] = None
        self._enabled = enabled
        self._passes = 0

    @property
    def id(self) -> str:
        return "automation"

    @property
    def engine(self) -> RuleEngine:
        return self._engine

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        """Pause or resume automation; resuming evaluates immediately."""
        self._enabled = enabled
        logger.info(f"Automation {'enabled' if enabled else 'disabled'}")
        if enabled:
            self.evaluate_now()

    def attach(self, bus: EventBus, scope: "FeedScope") -> None:
        """Subscribe to snapshot refreshes."""
        logger.info("Attaching AutomationModule")
        self._bus = bus
        bus.subscribe(self._on_snapshot_changed, EventFilter(event_type="devices.updated"))
        bus.subscribe(self._on_snapshot_changed, EventFilter(event_type="rules.updated"))
        logger.info("AutomationModule ready")

    def detach(self) -> None:
        if self._bus:
            self._bus.unsubscribe(self._on_snapshot_changed)
        self._bus = None

    def default_config(self) -> Dict:
        return {"enabled": True}

    # =========================================================================
    # Evaluation
    # =========================================================================

    def _on_snapshot_changed(self, event: Event) -> None:
        """Handle devices.updated / rules.updated."""
        logger.debug(f"Re-evaluating rules after {event.type}")
        self.evaluate_now()

    def evaluate_now(self) -> EngineResult:
        """
        Evaluate all rules against the current snapshots and apply the result.

        Returns:
            The engine result for this pass
        """
        if not self._enabled:
            return EngineResult()

        self._passes += 1
        result = self._engine.run(self._devices.list(), self._rules.list())
        if not result.mutations:
            return result

        logger.info(
            f"{result.rules_triggered}/{result.rules_evaluated} rules triggered"
        )

        for mutation in result.mutations:
            dispatch = self._dispatcher.apply(mutation)
            error = str(dispatch.error) if dispatch.error else None
            self._engine.record_firing(mutation, success=dispatch.ok, error=error)

            if dispatch.ok:
                logger.info(
                    f"Rule triggered: {mutation.rule_name} -> "
                    f"{mutation.device_id}.{mutation.field}={mutation.new_value}"
                )
                self._dispatcher.feedback.success(f"Rule triggered: {mutation.rule_name}")
                self._emit_fired(mutation.rule_id, mutation.device_id, mutation.new_value)

        return result

    def _emit_fired(self, rule_id: Optional[str], device_id: str, value: object) -> None:
        """Emit automation.fired for observability."""
        if not self._bus:
            return

        self._bus.publish(
            Event(
                type="automation.fired",
                source=self.id,
                device_id=device_id,
                payload={"rule_id": rule_id, "new_value": value},
                timestamp=datetime.now(UTC),
            )
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def get_history(
        self,
        rule_id: Optional[str] = None,
        device_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[Dict]:
        """Rule firing history as dicts (newest first)."""
        return [f.to_dict() for f in self._engine.get_history(rule_id, device_id, limit)]

    def dump_state(self) -> Dict:
        return {
            "enabled": self._enabled,
            "passes": self._passes,
            "history": self.get_history(limit=RuleEngine.HISTORY_SIZE),
        }
