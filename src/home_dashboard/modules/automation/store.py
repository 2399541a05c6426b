"""
RuleStore: the session's mirror of the rules collection, plus rule creation.

Rules are create-only: there is no update or delete.
"""

import logging
from dataclasses import dataclass, asdict
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from home_dashboard.core.bus import Event, EventBus
from home_dashboard.core.errors import FeedError, ValidationError
from home_dashboard.core.feed import RULES, Snapshot, Subscription
from home_dashboard.modules.base import SessionModule, cancel_all
from home_dashboard.modules.devices import Device

from .models import ActionType, Rule, TriggerCondition

if TYPE_CHECKING:
    from home_dashboard.core.feed import FeedScope
    from home_dashboard.modules.dispatch import FeedbackChannel

logger = logging.getLogger(__name__)

MSG_CREATED = "Rule created successfully!"
MSG_REQUIRED = "All fields are required."
MSG_CREATE_FAILED = "Failed to create rule."


@dataclass
class RuleDraft:
    """The rule creation form, as typed by the user."""

    name: str = ""
    trigger_device: str = ""
    trigger_condition: str = ""
    trigger_value: str = ""
    action_device: str = ""
    action_type: str = ""
    action_value: str = ""

    def validate(self) -> None:
        """
        Check the required fields.

        Raises:
            ValidationError: If name, trigger device or action device is empty
        """
        missing = [
            label
            for label, value in (
                ("name", self.name),
                ("trigger device", self.trigger_device),
                ("action device", self.action_device),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    def to_record(self) -> Dict[str, str]:
        """Feed document for the new rule."""
        data = asdict(self)
        return {
            "name": data["name"],
            "triggerDevice": data["trigger_device"],
            "triggerCondition": data["trigger_condition"],
            "triggerValue": data["trigger_value"],
            "actionDevice": data["action_device"],
            "actionType": data["action_type"],
            "actionValue": data["action_value"],
        }

    def reset(self) -> None:
        """Clear the form after a successful submit."""
        for key in asdict(self):
            setattr(self, key, "")


class RuleStore(SessionModule):
    """
    In-memory snapshot of the configured rules.

    Rules keep feed arrival order, which is the order the engine evaluates
    them in. Every refresh publishes a "rules.updated" event.
    """

    def __init__(self, feedback: Optional["FeedbackChannel"] = None) -> None:
        self._feedback = feedback
        self._bus: Optional[EventBus] = None
        self._scope: Optional["FeedScope"] = None
        self._rules: List[Rule] = []
        self._subscriptions: List[Subscription] = []

    @property
    def id(self) -> str:
        return "rules"

    def attach(self, bus: EventBus, scope: "FeedScope") -> None:
        """Subscribe to the rules collection."""
        logger.info("Attaching RuleStore")
        self._bus = bus
        self._scope = scope
        self._subscriptions.append(scope.subscribe(RULES, self.update_from_snapshot))

    def detach(self) -> None:
        cancel_all(self._subscriptions)
        self._bus = None
        self._scope = None

    # =========================================================================
    # Queries
    # =========================================================================

    def list(self) -> List[Rule]:
        """Rules in evaluation order."""
        return list(self._rules)

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def __len__(self) -> int:
        return len(self._rules)

    # =========================================================================
    # Feed handling
    # =========================================================================

    def update_from_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the rule snapshot."""
        self._rules = [Rule.from_dict(doc.id, doc.data) for doc in snapshot]
        logger.debug(f"Rules snapshot: {len(self._rules)} rules")

        if self._bus:
            self._bus.publish(
                Event(
                    type="rules.updated",
                    source=self.id,
                    payload={"count": len(self._rules)},
                )
            )

    # =========================================================================
    # Creation
    # =========================================================================

    def create(self, draft: RuleDraft) -> Optional[str]:
        """
        Validate and store a new rule.

        Validation failures are rejected locally (nothing is written).
        Both failure kinds are reported as error feedback, never raised.

        Args:
            draft: The filled-in creation form

        Returns:
            The new rule's id, or None if validation or the write failed
        """
        try:
            draft.validate()
        except ValidationError as e:
            logger.info(f"Rejected rule draft: {e}")
            self._notify_error(MSG_REQUIRED)
            return None

        if not self._scope:
            logger.warning("Cannot create rule: store not attached")
            self._notify_error(MSG_CREATE_FAILED)
            return None

        try:
            rule_id = self._scope.append(RULES, draft.to_record())
        except FeedError as e:
            logger.error(f"Error adding rule {draft.name!r}: {e}", exc_info=True)
            self._notify_error(MSG_CREATE_FAILED)
            return None

        logger.info(f"Created rule {rule_id} ({draft.name})")
        if self._feedback:
            self._feedback.success(MSG_CREATED)
        return rule_id

    def _notify_error(self, message: str) -> None:
        if self._feedback:
            self._feedback.error(message)


def describe_rule(rule: Rule, devices: Iterable[Device]) -> str:
    """
    One-line, human-readable rule summary.

    Example:
        "If Living Room Thermostat is > 75, then set Ceiling Fan to on."
    """
    names = {d.id: d.name for d in devices}
    trigger_name = names.get(rule.trigger_device, "Device")
    action_name = names.get(rule.action_device, "Device")
    condition = rule.trigger_condition.value if rule.trigger_condition else "?"
    return (
        f"If {trigger_name} is {condition} {rule.trigger_value}, "
        f"then set {action_name} to {rule.action_value}."
    )


def condition_choices() -> List[str]:
    """Values offered by the form's condition picker."""
    return [c.value for c in TriggerCondition]


def action_type_choices() -> List[str]:
    """Values offered by the form's action type picker."""
    return [a.value for a in ActionType]
