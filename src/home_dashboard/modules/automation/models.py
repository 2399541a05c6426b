"""
Data models for the automation engine.

A rule is a single trigger/action pair:

    if <trigger device> <condition> <trigger value>
    then set <action device> to <action value>

Trigger and action values are kept as the strings the user typed; they are
parsed in context (as a number for ">"/"<", as an "on"/"off" token
otherwise).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from home_dashboard.modules.devices import Mutation


# =============================================================================
# Enums
# =============================================================================


class TriggerCondition(Enum):
    """Comparison applied to the trigger device's current reading."""

    GREATER_THAN = ">"  # Numeric reading above value
    LESS_THAN = "<"  # Numeric reading below value
    EQUALS = "=="  # On/off state equals "on"/"off" token

    @classmethod
    def parse(cls, value: Any) -> Optional["TriggerCondition"]:
        """Parse a stored condition, None if unrecognized."""
        try:
            return cls(str(value).strip())
        except ValueError:
            return None


class ActionType(Enum):
    """Kind of action the rule form offers."""

    TOGGLE = "toggle"  # Switch on/off
    SET = "set"  # Numeric set (accepted, applied as on/off)

    @classmethod
    def parse(cls, value: Any) -> Optional["ActionType"]:
        """Parse a stored action type, None if unrecognized."""
        try:
            return cls(str(value).strip())
        except ValueError:
            return None


ON_TOKEN = "on"
OFF_TOKEN = "off"


# =============================================================================
# Rule
# =============================================================================


@dataclass(frozen=True)
class Rule:
    """
    A user-defined automation rule.

    Rules may reference devices that do not exist (yet or anymore);
    the engine skips them.
    """

    id: str
    name: str
    trigger_device: str
    trigger_condition: Optional[TriggerCondition]
    trigger_value: str
    action_device: str
    action_type: Optional[ActionType] = ActionType.TOGGLE
    action_value: str = ON_TOKEN

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the feed document layout (id is the document key)."""
        return {
            "name": self.name,
            "triggerDevice": self.trigger_device,
            "triggerCondition": self.trigger_condition.value if self.trigger_condition else "",
            "triggerValue": self.trigger_value,
            "actionDevice": self.action_device,
            "actionType": self.action_type.value if self.action_type else "",
            "actionValue": self.action_value,
        }

    @classmethod
    def from_dict(cls, doc_id: str, data: Dict[str, Any]) -> "Rule":
        """Deserialize a feed document. Missing fields become empty strings."""
        return cls(
            id=doc_id,
            name=str(data.get("name", "")),
            trigger_device=str(data.get("triggerDevice", "")),
            trigger_condition=TriggerCondition.parse(data.get("triggerCondition", "")),
            trigger_value=str(data.get("triggerValue", "")),
            action_device=str(data.get("actionDevice", "")),
            action_type=ActionType.parse(data.get("actionType", "")),
            action_value=str(data.get("actionValue", "")),
        )


# =============================================================================
# Execution Records
# =============================================================================


@dataclass
class RuleFiring:
    """Record of a rule emitting a mutation (for history/debugging)."""

    rule_id: str
    rule_name: str
    device_id: str
    field: str
    new_value: Any
    timestamp: datetime
    success: bool = True
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "device_id": self.device_id,
            "field": self.field,
            "new_value": self.new_value,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "error": self.error,
        }


@dataclass
class EngineResult:
    """Result of one evaluation pass."""

    rules_evaluated: int = 0
    rules_triggered: int = 0
    rules_skipped: List[str] = field(default_factory=list)  # Dangling references
    mutations: List[Mutation] = field(default_factory=list)
