"""
Automation engine for home-dashboard.

Evaluates user-defined if-then rules against live device readings and
issues idempotent corrective actions.

Features:
- Numeric (">", "<") and on/off ("==") triggers
- Pure, single-pass evaluation in rule order
- Idempotence guard (no write when the device is already in the desired state)
- Dangling device references are skipped, never errors
- Create-only rule store with local form validation
- Firing history for debugging

Architecture:

    devices.updated / rules.updated
                 │
                 ▼
    ┌─────────────────────────┐      ┌────────────────────┐
    │    AutomationModule     │─────▶│ MutationDispatcher │──▶ feed
    │  evaluate(devices,      │      └────────────────────┘
    │           rules)        │
    └─────────────────────────┘
"""

from .models import (
    TriggerCondition,
    ActionType,
    Rule,
    RuleFiring,
    EngineResult,
    ON_TOKEN,
    OFF_TOKEN,
)
from .evaluators import parse_number, is_on_token, trigger_holds
from .engine import RuleEngine, evaluate, evaluate_rule, desired_state
from .store import (
    RuleDraft,
    RuleStore,
    describe_rule,
    condition_choices,
    action_type_choices,
)
from .module import AutomationModule

__all__ = [
    # Module
    "AutomationModule",
    # Engine
    "RuleEngine",
    "evaluate",
    "evaluate_rule",
    "desired_state",
    "EngineResult",
    # Evaluators
    "parse_number",
    "is_on_token",
    "trigger_holds",
    # Models
    "TriggerCondition",
    "ActionType",
    "Rule",
    "RuleFiring",
    "ON_TOKEN",
    "OFF_TOKEN",
    # Store
    "RuleDraft",
    "RuleStore",
    "describe_rule",
    "condition_choices",
    "action_type_choices",
]
