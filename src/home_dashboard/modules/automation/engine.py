"""
Automation engine - core rule evaluation logic.

evaluate() is a pure function from a device snapshot and an ordered rule
list to the device mutations that should be written. It runs one pass over
the rules with no fixpoint iteration: a mutation emitted in this pass is
never a trigger for another rule in the same pass.

The idempotence guard (emit only when the action device is not already in
the desired state) is what stops the feedback loop: once a mutation has
been persisted and delivered back, the next pass emits nothing for it.
"""

import logging
from collections import deque
from datetime import datetime, UTC
from typing import Deque, Dict, Iterable, List, Optional, Sequence

from home_dashboard.modules.devices import Device, Mutation, has_on_off

from .evaluators import is_on_token, trigger_holds
from .models import EngineResult, Rule, RuleFiring

logger = logging.getLogger(__name__)


def index_devices(devices: Iterable[Device]) -> Dict[str, Device]:
    """Map device id -> device; the first occurrence of an id wins."""
    by_id: Dict[str, Device] = {}
    for device in devices:
        by_id.setdefault(device.id, device)
    return by_id


def desired_state(rule: Rule) -> bool:
    """
    On/off state a firing rule asks for.

    Every action writes the action device's on/off switch, whatever the
    action type: "on" means on, anything else means off.
    """
    return is_on_token(rule.action_value)


def evaluate_rule(rule: Rule, devices: Dict[str, Device]) -> Optional[Mutation]:
    """
    Evaluate one rule against an indexed device snapshot.

    Returns:
        The mutation to emit, or None when the rule does not fire
    """
    trigger_device = devices.get(rule.trigger_device)
    if trigger_device is None:
        logger.debug(f"Rule {rule.id}: trigger device {rule.trigger_device!r} missing, skipping")
        return None

    if not trigger_holds(rule, trigger_device):
        return None

    action_device = devices.get(rule.action_device)
    if action_device is None:
        logger.debug(f"Rule {rule.id}: action device {rule.action_device!r} missing, skipping")
        return None

    if not has_on_off(action_device):
        logger.debug(f"Rule {rule.id}: {action_device.id} has no on/off switch, skipping")
        return None

    desired = desired_state(rule)
    if action_device.is_on == desired:
        return None

    return Mutation(
        device_id=action_device.id,
        field="isOn",
        new_value=desired,
        rule_id=rule.id,
        rule_name=rule.name,
    )


def evaluate(devices: Iterable[Device], rules: Sequence[Rule]) -> List[Mutation]:
    """
    Evaluate all rules once, in order.

    For each rule: resolve the trigger device (skip if missing), check the
    trigger against its current reading, resolve the action device (skip if
    missing) and emit a mutation only if the device is not already in the
    desired state.

    Checks run against the input snapshot, not against mutations emitted
    earlier in the pass. The first rule that emits a mutation for a device
    owns that device for the rest of the pass; later rules targeting it are
    skipped.

    Args:
        devices: Current device snapshot
        rules: Rules in insertion order

    Returns:
        Mutations to apply, in rule order (possibly empty)
    """
    by_id = index_devices(devices)
    mutations: List[Mutation] = []
    claimed = set()

    for rule in rules:
        if rule.action_device in claimed:
            logger.debug(f"Rule {rule.id}: {rule.action_device} already changed this pass")
            continue

        mutation = evaluate_rule(rule, by_id)
        if mutation is None:
            continue

        claimed.add(mutation.device_id)
        mutations.append(mutation)

    return mutations


def is_dangling(rule: Rule, devices: Dict[str, Device]) -> bool:
    """True if the rule references a device that is not in the snapshot."""
    return rule.trigger_device not in devices or rule.action_device not in devices


class RuleEngine:
    """
    Stateful wrapper around evaluate().

    Adds what the pure function leaves out:
    - counts and dangling-reference reporting per pass
    - a bounded history of rule firings (for debugging)

    The mutations it returns are exactly those of evaluate().
    """

    HISTORY_SIZE = 100  # Number of firings to keep in history

    def __init__(self) -> None:
        self._history: Deque[RuleFiring] = deque(maxlen=self.HISTORY_SIZE)

    def run(
        self,
        devices: Iterable[Device],
        rules: Sequence[Rule],
    ) -> EngineResult:
        """
        Run one evaluation pass.

        Args:
            devices: Current device snapshot
            rules: Rules in insertion order

        Returns:
            EngineResult with the emitted mutations
        """
        device_list = list(devices)
        by_id = index_devices(device_list)
        result = EngineResult(rules_evaluated=len(rules))

        for rule in rules:
            if is_dangling(rule, by_id):
                result.rules_skipped.append(rule.id)

        if result.rules_skipped:
            logger.debug(f"Rules with missing devices: {result.rules_skipped}")

        result.mutations = evaluate(device_list, rules)
        result.rules_triggered = len(result.mutations)
        return result

    # =========================================================================
    # History
    # =========================================================================

    def record_firing(
        self,
        mutation: Mutation,
        success: bool = True,
        error: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Record the outcome of applying a rule's mutation."""
        self._history.append(
            RuleFiring(
                rule_id=mutation.rule_id or "",
                rule_name=mutation.rule_name or "",
                device_id=mutation.device_id,
                field=mutation.field,
                new_value=mutation.new_value,
                timestamp=now or datetime.now(UTC),
                success=success,
                error=error,
            )
        )

    def get_history(
        self,
        rule_id: Optional[str] = None,
        device_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[RuleFiring]:
        """
        Get firing history.

        Args:
            rule_id: Filter by rule (optional)
            device_id: Filter by action device (optional)
            limit: Maximum entries to return

        Returns:
            List of RuleFiring records (newest first)
        """
        result = []
        for firing in reversed(self._history):
            if rule_id and firing.rule_id != rule_id:
                continue
            if device_id and firing.device_id != device_id:
                continue
            result.append(firing)
            if len(result) >= limit:
                break
        return result

    def clear_history(self) -> None:
        self._history.clear()
