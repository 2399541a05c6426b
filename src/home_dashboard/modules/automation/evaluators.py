"""
Trigger evaluators for the automation engine.

Each evaluator checks one trigger condition against a device's current
reading. Evaluators never raise: malformed values simply make the
condition false.
"""

import logging
import math
import re
from typing import Optional

from home_dashboard.modules.devices import Device, is_on, numeric_reading

from .models import ON_TOKEN, Rule, TriggerCondition

logger = logging.getLogger(__name__)

# Leading ASCII decimal number, the way a lenient float parser reads "75.5F" as 75.5
_NUMBER_PREFIX = re.compile(
    r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)",
    re.ASCII,
)


def parse_number(value: str) -> float:
    """
    Parse the numeric prefix of a string.

    Leading whitespace is ignored and trailing garbage after the number is
    dropped ("75F" -> 75.0). Anything without a numeric prefix yields NaN,
    which compares false against everything.

    Args:
        value: User-entered value

    Returns:
        Parsed number, or NaN
    """
    match = _NUMBER_PREFIX.match(str(value).lstrip())
    if not match:
        return math.nan
    return float(match.group(0).replace("Infinity", "inf"))


def is_on_token(value: str) -> bool:
    """True only for the literal "on" token."""
    return value == ON_TOKEN


def check_numeric(device: Device, condition: TriggerCondition, threshold: float) -> bool:
    """Compare the device's numeric reading with a threshold."""
    reading = numeric_reading(device)
    if reading is None:
        logger.debug(f"{device.id} has no numeric reading, condition false")
        return False

    if condition == TriggerCondition.GREATER_THAN:
        return reading > threshold
    if condition == TriggerCondition.LESS_THAN:
        return reading < threshold
    return False


def check_switch(device: Device, expected_on: bool) -> bool:
    """Compare the device's on/off state with the expected state."""
    state = is_on(device)
    if state is None:
        logger.debug(f"{device.id} has no on/off state, condition false")
        return False
    return state == expected_on


def trigger_holds(rule: Rule, device: Device) -> bool:
    """
    Evaluate a rule's trigger against its (resolved) trigger device.

    Args:
        rule: The rule
        device: The rule's trigger device

    Returns:
        True if the trigger condition is met
    """
    condition: Optional[TriggerCondition] = rule.trigger_condition

    if condition in (TriggerCondition.GREATER_THAN, TriggerCondition.LESS_THAN):
        return check_numeric(device, condition, parse_number(rule.trigger_value))
    elif condition == TriggerCondition.EQUALS:
        return check_switch(device, is_on_token(rule.trigger_value))
    else:
        logger.debug(f"Rule {rule.id} has no usable trigger condition")
        return False
