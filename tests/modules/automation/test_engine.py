"""Tests for the automation engine."""

import pytest

from home_dashboard.modules.automation import (
    ActionType,
    Rule,
    RuleEngine,
    TriggerCondition,
    evaluate,
)
from home_dashboard.modules.devices import (
    Fan,
    HumiditySensor,
    Light,
    Mutation,
    Thermostat,
    apply_mutation,
)


def make_rule(
    rule_id: str = "r1",
    trigger_device: str = "t1",
    condition: str = ">",
    trigger_value: str = "75",
    action_device: str = "f1",
    action_type: str = "toggle",
    action_value: str = "on",
    name: str = "Cool down",
) -> Rule:
    """Helper to build rules the way they arrive from the feed."""
    return Rule(
        id=rule_id,
        name=name,
        trigger_device=trigger_device,
        trigger_condition=TriggerCondition.parse(condition),
        trigger_value=trigger_value,
        action_device=action_device,
        action_type=ActionType.parse(action_type),
        action_value=action_value,
    )


@pytest.fixture
def warm_thermostat():
    return Thermostat(id="t1", name="Thermostat", room="Living Room", current_temp=76.0)


@pytest.fixture
def fan_off():
    return Fan(id="f1", name="Fan", room="Living Room", is_on=False)


def apply_all(devices, mutations):
    """Apply mutations to a device list (what the feed round trip does)."""
    result = []
    for device in devices:
        for m in mutations:
            if m.device_id == device.id:
                device = apply_mutation(device, m)
        result.append(device)
    return result


class TestScenarios:
    """The reference scenarios."""

    def test_warm_thermostat_turns_fan_on(self, warm_thermostat, fan_off):
        """76 > 75 with the fan off emits exactly one isOn=True."""
        mutations = evaluate([warm_thermostat, fan_off], [make_rule()])

        assert mutations == [Mutation(device_id="f1", field="isOn", new_value=True)]
        assert mutations[0].rule_name == "Cool down"
        assert mutations[0].rule_id == "r1"

    def test_fan_already_on_emits_nothing(self, warm_thermostat):
        """Idempotence guard: no write when already in desired state."""
        fan_on = Fan(id="f1", name="Fan", room="Living Room", is_on=True)

        assert evaluate([warm_thermostat, fan_on], [make_rule()]) == []

    def test_missing_trigger_device(self, warm_thermostat, fan_off):
        """Dangling trigger reference is skipped without error."""
        rule = make_rule(trigger_device="missing-1")

        assert evaluate([warm_thermostat, fan_off], [rule]) == []

    def test_non_numeric_trigger_value(self, warm_thermostat, fan_off):
        """'warm' parses to NaN, so '>' is false."""
        rule = make_rule(trigger_value="warm")

        assert evaluate([warm_thermostat, fan_off], [rule]) == []


class TestTriggers:
    """Tests for trigger conditions."""

    def test_less_than(self, fan_off):
        cold = Thermostat(id="t1", name="T", room="R", current_temp=60.0)
        rule = make_rule(condition="<", trigger_value="65")

        assert len(evaluate([cold, fan_off], [rule])) == 1

    def test_greater_than_is_strict(self, fan_off):
        exact = Thermostat(id="t1", name="T", room="R", current_temp=75.0)

        assert evaluate([exact, fan_off], [make_rule()]) == []

    def test_numeric_prefix_is_used(self, warm_thermostat, fan_off):
        """'75F' compares as 75."""
        rule = make_rule(trigger_value="75F")

        assert len(evaluate([warm_thermostat, fan_off], [rule])) == 1

    def test_thermostat_without_reading_never_fires(self, fan_off):
        unknown = Thermostat(id="t1", name="T", room="R", current_temp=None)

        assert evaluate([unknown, fan_off], [make_rule()]) == []

    def test_numeric_trigger_on_non_thermostat_is_false(self, fan_off):
        """Only thermostats expose a numeric reading."""
        sensor = HumiditySensor(id="h1", name="H", room="R", humidity=90.0)
        rule = make_rule(trigger_device="h1", trigger_value="50")

        assert evaluate([sensor, fan_off], [rule]) == []

    def test_equals_on(self, fan_off):
        light = Light(id="l1", name="Light", room="R", is_on=True)
        rule = make_rule(trigger_device="l1", condition="==", trigger_value="on")

        assert len(evaluate([light, fan_off], [rule])) == 1

    def test_equals_off(self, fan_off):
        light = Light(id="l1", name="Light", room="R", is_on=False)
        rule = make_rule(trigger_device="l1", condition="==", trigger_value="off")

        assert len(evaluate([light, fan_off], [rule])) == 1

    def test_equals_on_thermostat_never_holds(self, warm_thermostat, fan_off):
        """Thermostats have no on/off state."""
        rule = make_rule(condition="==", trigger_value="off")

        assert evaluate([warm_thermostat, fan_off], [rule]) == []

    def test_unknown_condition_never_holds(self, warm_thermostat, fan_off):
        rule = make_rule(condition=">=")

        assert rule.trigger_condition is None
        assert evaluate([warm_thermostat, fan_off], [rule]) == []


class TestActions:
    """Tests for action resolution."""

    def test_missing_action_device(self, warm_thermostat):
        rule = make_rule(action_device="missing-2")

        assert evaluate([warm_thermostat], [rule]) == []

    def test_action_off(self, warm_thermostat):
        fan_on = Fan(id="f1", name="Fan", room="R", is_on=True)
        rule = make_rule(action_value="off")

        assert evaluate([warm_thermostat, fan_on], [rule]) == [
            Mutation(device_id="f1", field="isOn", new_value=False)
        ]

    def test_set_action_type_still_writes_switch(self, warm_thermostat, fan_off):
        """Action type does not change what is written."""
        rule = make_rule(action_type="set", action_value="on")

        mutations = evaluate([warm_thermostat, fan_off], [rule])
        assert mutations == [Mutation(device_id="f1", field="isOn", new_value=True)]

    def test_numeric_action_value_means_off(self, warm_thermostat):
        """Anything but 'on' asks for off."""
        fan_on = Fan(id="f1", name="Fan", room="R", is_on=True)
        rule = make_rule(action_type="set", action_value="50")

        assert evaluate([warm_thermostat, fan_on], [rule]) == [
            Mutation(device_id="f1", field="isOn", new_value=False)
        ]

    def test_action_on_device_without_switch(self, warm_thermostat):
        sensor = HumiditySensor(id="h1", name="H", room="R")
        rule = make_rule(action_device="h1")

        assert evaluate([warm_thermostat, sensor], [rule]) == []


class TestProperties:
    """Engine-wide properties."""

    def test_pure(self, warm_thermostat, fan_off):
        devices = [warm_thermostat, fan_off]
        rules = [make_rule(), make_rule(rule_id="r2", action_value="off")]

        assert evaluate(devices, rules) == evaluate(devices, rules)
        assert devices == [warm_thermostat, fan_off]

    def test_no_oscillation_after_apply(self, warm_thermostat, fan_off):
        devices = [warm_thermostat, fan_off]
        rules = [make_rule()]

        first = evaluate(devices, rules)
        assert len(first) == 1

        second = evaluate(apply_all(devices, first), rules)
        assert second == []

    def test_rule_order_first_wins(self, warm_thermostat, fan_off):
        """Only the first firing rule for a device emits in one pass."""
        rules = [
            make_rule(rule_id="a", name="First", action_value="on"),
            make_rule(rule_id="b", name="Second", action_value="on"),
            make_rule(rule_id="c", name="Third", action_value="off"),
        ]

        mutations = evaluate([warm_thermostat, fan_off], rules)

        assert len(mutations) == 1
        assert mutations[0].rule_id == "a"
        assert mutations[0].new_value is True

    def test_noop_rule_does_not_claim_device(self, warm_thermostat, fan_off):
        """A satisfied rule that needs no change lets later rules fire."""
        rules = [
            make_rule(rule_id="a", action_value="off"),
            make_rule(rule_id="b", action_value="on"),
        ]

        mutations = evaluate([warm_thermostat, fan_off], rules)

        assert [m.rule_id for m in mutations] == ["b"]

    def test_independent_devices_both_fire(self, warm_thermostat, fan_off):
        light = Light(id="l1", name="Light", room="R", is_on=False)
        rules = [make_rule(rule_id="a"), make_rule(rule_id="b", action_device="l1")]

        mutations = evaluate([warm_thermostat, fan_off, light], rules)

        assert [m.device_id for m in mutations] == ["f1", "l1"]

    def test_fired_mutation_is_not_a_trigger(self, warm_thermostat, fan_off):
        """No chaining: fan turning on in this pass does not fire a rule on the fan."""
        light = Light(id="l1", name="Light", room="R", is_on=False)
        rules = [
            make_rule(rule_id="a"),
            make_rule(
                rule_id="b",
                trigger_device="f1",
                condition="==",
                trigger_value="on",
                action_device="l1",
            ),
        ]

        mutations = evaluate([warm_thermostat, fan_off, light], rules)

        assert [m.rule_id for m in mutations] == ["a"]

    def test_empty_inputs(self):
        assert evaluate([], []) == []


class TestRuleEngine:
    """Tests for the stateful engine wrapper."""

    def test_run_counts(self, warm_thermostat, fan_off):
        engine = RuleEngine()
        rules = [make_rule(), make_rule(rule_id="r2", trigger_device="gone")]

        result = engine.run([warm_thermostat, fan_off], rules)

        assert result.rules_evaluated == 2
        assert result.rules_triggered == 1
        assert result.rules_skipped == ["r2"]
        assert result.mutations == evaluate([warm_thermostat, fan_off], rules)

    def test_history_newest_first(self):
        engine = RuleEngine()
        engine.record_firing(Mutation("f1", "isOn", True, rule_id="a", rule_name="A"))
        engine.record_firing(Mutation("l1", "isOn", False, rule_id="b", rule_name="B"))

        history = engine.get_history()
        assert [h.rule_id for h in history] == ["b", "a"]

        assert [h.rule_id for h in engine.get_history(device_id="f1")] == ["a"]
        assert len(engine.get_history(limit=1)) == 1

    def test_history_is_bounded(self):
        engine = RuleEngine()
        for i in range(RuleEngine.HISTORY_SIZE + 5):
            engine.record_firing(Mutation("f1", "isOn", True, rule_id=str(i)))

        history = engine.get_history(limit=1000)
        assert len(history) == RuleEngine.HISTORY_SIZE
        assert history[0].rule_id == str(RuleEngine.HISTORY_SIZE + 4)
