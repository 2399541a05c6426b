"""Tests for the AutomationModule wiring."""

import pytest

from home_dashboard.core.bus import EventBus, EventFilter
from home_dashboard.core.feed import FeedScope, MockFeed
from home_dashboard.modules.automation import AutomationModule, RuleDraft, RuleStore
from home_dashboard.modules.devices import (
    DeviceStore,
    Fan,
    Thermostat,
    device_to_dict,
)
from home_dashboard.modules.dispatch import FeedbackChannel, FeedbackType, MutationDispatcher

NAMESPACE = "artifacts/app/users/u1"
DEVICES = f"{NAMESPACE}/devices"
RULES = f"{NAMESPACE}/rules"


class Harness:
    """Minimal session wiring around a MockFeed."""

    def __init__(self, feed: MockFeed) -> None:
        self.feed = feed
        self.bus = EventBus()
        self.feedback = FeedbackChannel(self.bus)
        self.devices = DeviceStore(seed_defaults=False, feedback=self.feedback)
        self.rules = RuleStore(feedback=self.feedback)
        self.dispatcher = MutationDispatcher(self.devices, self.feedback)
        self.automation = AutomationModule(self.devices, self.rules, self.dispatcher)

        scope = FeedScope(feed, NAMESPACE)
        for module in (self.dispatcher, self.automation, self.devices, self.rules):
            module.attach(self.bus, scope)

    def add_rule(self, **overrides) -> str:
        values = dict(
            name="Cool down",
            trigger_device="thermostat-1",
            trigger_condition=">",
            trigger_value="75",
            action_device="fan-1",
            action_type="toggle",
            action_value="on",
        )
        values.update(overrides)
        return self.rules.create(RuleDraft(**values))


def put_device(feed: MockFeed, device) -> None:
    feed.write(DEVICES, device.id, device_to_dict(device), merge=False)


@pytest.fixture
def feed():
    feed = MockFeed()
    put_device(feed, Thermostat(id="thermostat-1", name="Thermostat", room="Living", current_temp=72.0))
    put_device(feed, Fan(id="fan-1", name="Ceiling Fan", room="Living", is_on=False))
    return feed


@pytest.fixture
def harness(feed):
    return Harness(feed)


def fan_is_on(harness: Harness) -> bool:
    return harness.devices.get("fan-1").is_on


class TestAutomationModule:
    def test_rule_creation_triggers_evaluation(self, harness, feed):
        """A new rule whose condition already holds fires immediately."""
        feed.write(DEVICES, "thermostat-1", {"currentTemp": 77.0})
        assert not fan_is_on(harness)

        harness.add_rule()

        assert fan_is_on(harness)
        messages = [(f.message, f.type) for f in harness.feedback.history()]
        assert ("Rule triggered: Cool down", FeedbackType.SUCCESS) in messages

    def test_device_change_triggers_evaluation(self, harness, feed):
        harness.add_rule()
        assert not fan_is_on(harness)

        feed.write(DEVICES, "thermostat-1", {"currentTemp": 76.0})

        assert fan_is_on(harness)

    def test_single_write_per_firing(self, harness, feed):
        """Feedback loop settles: exactly one isOn write, no oscillation."""
        harness.add_rule()
        feed.clear_calls()

        feed.write(DEVICES, "thermostat-1", {"currentTemp": 76.0})
        feed.write(DEVICES, "thermostat-1", {"currentTemp": 77.0})
        feed.write(DEVICES, "thermostat-1", {"currentTemp": 78.0})

        fan_writes = feed.get_writes("devices")
        assert [w for w in fan_writes if w[0] == "fan-1"] == [("fan-1", {"isOn": True})]

    def test_one_notification_per_mutation(self, harness, feed):
        events = []
        harness.bus.subscribe(events.append, EventFilter(event_type="automation.fired"))
        harness.add_rule()

        feed.write(DEVICES, "thermostat-1", {"currentTemp": 80.0})

        fired = [f for f in harness.feedback.history() if f.message.startswith("Rule triggered")]
        assert len(fired) == 1
        assert len(events) == 1
        assert events[0].device_id == "fan-1"

    def test_dispatch_failure_reports_error(self, harness, feed):
        harness.add_rule()

        # Let the reading through, then fail the rule's write on delivery
        feed.set_deliver(False)
        feed.write(DEVICES, "thermostat-1", {"currentTemp": 80.0})
        feed.fail_on("write", "devices")
        feed.set_deliver(True)

        assert not fan_is_on(harness)
        assert harness.feedback.latest.type == FeedbackType.ERROR
        history = harness.automation.get_history()
        assert history[0]["success"] is False

    def test_disabled_module_does_nothing(self, harness, feed):
        harness.automation.set_enabled(False)
        harness.add_rule()

        feed.write(DEVICES, "thermostat-1", {"currentTemp": 80.0})
        assert not fan_is_on(harness)

        harness.automation.set_enabled(True)
        assert fan_is_on(harness)

    def test_detach_stops_evaluation(self, harness, feed):
        harness.add_rule()
        harness.automation.detach()

        feed.write(DEVICES, "thermostat-1", {"currentTemp": 80.0})

        assert not fan_is_on(harness)

    def test_dangling_rule_is_ignored(self, harness, feed):
        harness.add_rule(trigger_device="missing-1")

        feed.write(DEVICES, "thermostat-1", {"currentTemp": 80.0})

        assert not fan_is_on(harness)
        assert harness.feedback.latest.message == "Rule created successfully!"

    def test_history_records_firing(self, harness, feed):
        harness.add_rule()
        feed.write(DEVICES, "thermostat-1", {"currentTemp": 80.0})

        history = harness.automation.get_history()
        assert len(history) == 1
        assert history[0]["rule_name"] == "Cool down"
        assert history[0]["device_id"] == "fan-1"
        assert history[0]["new_value"] is True
