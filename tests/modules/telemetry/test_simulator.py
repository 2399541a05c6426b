"""Tests for the TelemetrySimulator."""

import random
from datetime import datetime, timedelta, UTC

import pytest

from home_dashboard.core.bus import EventBus
from home_dashboard.core.feed import FeedScope, MockFeed
from home_dashboard.modules.devices import DeviceStore, Light, Thermostat, device_to_dict
from home_dashboard.modules.dispatch import FeedbackChannel, MutationDispatcher
from home_dashboard.modules.history import HistoryBuffer
from home_dashboard.modules.telemetry import TelemetrySimulator

NAMESPACE = "artifacts/app/users/u1"
DEVICES = f"{NAMESPACE}/devices"
HISTORY = f"{NAMESPACE}/history"

ON_THE_MINUTE = datetime(2025, 1, 1, 12, 30, 0, tzinfo=UTC)


class Harness:
    """Wires a simulator to a MockFeed-backed device store and history buffer."""

    def __init__(self, devices=None, seed: int = 42, **kwargs):
        self.feed = MockFeed()
        self.bus = EventBus()
        self.scope = FeedScope(self.feed, NAMESPACE)
        for device in devices or []:
            self.feed.write(DEVICES, device.id, device_to_dict(device), merge=False)

        feedback = FeedbackChannel(self.bus)
        self.devices = DeviceStore(seed_defaults=False, feedback=feedback)
        self.history = HistoryBuffer(feedback=feedback)
        self.dispatcher = MutationDispatcher(self.devices, feedback)
        self.simulator = TelemetrySimulator(
            self.devices,
            self.history,
            self.dispatcher,
            rng=random.Random(seed),
            **kwargs,
        )
        for module in (self.dispatcher, self.devices, self.history, self.simulator):
            module.attach(self.bus, self.scope)


@pytest.fixture
def harness():
    return Harness(
        devices=[Thermostat(id="thermostat-1", name="T", room="R", current_temp=75.0)]
    )


class TestTicks:
    def test_acts_only_at_second_zero(self, harness):
        assert harness.simulator.tick(ON_THE_MINUTE + timedelta(seconds=17)) is None
        assert harness.feed.documents(HISTORY) == {}

        assert harness.simulator.tick(ON_THE_MINUTE) is not None
        assert len(harness.feed.documents(HISTORY)) == 1

    def test_once_per_minute(self, harness):
        harness.simulator.tick(ON_THE_MINUTE)
        assert harness.simulator.tick(ON_THE_MINUTE + timedelta(milliseconds=400)) is None

        assert harness.simulator.tick(ON_THE_MINUTE + timedelta(minutes=1)) is not None
        assert len(harness.feed.documents(HISTORY)) == 2

    def test_next_tick(self, harness):
        assert harness.simulator.next_tick(ON_THE_MINUTE) == ON_THE_MINUTE + timedelta(seconds=1)

    def test_stopped_simulator_never_writes(self, harness):
        harness.simulator.detach()

        assert not harness.simulator.running
        assert harness.simulator.next_tick(ON_THE_MINUTE) is None
        assert harness.simulator.tick(ON_THE_MINUTE) is None
        assert harness.feed.documents(HISTORY) == {}


class TestReadings:
    def test_step_within_jitter(self, harness):
        value = harness.simulator.tick(ON_THE_MINUTE)

        assert 74.25 <= value <= 75.75

    def test_appends_history_and_updates_device(self, harness):
        value = harness.simulator.tick(ON_THE_MINUTE)

        [sample] = harness.history.window_for("thermostat-1")
        assert sample.value == value
        assert sample.timestamp == ON_THE_MINUTE
        assert harness.devices.get("thermostat-1").current_temp == value

    def test_random_walk_builds_on_last_value(self, harness):
        first = harness.simulator.tick(ON_THE_MINUTE)
        second = harness.simulator.tick(ON_THE_MINUTE + timedelta(minutes=1))

        assert abs(second - first) <= 0.75

    def test_seeded_rng_is_reproducible(self):
        thermostat = Thermostat(id="thermostat-1", name="T", room="R", current_temp=75.0)
        a = Harness(devices=[thermostat], seed=7)
        b = Harness(devices=[thermostat], seed=7)

        assert a.simulator.tick(ON_THE_MINUTE) == b.simulator.tick(ON_THE_MINUTE)

    def test_unknown_reading_uses_default(self):
        harness = Harness(
            devices=[Thermostat(id="thermostat-1", name="T", room="R", current_temp=None)],
            jitter=0.0,
        )

        assert harness.simulator.tick(ON_THE_MINUTE) == 75.0

    def test_missing_device_records_history_only(self):
        harness = Harness(
            devices=[Light(id="light-1", name="L", room="R")],
            jitter=0.0,
            default_value=70.0,
        )
        harness.feed.clear_calls()

        assert harness.simulator.tick(ON_THE_MINUTE) == 70.0
        assert len(harness.feed.documents(HISTORY)) == 1
        assert harness.feed.get_writes() == []

    def test_append_failure_still_updates_device(self, harness):
        harness.feed.fail_on("append", "history")

        value = harness.simulator.tick(ON_THE_MINUTE)

        assert harness.devices.get("thermostat-1").current_temp == value
        assert harness.history.window_for("thermostat-1") == []

    def test_dump_state(self, harness):
        harness.simulator.tick(ON_THE_MINUTE)

        state = harness.simulator.dump_state()
        assert state["running"] is True
        assert state["readings"] == 1
        assert state["last_emitted"] == ON_THE_MINUTE.isoformat()
