#!/usr/bin/env python3
"""
Quick example demonstrating home-dashboard basic usage.

Run with: PYTHONPATH=src python3 example.py
"""

import random
from datetime import datetime, timedelta, UTC

from home_dashboard import DashboardConfig, MockAuthProvider, MockFeed, Session
from home_dashboard.core.bus import EventFilter
from home_dashboard.modules.automation import RuleDraft, describe_rule

print("=" * 60)
print("home-dashboard Example")
print("=" * 60)

# 1. Session
print("\n1. Starting session...")
feed = MockFeed()
session = Session(
    feed,
    MockAuthProvider(),
    DashboardConfig(app_id="example-app"),
    token="custom-token",
    rng=random.Random(0),
)
session.bus.subscribe(
    lambda e: print(f"   ! {e.payload['type']}: {e.payload['message']}"),
    EventFilter(event_type="feedback"),
)
identity = session.start()
print(f"   ✓ Signed in as {identity.user_id} (namespace={session.namespace})")

# 2. Devices (seeded into the empty store)
print("\n2. Devices by room...")
for room, devices in session.devices.by_room().items():
    print(f"   {room}: {[d.name for d in devices]}")

# 3. User actions
print("\n3. Toggling the kitchen light and dimming the lamp...")
session.toggle("light-2")
session.set_brightness("light-3", 20)
print(f"   ✓ Kitchen light on={session.devices.get('light-2').is_on}")

# 4. Create a rule
print("\n4. Creating a rule...")
draft = RuleDraft(
    name="Cool down",
    trigger_device="thermostat-1",
    trigger_condition=">",
    trigger_value="74",
    action_device="fan-1",
    action_type="toggle",
    action_value="on",
)
rule_id = session.create_rule(draft)
rule = session.rules.get(rule_id)
print(f"   ✓ {describe_rule(rule, session.devices.list())}")
print(f"   ✓ Ceiling fan on={session.devices.get('fan-1').is_on}")

# 5. Simulated telemetry
print("\n5. Running the telemetry simulator for five minutes...")
start = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)
for minute in range(5):
    session.tick(start + timedelta(minutes=minute))
for label, value in session.history.chart_points("thermostat-1"):
    print(f"   {label}  {value:.2f}°F")

# 6. Teardown
print("\n6. Closing session...")
session.close()
print(f"   ✓ Open subscriptions: {feed.subscriber_count()}")

print("\n" + "=" * 60)
print("Example complete!")
print("=" * 60)
