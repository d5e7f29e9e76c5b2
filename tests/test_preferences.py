"""
Tests for SchedulingPolicy (policy knobs) and its environment overrides.
"""

from datetime import time, timedelta

import pytest

from goal_scheduler.errors import InvalidInput
from goal_scheduler.planning.preferences import SchedulingPolicy, parse_hhmm, policy_from_env

ENV_VARS = (
    "SCHEDULER_TZ",
    "SCHEDULER_DAY_START",
    "SCHEDULER_DAY_END",
    "SCHEDULER_BUFFER_MINUTES",
    "SCHEDULER_GRANULARITY_MINUTES",
    "SCHEDULER_MAX_SCAN_STEPS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_match_product_policy():
    policy = policy_from_env()
    assert policy == SchedulingPolicy()
    assert policy.day_start == time(8, 0)
    assert policy.day_end == time(21, 0)
    assert policy.buffer == timedelta(0)
    assert policy.granularity == timedelta(minutes=15)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SCHEDULER_TZ", "Europe/Berlin")
    monkeypatch.setenv("SCHEDULER_DAY_START", "09:30")
    monkeypatch.setenv("SCHEDULER_DAY_END", "18:00")
    monkeypatch.setenv("SCHEDULER_BUFFER_MINUTES", "10")
    monkeypatch.setenv("SCHEDULER_MAX_SCAN_STEPS", "100")

    policy = policy_from_env()

    assert policy.tz_name == "Europe/Berlin"
    assert policy.day_start == time(9, 30)
    assert policy.day_end == time(18, 0)
    assert policy.buffer_minutes == 10
    assert policy.max_scan_steps == 100
    assert policy.granularity_minutes == 15


@pytest.mark.parametrize(
    "name,value",
    [
        ("SCHEDULER_BUFFER_MINUTES", "ten"),
        ("SCHEDULER_DAY_START", "8am"),
        ("SCHEDULER_TZ", "Mars/Olympus_Mons"),
        ("SCHEDULER_GRANULARITY_MINUTES", "0"),
    ],
)
def test_malformed_env_values_are_invalid_input(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(InvalidInput):
        policy_from_env()


def test_inverted_business_hours_rejected():
    with pytest.raises(InvalidInput):
        SchedulingPolicy(day_start=time(18, 0), day_end=time(9, 0))


def test_parse_hhmm():
    assert parse_hhmm("07:05") == time(7, 5)
    for bad in ("7:05", "24:00", "12:60", "noon"):
        with pytest.raises(InvalidInput):
            parse_hhmm(bad)
