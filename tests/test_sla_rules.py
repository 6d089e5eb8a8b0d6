from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from incident_sla.config import Priority, VALID_PRIORITIES
from incident_sla.core import ConfigurationException
from incident_sla.sla.domain import (
    DEFAULT_SLA_RULES, SLACalculator, SLAConfig, SLARule, SLARuleTable
)
from incident_sla.sla.infrastructure import YAMLConfigProvider

from conftest import T0


@pytest.mark.parametrize("priority", VALID_PRIORITIES)
def test_deadlines_follow_rule_for_every_priority(priority):
    rule = DEFAULT_SLA_RULES[priority]
    deadlines = SLACalculator.compute_deadlines(T0, priority)

    assert deadlines.ack_by == T0 + timedelta(minutes=rule.acknowledgment_minutes)
    assert deadlines.resolve_by == T0 + timedelta(minutes=rule.resolution_minutes)
    assert deadlines.resolve_by >= deadlines.ack_by


def test_critical_ticket_deadlines():
    deadlines = SLACalculator.compute_deadlines(T0, Priority.CRITICAL)

    assert deadlines.ack_by == datetime(2025, 1, 1, 0, 15, tzinfo=timezone.utc)
    assert deadlines.resolve_by == datetime(2025, 1, 1, 4, 0, tzinfo=timezone.utc)


def test_priority_lookup_is_case_insensitive():
    deadlines = SLACalculator.compute_deadlines(T0, "HIGH")
    assert deadlines.ack_by == T0 + timedelta(minutes=30)


def test_unrecognized_priority_fails_open_to_least_urgent(caplog):
    deadlines = SLACalculator.compute_deadlines(T0, "sev0")

    assert deadlines.ack_by == T0 + timedelta(minutes=240)
    assert deadlines.resolve_by == T0 + timedelta(minutes=5760)
    assert "Unrecognized priority" in caplog.text


def test_rule_rejects_resolution_shorter_than_ack():
    with pytest.raises(ConfigurationException):
        SLARule("broken", acknowledgment_minutes=60, resolution_minutes=30)


def test_rule_rejects_non_positive_window():
    with pytest.raises(ConfigurationException):
        SLARule("broken", acknowledgment_minutes=0, resolution_minutes=30)


def test_least_urgent_with_partial_table():
    table = SLARuleTable({
        Priority.CRITICAL: SLARule(Priority.CRITICAL, 5, 60),
        Priority.HIGH: SLARule(Priority.HIGH, 10, 120),
    })
    assert table.least_urgent.priority == Priority.HIGH


@pytest.mark.parametrize("delta, expected", [
    (timedelta(days=1, hours=2, minutes=30), "1d 2h"),
    (timedelta(hours=3, minutes=5), "3h 5m"),
    (timedelta(minutes=12, seconds=30), "12m"),
    (timedelta(seconds=0), "0s"),
    (timedelta(minutes=-7), "0s"),
])
def test_format_time_remaining(delta, expected):
    assert SLACalculator.format_time_remaining(T0 + delta, T0) == expected


def test_minutes_past_rounds_to_nearest_minute():
    deadline = T0 + timedelta(minutes=15)
    assert SLACalculator.minutes_past(deadline, T0 + timedelta(minutes=20)) == 5
    assert SLACalculator.minutes_past(deadline, T0 + timedelta(minutes=20, seconds=40)) == 6
    assert SLACalculator.minutes_past(deadline, T0 + timedelta(minutes=17, seconds=30)) == 3
    assert SLACalculator.minutes_past(deadline, T0 + timedelta(minutes=18, seconds=30)) == 4


def test_config_fills_missing_tiers_and_lowercases():
    config = SLAConfig(sla_rules={"CRITICAL": {"acknowledgment": 5, "resolution": 60}})
    table = config.to_rule_table()

    assert table.get("critical").acknowledgment_minutes == 5
    assert table.get("low").resolution_minutes == 2880
    assert len(table) == len(VALID_PRIORITIES)


def test_yaml_provider_loads_file(tmp_path: Path):
    path = tmp_path / "sla.yaml"
    path.write_text(
        "sla_rules:\n"
        "  critical:\n"
        "    acknowledgment: 10\n"
        "    resolution: 120\n"
    )
    table = YAMLConfigProvider(path).get_rule_table()

    assert table.get("critical").acknowledgment_minutes == 10
    assert table.get("medium").acknowledgment_minutes == 60


def test_yaml_provider_missing_file_uses_defaults(tmp_path: Path):
    table = YAMLConfigProvider(tmp_path / "absent.yaml").get_rule_table()
    assert table.get("critical").resolution_minutes == 240


def test_yaml_provider_rejects_inverted_windows(tmp_path: Path):
    path = tmp_path / "sla.yaml"
    path.write_text(
        "sla_rules:\n"
        "  high:\n"
        "    acknowledgment: 60\n"
        "    resolution: 30\n"
    )
    with pytest.raises(ConfigurationException):
        YAMLConfigProvider(path)
