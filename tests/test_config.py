"""
Tests for configuration loading.
"""

from datetime import time

import pytest
from pydantic import ValidationError

from bookingengine.config import AppConfig, ResourceConfig, ResourceDefaults
from bookingengine.domain.models import ResourceStatus

CONFIG_YAML = """
timezone: Europe/Berlin
log_level: info
engine:
  max_expansion: 50
defaults:
  open_hour: 9
  close_hour: 17
resources:
  - id: room-a
    name: Meeting Room A
    capacity: 8
  - id: desk-12
    capacity: 1
    slot_granularity_minutes: 30
    closed_weekdays: [6, 0, 0]
"""


def test_load_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")

    config = AppConfig.load_from_yaml(path)

    assert config.log_level == "INFO"
    assert config.engine.max_expansion == 50
    assert config.engine.recurrence_horizon_days == 365
    assert config.resources[1].closed_weekdays == [0, 6]


def test_build_resources_applies_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")

    room, desk = AppConfig.load_from_yaml(path).build_resources()

    assert room.operating_hours.open == time(9, 0)
    assert room.operating_hours.close == time(17, 0)
    assert room.slot_granularity_minutes == 60
    assert room.timezone == "Europe/Berlin"
    assert desk.slot_granularity_minutes == 30
    assert desk.operating_hours.closed_weekdays == frozenset({0, 6})
    assert desk.status is ResourceStatus.AVAILABLE


def test_find_resource_by_id_or_name():
    config = AppConfig(resources=[ResourceConfig(id="room-a", name="Meeting Room A", capacity=8)])

    assert config.find_resource("room-a").id == "room-a"
    assert config.find_resource("meeting room a").id == "room-a"
    assert config.find_resource("attic") is None


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.load_from_yaml(tmp_path / "config.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("resources: [", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        AppConfig.load_from_yaml(path)


def test_root_must_be_a_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- room-a\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        AppConfig.load_from_yaml(path)


def test_duplicate_resource_ids():
    with pytest.raises(ValidationError, match="Duplicate resource id"):
        AppConfig(resources=[
            ResourceConfig(id="room-a", capacity=2),
            ResourceConfig(id="room-a", capacity=4),
        ])


def test_unknown_timezone():
    with pytest.raises(ValidationError):
        AppConfig(timezone="Mars/Olympus_Mons")


def test_close_must_follow_open():
    with pytest.raises(ValidationError):
        ResourceDefaults(open_hour=18, close_hour=8)


def test_capacity_must_be_positive():
    with pytest.raises(ValidationError):
        ResourceConfig(id="room-a", capacity=0)


def test_closed_weekdays_range():
    with pytest.raises(ValidationError):
        ResourceConfig(id="desk", capacity=1, closed_weekdays=[7])
