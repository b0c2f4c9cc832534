# backend/modules/reservations/tests/test_availability_config.py

"""
Tests for availability engine settings loaded from the environment.
"""

import pytest
from pydantic import ValidationError

from ..config import AvailabilityConfig


class TestShiftOffsets:
    """Test SHIFT_OFFSETS_MINUTES parsing"""

    def test_comma_separated_env_var(self, monkeypatch):
        monkeypatch.setenv("AVAILABILITY_SHIFT_OFFSETS_MINUTES", "15,30,60")

        assert AvailabilityConfig().SHIFT_OFFSETS_MINUTES == [15, 30, 60]

    def test_json_list_env_var(self, monkeypatch):
        monkeypatch.setenv("AVAILABILITY_SHIFT_OFFSETS_MINUTES", "[60, 15, -30]")

        assert AvailabilityConfig().SHIFT_OFFSETS_MINUTES == [15, 30, 60]

    def test_offsets_are_normalized(self):
        config = AvailabilityConfig(SHIFT_OFFSETS_MINUTES=[-45, 0, 45, 10])

        assert config.SHIFT_OFFSETS_MINUTES == [10, 45]

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("AVAILABILITY_SHIFT_OFFSETS_MINUTES", raising=False)

        assert AvailabilityConfig().SHIFT_OFFSETS_MINUTES == [15, 30, 60]


class TestValidation:
    """Test range checks"""

    def test_ratio_out_of_range(self, monkeypatch):
        monkeypatch.setenv("AVAILABILITY_RUSH_CAPACITY_RATIO", "1.5")

        with pytest.raises(ValidationError):
            AvailabilityConfig()

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            AvailabilityConfig(RESCHEDULE_SLOT_INTERVAL_MINUTES=0)
