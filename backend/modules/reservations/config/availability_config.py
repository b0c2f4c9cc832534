# backend/modules/reservations/config/availability_config.py

import json
from typing import Annotated, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AvailabilityConfig(BaseSettings):
    """
    Tunables for table allocation, conflict detection and resolution.

    None of these are fixed by restaurant policy; they describe how
    aggressively the engine searches for alternatives and when it may act
    without a staff decision.
    """

    model_config = SettingsConfigDict(env_prefix="AVAILABILITY_", case_sensitive=False)

    # Seats that must stay free at a table beyond the party size
    EMPTY_SEATS_BUFFER: int = 0

    # Step between offered start times
    SLOT_INTERVAL_MINUTES: int = 15

    # Share of total seating that may be booked concurrently before a
    # rush warning is raised (0-1)
    RUSH_CAPACITY_RATIO: float = 0.8

    # Optional cap on concurrent bookings, independent of seats
    RUSH_MAX_CONCURRENT_BOOKINGS: Optional[int] = None

    # Minimum confidence of the top proposal for an auto-applied resolution
    AUTO_RESOLVE_THRESHOLD: float = 0.85

    # Proposals below this confidence push "deny / manual review" to the top
    MIN_PROPOSAL_CONFIDENCE: float = 0.5

    # Offsets tried in both directions when shifting a booking
    SHIFT_OFFSETS_MINUTES: Annotated[List[int], NoDecode] = [15, 30, 60]

    MAX_REASSIGN_PROPOSALS: int = 3

    # Extra seats an alternate table may have and still count as comparable
    COMPARABLE_CAPACITY_SLACK: int = 2

    ENABLE_AUTO_RESOLUTION: bool = True

    # Rescheduling search: days after the original date, and hours either
    # side of the original start time
    RESCHEDULE_DATE_RANGE_DAYS: int = 7
    RESCHEDULE_TIME_RANGE_HOURS: int = 3
    RESCHEDULE_SLOT_INTERVAL_MINUTES: int = 30
    RESCHEDULE_INCLUDE_WEEKENDS: bool = True
    RESCHEDULE_MAX_SUGGESTIONS: int = 5

    @field_validator("RUSH_CAPACITY_RATIO", "AUTO_RESOLVE_THRESHOLD", "MIN_PROPOSAL_CONFIDENCE")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("must be between 0 and 1")
        return v

    @field_validator("SHIFT_OFFSETS_MINUTES", mode="before")
    @classmethod
    def parse_offsets(cls, v):
        """Accept "15,30,60" or a JSON list; normalize to sorted positive offsets."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                v = json.loads(v)
            else:
                v = [int(part.strip()) for part in v.split(",") if part.strip()]
        return sorted({abs(int(offset)) for offset in v if int(offset) != 0})

    @field_validator("SLOT_INTERVAL_MINUTES", "RESCHEDULE_SLOT_INTERVAL_MINUTES")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("slot interval must be positive")
        return v


# Global instance
availability_config = AvailabilityConfig()


def get_availability_config() -> AvailabilityConfig:
    """Get the availability engine configuration."""
    return availability_config
