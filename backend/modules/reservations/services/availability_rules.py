# backend/modules/reservations/services/availability_rules.py

"""
Date/time legality checks that do not depend on table occupancy:
opening hours, special periods, booking horizon, notice, cut-off and
party size.
"""

from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, Optional
import logging

from ..exceptions import (
    InsufficientNotice,
    InvalidGuestCount,
    PastCutOff,
    RestaurantClosed,
    RuleViolation,
    SameDayDisabled,
    TooFarInAdvance,
)
from ..models.availability_types import BookingPolicy, OpeningHours, SpecialPeriod
from ..utils.time_window import TimeWindow, compute_end_time

logger = logging.getLogger(__name__)

MIDNIGHT = time(0, 0)


def day_of_week(day: date) -> int:
    """Day index used by stored hours and cut-offs: 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def _recency_key(period: SpecialPeriod):
    return (period.created_at or datetime.min, period.id if period.id is not None else -1)


class AvailabilityRules:
    """Resolves a restaurant's booking policy for a given date and time."""

    def __init__(
        self,
        policy: BookingPolicy,
        opening_hours: Iterable[OpeningHours] = (),
        special_periods: Iterable[SpecialPeriod] = (),
    ):
        self.policy = policy
        self._weekly: Dict[int, OpeningHours] = {h.day_of_week: h for h in opening_hours}
        # Overlapping periods: the most recently created one wins
        self._special_periods = sorted(special_periods, key=_recency_key, reverse=True)

    def special_period_for(self, day: date) -> Optional[SpecialPeriod]:
        for period in self._special_periods:
            if period.covers(day):
                return period
        return None

    def opening_window(self, day: date) -> Optional[TimeWindow]:
        """
        Effective opening window for ``day``, or None when closed.

        A special period covering the date always overrides the weekly
        hours; when it is open but names no times, the weekly times apply.
        A close time of 00:00 means the end of the day.
        """
        weekly = self._weekly.get(day_of_week(day))
        period = self.special_period_for(day)

        if period is not None:
            if period.is_closed:
                return None
            open_time = period.open_time or (weekly.open_time if weekly else None)
            close_time = period.close_time or (weekly.close_time if weekly else None)
        else:
            if weekly is None or not weekly.is_open:
                return None
            open_time, close_time = weekly.open_time, weekly.close_time

        if open_time is None or close_time is None:
            return None

        start = datetime.combine(day, open_time)
        if close_time == MIDNIGHT:
            end = datetime.combine(day + timedelta(days=1), MIDNIGHT)
        else:
            end = datetime.combine(day, close_time)

        if end <= start:
            logger.warning(
                f"Ignoring opening hours {open_time}-{close_time} on {day}: "
                "hours past midnight are not supported"
            )
            return None
        return TimeWindow(start, end)

    def is_restaurant_open(self, day: date, at: time) -> bool:
        window = self.opening_window(day)
        return window is not None and window.contains(datetime.combine(day, at))

    def fits_opening_hours(self, window: TimeWindow) -> bool:
        """True when the whole reservation window lies inside opening hours."""
        opening = self.opening_window(window.date)
        if opening is None:
            return False
        return opening.start <= window.start and window.end <= opening.end

    def booking_window_violation(
        self, day: date, at: time, now: datetime
    ) -> Optional[RuleViolation]:
        """Return the first booking-horizon rule broken by ``day``/``at``, if any."""
        policy = self.policy
        requested = datetime.combine(day, at)
        today = now.date()

        if day == today and not policy.allow_same_day_bookings:
            return SameDayDisabled(day)

        if day > today + timedelta(days=policy.max_advance_booking_days):
            return TooFarInAdvance(day, policy.max_advance_booking_days)

        if day == today:
            cut_off = policy.cut_off_hours(day_of_week(day))
            if cut_off and now > requested - timedelta(hours=cut_off):
                return PastCutOff(requested, cut_off)

        if requested - now < timedelta(hours=policy.min_advance_notice_hours):
            return InsufficientNotice(requested, policy.min_advance_notice_hours)

        return None

    def check_booking_window(self, day: date, at: time, now: datetime) -> None:
        violation = self.booking_window_violation(day, at, now)
        if violation is not None:
            raise violation

    def is_guest_count_valid(self, count: int) -> bool:
        return self.policy.min_guests <= count <= self.policy.max_guests

    def validate_guest_count(self, count: int) -> None:
        if not self.is_guest_count_valid(count):
            raise InvalidGuestCount(count, self.policy.min_guests, self.policy.max_guests)

    def compute_end_time(self, start: time, duration_minutes: Optional[int] = None) -> time:
        if duration_minutes is None:
            duration_minutes = self.policy.default_duration_minutes
        return compute_end_time(start, duration_minutes)

    def validate_booking(self, window: TimeWindow, guest_count: int, now: datetime) -> None:
        """
        Run every policy check for a proposed booking, failing on the first
        violation: party size, opening hours, then the booking horizon.
        """
        self.validate_guest_count(guest_count)
        if not self.fits_opening_hours(window):
            raise RestaurantClosed(window.date, window.start_time)
        self.check_booking_window(window.date, window.start_time, now)
