"""
Weekly availability template, date exceptions and booking policy

Weekly schedules are stored as JSON:
    {"sunday": {"enabled": true, "slots": [{"start": "09:00", "end": "17:00"}]}, ...}
Times are wall-clock "HH:MM" in the lawyer's configured timezone.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, date, time, timedelta
from typing import Dict, List, Optional, Tuple

import pytz

from .exceptions import ValidationError
from .intervals import Interval

logger = logging.getLogger(__name__)

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

DEFAULT_WEEKLY_SCHEDULE = {
    'sunday': {'enabled': True, 'slots': [{'start': '09:00', 'end': '17:00'}]},
    'monday': {'enabled': True, 'slots': [{'start': '09:00', 'end': '17:00'}]},
    'tuesday': {'enabled': True, 'slots': [{'start': '09:00', 'end': '17:00'}]},
    'wednesday': {'enabled': True, 'slots': [{'start': '09:00', 'end': '17:00'}]},
    'thursday': {'enabled': True, 'slots': [{'start': '09:00', 'end': '17:00'}]},
    'friday': {'enabled': False, 'slots': []},
    'saturday': {'enabled': False, 'slots': []},
}

DEFAULT_ALLOWED_DURATIONS = [30, 60]


def default_weekly_schedule():
    return {day: {'enabled': cfg['enabled'], 'slots': [dict(s) for s in cfg['slots']]}
            for day, cfg in DEFAULT_WEEKLY_SCHEDULE.items()}


def default_allowed_durations():
    return list(DEFAULT_ALLOWED_DURATIONS)


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def _parse_hhmm(value) -> time:
    if not isinstance(value, str):
        raise ValidationError(f"Time must be a 'HH:MM' string, got {value!r}")
    try:
        return datetime.strptime(value, '%H:%M').time()
    except ValueError:
        raise ValidationError(f"Time must be in HH:MM format, got {value!r}")


def parse_time_slots(raw) -> List[Tuple[time, time]]:
    """
    Parse a list of {"start", "end"} dicts into sorted (start, end) time pairs.
    Rejects malformed times, empty slots and overlapping slots.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("Time slots must be a list")

    slots = []
    for slot in raw:
        if not isinstance(slot, dict) or 'start' not in slot or 'end' not in slot:
            raise ValidationError("Each time slot must have 'start' and 'end' times")
        start = _parse_hhmm(slot['start'])
        end = _parse_hhmm(slot['end'])
        if start >= end:
            raise ValidationError(f"Slot start {slot['start']} must be before end {slot['end']}")
        slots.append((start, end))

    slots.sort()
    for previous, current in zip(slots, slots[1:]):
        if current[0] < previous[1]:
            raise ValidationError(
                f"Time slots overlap: {previous[0]:%H:%M}-{previous[1]:%H:%M} "
                f"and {current[0]:%H:%M}-{current[1]:%H:%M}"
            )
    return slots


def serialize_time_slots(slots: List[Tuple[time, time]]) -> List[Dict[str, str]]:
    return [{'start': start.strftime('%H:%M'), 'end': end.strftime('%H:%M')} for start, end in slots]


def validate_weekly_schedule(raw) -> Dict[str, Dict]:
    """Validate and normalise a weekly schedule; slots come back sorted"""
    if not isinstance(raw, dict):
        raise ValidationError("Weekly schedule must be an object keyed by weekday")

    normalised = {}
    for day, config in raw.items():
        if day not in WEEKDAYS:
            raise ValidationError(f"Invalid day: {day}")
        if not isinstance(config, dict):
            raise ValidationError(f"Schedule for {day} must be an object")
        enabled = bool(config.get('enabled', False))
        slots = parse_time_slots(config.get('slots', []))
        normalised[day] = {'enabled': enabled, 'slots': serialize_time_slots(slots)}

    for day in WEEKDAYS:
        normalised.setdefault(day, {'enabled': False, 'slots': []})
    return normalised


@dataclass(frozen=True)
class BookingPolicy:
    """Booking horizon, buffer and duration rules for one lawyer"""
    buffer_minutes: int = 15
    min_booking_hours: int = 24
    max_booking_days: int = 30
    allowed_durations: Tuple[int, ...] = field(default_factory=lambda: tuple(DEFAULT_ALLOWED_DURATIONS))
    default_location: Optional[str] = None

    @classmethod
    def from_model(cls, availability):
        return cls(
            buffer_minutes=availability.buffer_minutes,
            min_booking_hours=availability.min_booking_hours,
            max_booking_days=availability.max_booking_days,
            allowed_durations=tuple(availability.allowed_durations or ()),
            default_location=availability.default_location or None,
        )

    def validate(self):
        if self.buffer_minutes < 0:
            raise ValidationError("buffer_minutes must be zero or positive")
        if self.min_booking_hours < 0:
            raise ValidationError("min_booking_hours must be zero or positive")
        if self.max_booking_days < 1:
            raise ValidationError("max_booking_days must be at least 1")
        if not self.allowed_durations:
            raise ValidationError("allowed_durations must not be empty")
        for minutes in self.allowed_durations:
            if not isinstance(minutes, int) or isinstance(minutes, bool) or minutes <= 0:
                raise ValidationError(f"Invalid duration: {minutes!r}")
        return self

    def allows_duration(self, minutes: int) -> bool:
        return minutes > 0 and minutes in self.allowed_durations

    def earliest_start(self, now: datetime) -> datetime:
        return now + timedelta(hours=self.min_booking_hours)

    def latest_start(self, now: datetime) -> datetime:
        return now + timedelta(days=self.max_booking_days)


def resolve_day_slots(day: date, weekly_schedule: Dict, exception=None) -> List[Tuple[time, time]]:
    """
    Raw availability for a date before meetings are removed.

    A date exception replaces the weekly template entirely: blocked dates have
    nothing, custom dates use only their own slots.
    """
    if exception is not None:
        if exception.is_blocked:
            return []
        return parse_time_slots(exception.custom_slots or [])

    day_config = (weekly_schedule or {}).get(weekday_name(day)) or {}
    if not day_config.get('enabled'):
        return []
    return parse_time_slots(day_config.get('slots', []))


def get_timezone(name: str):
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValidationError(f"Unknown timezone: {name}")


def day_bounds(day: date, tz) -> Interval:
    """Start of `day` to start of the next day, in the given timezone"""
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day + timedelta(days=1), time.min))
    return Interval(start, end)


def day_windows(day: date, slots: List[Tuple[time, time]], tz) -> List[Interval]:
    """Turn wall-clock slots into timezone-aware intervals for the date"""
    return [
        Interval(tz.localize(datetime.combine(day, start)), tz.localize(datetime.combine(day, end)))
        for start, end in slots
    ]
