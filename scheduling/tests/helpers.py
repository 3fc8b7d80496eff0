"""
Shared fixtures for scheduling tests
Wall-clock times are in Asia/Riyadh (UTC+3, no DST); 2026-03-01 is a Sunday
"""
from datetime import datetime, timedelta

import pytz
from django.contrib.auth import get_user_model

from scheduling.clock import FixedClock
from scheduling.models import LawyerAvailability, BookingLink

User = get_user_model()

RIYADH = pytz.timezone('Asia/Riyadh')


def at(year, month, day, hour=0, minute=0):
    return RIYADH.localize(datetime(year, month, day, hour, minute))


# Wednesday noon: the horizon opens Thursday noon and closes 30 days later
NOW = at(2026, 2, 25, 12, 0)
SUNDAY = NOW.date() + timedelta(days=4)


def fixed_clock():
    return FixedClock(NOW)


def sunday_morning_schedule():
    schedule = {day: {'enabled': False, 'slots': []} for day in (
        'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday'
    )}
    schedule['sunday'] = {'enabled': True, 'slots': [{'start': '09:00', 'end': '12:00'}]}
    return schedule


def make_user(username, **extra):
    return User.objects.create_user(
        username=username,
        email=f'{username}@example.com',
        password='testpass123',
        **extra
    )


def make_availability(lawyer, **overrides):
    fields = {
        'timezone': 'Asia/Riyadh',
        'weekly_schedule': sunday_morning_schedule(),
        'buffer_minutes': 15,
        'min_booking_hours': 24,
        'max_booking_days': 30,
        'allowed_durations': [30, 60],
    }
    fields.update(overrides)
    return LawyerAvailability.objects.create(lawyer=lawyer, **fields)


def make_link(lawyer, expires_at=None, **extra):
    return BookingLink.objects.create(
        lawyer=lawyer,
        expires_at=expires_at or NOW + timedelta(hours=72),
        **extra
    )
