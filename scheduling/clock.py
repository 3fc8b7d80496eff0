"""
Clock abstraction so slot generation and button projection can run
against a fixed "now" in tests
"""
from django.utils import timezone


class SystemClock:
    def now(self):
        return timezone.now()


class FixedClock:
    def __init__(self, moment):
        if timezone.is_naive(moment):
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self.moment = moment

    def now(self):
        return self.moment

    def advance(self, delta):
        self.moment = self.moment + delta


default_clock = SystemClock()
