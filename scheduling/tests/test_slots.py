"""
Test slot generation against the weekly template, exceptions, committed meetings and the horizon
"""
from datetime import date, timedelta

from django.test import TestCase

from scheduling.exceptions import ValidationError
from scheduling.intervals import Interval, expand, overlaps
from scheduling.models import AvailabilityException, ClientMeeting, InternalMeeting, InternalMeetingParticipant
from scheduling.services import AvailabilityCalculator

from .helpers import at, fixed_clock, make_user, make_availability, SUNDAY


class SlotGenerationTestCase(TestCase):
    """Sunday 09:00-12:00 with a 15 minute buffer"""

    def setUp(self):
        self.lawyer = make_user('lawyer')
        self.availability = make_availability(self.lawyer)
        self.calculator = AvailabilityCalculator(clock=fixed_clock())

    def book(self, hour, minute=0, duration=60, status='confirmed'):
        return ClientMeeting.objects.create(
            lawyer=self.lawyer,
            scheduled_at=at(2026, 3, 1, hour, minute),
            duration_minutes=duration,
            status=status,
        )

    def test_free_sunday_yields_consecutive_candidates(self):
        slots = self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30)
        expected = [at(2026, 3, 1, 9, 0) + timedelta(minutes=30 * i) for i in range(6)]
        self.assertEqual(slots, expected)

    def test_buffered_meeting_removes_surrounding_candidates(self):
        """A 10:00-11:00 meeting with a 15 minute buffer blocks 09:45-11:15"""
        self.book(10)

        slots = self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30)

        self.assertEqual(slots, [at(2026, 3, 1, 9, 0), at(2026, 3, 1, 11, 15)])
        self.assertNotIn(at(2026, 3, 1, 9, 45), slots)
        self.assertNotIn(at(2026, 3, 1, 10, 0), slots)

    def test_candidates_never_overlap_buffered_meetings(self):
        meeting = self.book(10, 30, duration=30)
        blocked = expand(Interval(meeting.scheduled_at, meeting.ends_at), 15)

        for duration in (30, 60):
            for start in self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, duration):
                candidate = Interval(start, start + timedelta(minutes=duration))
                self.assertFalse(overlaps(candidate, blocked), f"{candidate} overlaps {blocked}")
                self.assertLessEqual(candidate.end, at(2026, 3, 1, 12, 0))

    def test_cancelled_meetings_do_not_block(self):
        self.book(10, status='cancelled_by_client')
        self.book(11, status='cancelled_by_lawyer')
        self.assertEqual(len(self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30)), 6)

    def test_no_show_meetings_still_block(self):
        self.book(10, status='no_show')
        self.assertEqual(
            self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30),
            [at(2026, 3, 1, 9, 0), at(2026, 3, 1, 11, 15)]
        )

    def test_internal_meetings_of_the_lawyer_block(self):
        organiser = make_user('organiser')
        meeting = InternalMeeting.objects.create(
            title='Case review',
            scheduled_at=at(2026, 3, 1, 10, 0),
            duration_minutes=60,
            created_by=organiser,
        )
        InternalMeetingParticipant.objects.create(meeting=meeting, user=self.lawyer)

        self.assertEqual(
            self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30),
            [at(2026, 3, 1, 9, 0), at(2026, 3, 1, 11, 15)]
        )

    def test_cancelled_internal_meeting_does_not_block(self):
        InternalMeeting.objects.create(
            title='Cancelled review',
            scheduled_at=at(2026, 3, 1, 10, 0),
            duration_minutes=60,
            created_by=self.lawyer,
            status='cancelled',
        )
        self.assertEqual(len(self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30)), 6)

    def test_other_lawyers_meetings_do_not_block(self):
        ClientMeeting.objects.create(
            lawyer=make_user('colleague'),
            scheduled_at=at(2026, 3, 1, 10, 0),
            duration_minutes=60,
        )
        self.assertEqual(len(self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30)), 6)

    def test_blocked_exception_empties_the_date(self):
        AvailabilityException.objects.create(availability=self.availability, date=SUNDAY, is_blocked=True)
        self.assertEqual(self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30), [])

    def test_custom_exception_replaces_template(self):
        AvailabilityException.objects.create(
            availability=self.availability,
            date=SUNDAY,
            is_blocked=False,
            custom_slots=[{'start': '14:00', 'end': '15:00'}],
        )
        self.assertEqual(
            self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 30),
            [at(2026, 3, 1, 14, 0), at(2026, 3, 1, 14, 30)]
        )

    def test_disallowed_duration_yields_nothing(self):
        self.assertEqual(self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 45), [])

    def test_invalid_input_is_rejected_before_lookup(self):
        with self.assertRaises(ValidationError):
            self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY, 0)
        with self.assertRaises(ValidationError):
            self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY - timedelta(days=1), 30)

    def test_range_spans_several_weeks_in_date_order(self):
        slots = self.calculator.generate(self.lawyer.pk, SUNDAY, SUNDAY + timedelta(days=7), 60)
        self.assertEqual(slots, [
            at(2026, 3, 1, 9, 0), at(2026, 3, 1, 10, 0), at(2026, 3, 1, 11, 0),
            at(2026, 3, 8, 9, 0), at(2026, 3, 8, 10, 0), at(2026, 3, 8, 11, 0),
        ])

    def test_free_intervals_for_one_date(self):
        self.book(10)
        self.assertEqual(
            self.calculator.free_intervals(self.availability, SUNDAY),
            [Interval(at(2026, 3, 1, 9, 0), at(2026, 3, 1, 9, 45)),
             Interval(at(2026, 3, 1, 11, 15), at(2026, 3, 1, 12, 0))]
        )


class BookingHorizonTestCase(TestCase):
    """Now is Wednesday 2026-02-25 12:00, so the horizon opens Thursday 12:00"""

    def setUp(self):
        self.lawyer = make_user('lawyer')
        weekdays = {'enabled': True, 'slots': [{'start': '09:00', 'end': '17:00'}]}
        self.availability = make_availability(
            self.lawyer,
            weekly_schedule={day: dict(weekdays) for day in (
                'sunday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday'
            )},
        )
        self.calculator = AvailabilityCalculator(clock=fixed_clock())

    def test_minimum_notice_trims_the_first_day(self):
        slots = self.calculator.generate(self.lawyer.pk, date(2026, 2, 25), date(2026, 2, 26), 30)
        self.assertEqual(slots[0], at(2026, 2, 26, 12, 0))
        self.assertEqual(slots[-1], at(2026, 2, 26, 16, 30))

    def test_maximum_advance_trims_the_last_day(self):
        self.availability.max_booking_days = 5
        self.availability.save()

        slots = self.calculator.generate(self.lawyer.pk, date(2026, 3, 1), date(2026, 3, 10), 60)

        self.assertEqual(slots[-1], at(2026, 3, 2, 12, 0))
        self.assertTrue(all(slot.date() <= date(2026, 3, 2) for slot in slots))

    def test_range_entirely_outside_horizon(self):
        self.assertEqual(self.calculator.generate(self.lawyer.pk, date(2026, 2, 20), date(2026, 2, 25), 30), [])
        self.assertEqual(self.calculator.generate(self.lawyer.pk, date(2026, 5, 1), date(2026, 5, 2), 30), [])


class AvailableDaysAndCheckSlotTestCase(TestCase):

    def setUp(self):
        self.lawyer = make_user('lawyer')
        self.availability = make_availability(self.lawyer)
        self.calculator = AvailabilityCalculator(clock=fixed_clock())

    def test_available_days_lists_bookable_sundays_in_horizon(self):
        days = self.calculator.available_days(self.lawyer.pk, 2026, 3)
        self.assertEqual(days, [date(2026, 3, 1), date(2026, 3, 8), date(2026, 3, 15), date(2026, 3, 22)])

    def test_fully_booked_day_is_not_available(self):
        AvailabilityException.objects.create(availability=self.availability, date=date(2026, 3, 8))
        days = self.calculator.available_days(self.lawyer.pk, 2026, 3, duration=60)
        self.assertNotIn(date(2026, 3, 8), days)

    def test_invalid_month(self):
        with self.assertRaises(ValidationError):
            self.calculator.available_days(self.lawyer.pk, 2026, 13)

    def test_check_slot_reasons(self):
        ClientMeeting.objects.create(
            lawyer=self.lawyer, scheduled_at=at(2026, 3, 1, 10, 0), duration_minutes=60
        )

        self.assertEqual(self.calculator.check_slot(self.lawyer.pk, at(2026, 3, 1, 9, 0), 30), (True, None))
        self.assertEqual(
            self.calculator.check_slot(self.lawyer.pk, at(2026, 3, 1, 9, 30), 30), (False, 'conflict')
        )
        self.assertEqual(
            self.calculator.check_slot(self.lawyer.pk, at(2026, 3, 1, 13, 0), 30), (False, 'outside_availability')
        )
        self.assertEqual(
            self.calculator.check_slot(self.lawyer.pk, at(2026, 3, 1, 9, 0), 45), (False, 'duration_not_allowed')
        )
        self.assertEqual(
            self.calculator.check_slot(self.lawyer.pk, at(2026, 2, 26, 9, 0), 30), (False, 'outside_horizon')
        )

    def test_check_slot_accepts_off_grid_start_inside_free_interval(self):
        self.assertEqual(self.calculator.check_slot(self.lawyer.pk, at(2026, 3, 1, 9, 10), 30), (True, None))
