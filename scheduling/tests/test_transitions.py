"""
Test meeting status machines, the join/summary button and summary editing
"""
from datetime import timedelta

from django.test import TestCase

from scheduling import transitions
from scheduling.exceptions import IllegalTransition, PermissionDenied, ValidationError
from scheduling.models import ClientMeeting, InternalMeeting, InternalMeetingParticipant

from .helpers import NOW, at, make_user

T = at(2026, 3, 1, 10, 0)
MICROSECOND = timedelta(microseconds=1)


class ClientMeetingTransitionTestCase(TestCase):

    def setUp(self):
        self.lawyer = make_user('lawyer')
        self.meeting = ClientMeeting.objects.create(lawyer=self.lawyer, scheduled_at=T, duration_minutes=30)

    def test_confirm_then_complete(self):
        transitions.confirm_client_meeting(self.meeting, NOW)
        self.assertEqual(self.meeting.status, 'confirmed')
        self.assertEqual(self.meeting.confirmed_at, NOW)

        transitions.complete_client_meeting(self.meeting, outcome='Retainer signed')
        self.meeting.refresh_from_db()
        self.assertEqual(self.meeting.status, 'completed')
        self.assertEqual(self.meeting.outcome, 'Retainer signed')

    def test_cancel_requires_reason(self):
        with self.assertRaises(ValidationError):
            transitions.cancel_client_meeting(self.meeting, '   ', NOW)
        self.assertEqual(self.meeting.status, 'pending')

    def test_cancel_records_party_and_time(self):
        transitions.cancel_client_meeting(self.meeting, 'Travelling', NOW, by='client')
        self.meeting.refresh_from_db()
        self.assertEqual(self.meeting.status, 'cancelled_by_client')
        self.assertEqual(self.meeting.cancellation_reason, 'Travelling')
        self.assertEqual(self.meeting.cancelled_at, NOW)

    def test_terminal_states_reject_further_changes(self):
        transitions.mark_no_show(self.meeting)

        with self.assertRaises(IllegalTransition):
            transitions.confirm_client_meeting(self.meeting, NOW)
        with self.assertRaises(IllegalTransition):
            transitions.cancel_client_meeting(self.meeting, 'Too late', NOW)

    def test_confirmed_cannot_be_confirmed_again(self):
        transitions.confirm_client_meeting(self.meeting, NOW)
        with self.assertRaises(IllegalTransition):
            transitions.confirm_client_meeting(self.meeting, NOW)

    def test_link_to_case_in_any_status(self):
        transitions.mark_no_show(self.meeting)
        transitions.link_to_case(self.meeting, 42)
        self.meeting.refresh_from_db()
        self.assertEqual(self.meeting.case_id, 42)

        with self.assertRaises(ValidationError):
            transitions.link_to_case(self.meeting, -1)


class InternalMeetingTestCase(TestCase):

    def setUp(self):
        self.organiser = make_user('organiser', is_staff=True)
        self.attendee = make_user('attendee')
        self.outsider = make_user('outsider')
        self.meeting = InternalMeeting.objects.create(
            title='Weekly case review',
            scheduled_at=T,
            duration_minutes=60,
            created_by=self.organiser,
            join_button_minutes_before=15,
            join_button_minutes_after=30,
        )
        InternalMeetingParticipant.objects.create(meeting=self.meeting, user=self.attendee)

    def state(self, now, viewer=None):
        return transitions.project_button_state(self.meeting, now, viewer)

    def test_status_machine(self):
        transitions.start_internal_meeting(self.meeting)
        self.assertEqual(self.meeting.status, 'in_progress')

        with self.assertRaises(IllegalTransition):
            transitions.start_internal_meeting(self.meeting)

        transitions.complete_internal_meeting(self.meeting)
        with self.assertRaises(IllegalTransition):
            transitions.cancel_internal_meeting(self.meeting, 'Too late')

    def test_cancel_requires_reason(self):
        with self.assertRaises(ValidationError):
            transitions.cancel_internal_meeting(self.meeting, '')
        transitions.cancel_internal_meeting(self.meeting, 'Client hearing moved')
        self.assertEqual(self.meeting.status, 'cancelled')

    def test_button_before_window_counts_down(self):
        state = self.state(T - timedelta(minutes=15) - MICROSECOND)
        self.assertEqual(state.status, 'upcoming')
        self.assertTrue(state.disabled)
        self.assertEqual(state.countdown_minutes, 1)

        self.assertEqual(self.state(T - timedelta(hours=2)).countdown_minutes, 105)

    def test_button_join_window_is_inclusive(self):
        self.assertEqual(self.state(T - timedelta(minutes=15)).status, 'join')
        self.assertEqual(self.state(T + timedelta(minutes=90)).status, 'join')
        self.assertEqual(self.state(T + timedelta(minutes=90) + MICROSECOND).status, 'write_summary')

    def test_button_for_cancelled_meeting(self):
        transitions.cancel_internal_meeting(self.meeting, 'Holiday')
        state = self.state(T)
        self.assertEqual(state.status, 'none')
        self.assertTrue(state.disabled)

    def test_completed_meeting_never_offers_join(self):
        transitions.complete_internal_meeting(self.meeting)
        for now in (T - timedelta(hours=1), T, T + timedelta(hours=3)):
            self.assertNotIn(self.state(now, self.organiser).status, ('join', 'upcoming'))

        self.assertEqual(self.state(T, self.organiser).status, 'write_summary')
        self.assertEqual(self.state(T, self.outsider).status, 'view_summary')

        self.meeting.summary = 'Agreed on filing strategy'
        self.assertEqual(self.state(T, self.organiser).status, 'view_summary')

    def test_summary_permission(self):
        self.assertTrue(transitions.can_edit_summary(self.meeting, self.organiser))
        self.assertFalse(transitions.can_edit_summary(self.meeting, self.attendee))

        self.meeting.summary_permission = 'all_attendees'
        self.assertTrue(transitions.can_edit_summary(self.meeting, self.attendee))
        self.assertFalse(transitions.can_edit_summary(self.meeting, self.outsider))

    def test_save_summary_completes_started_meeting(self):
        transitions.save_summary(
            self.meeting, self.organiser,
            {'summary': 'Filed motion', 'summary_tasks': [{'title': 'Draft reply', 'assignee_id': self.attendee.pk}]},
            T + timedelta(minutes=70),
        )
        self.meeting.refresh_from_db()
        self.assertEqual(self.meeting.status, 'completed')
        self.assertEqual(self.meeting.summary, 'Filed motion')
        self.assertTrue(self.meeting.has_summary())

    def test_save_summary_before_start_keeps_status(self):
        transitions.save_summary(self.meeting, self.organiser, {'summary_points': ['Prep']}, NOW)
        self.meeting.refresh_from_db()
        self.assertEqual(self.meeting.status, 'scheduled')
        self.assertEqual(self.meeting.summary_points, ['Prep'])

    def test_save_summary_denied_for_attendee_by_default(self):
        with self.assertRaises(PermissionDenied):
            transitions.save_summary(self.meeting, self.attendee, {'summary': 'x'}, T)

    def test_join_records_attendance_and_starts_meeting(self):
        transitions.join(self.meeting, self.attendee, T - timedelta(minutes=5))

        self.meeting.refresh_from_db()
        self.assertEqual(self.meeting.status, 'in_progress')
        participant = self.meeting.attendances.get(user=self.attendee)
        self.assertEqual(participant.joined_at, T - timedelta(minutes=5))

    def test_organiser_can_join_without_participant_row(self):
        transitions.join(self.meeting, self.organiser, T)
        self.assertTrue(self.meeting.attendances.filter(user=self.organiser, joined_at=T).exists())

    def test_join_outside_window_or_by_outsider(self):
        with self.assertRaises(ValidationError):
            transitions.join(self.meeting, self.attendee, T - timedelta(hours=1))
        with self.assertRaises(PermissionDenied):
            transitions.join(self.meeting, self.outsider, T)
