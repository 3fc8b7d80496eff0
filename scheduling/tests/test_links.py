"""
Test booking link issuing, validation, deletion and notification delivery
"""
from datetime import timedelta
from unittest.mock import patch

from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone

from scheduling.exceptions import ValidationError, LinkInvalid, LinkAlreadyUsed, LinkExpired
from scheduling.models import BookingLink, ClientMeeting
from scheduling.services import BookingLinkService, BookingProcessor
from scheduling.tasks import send_booking_link_notification

from .helpers import NOW, at, fixed_clock, make_user, make_availability, make_link


class BookingLinkServiceTestCase(TestCase):

    def setUp(self):
        self.lawyer = make_user('lawyer')
        self.assistant = make_user('assistant')
        make_availability(self.lawyer)
        self.clock = fixed_clock()
        self.service = BookingLinkService(clock=self.clock)

    def test_issue_uses_default_expiry(self):
        link = self.service.issue(self.lawyer, created_by=self.assistant, client_id=5)

        self.assertEqual(link.expires_at, NOW + timedelta(hours=72))
        self.assertEqual(link.created_by, self.assistant)
        self.assertEqual(self.service.state(link), 'issued')
        self.assertGreaterEqual(len(link.token), 32)

    def test_issue_with_custom_expiry(self):
        link = self.service.issue(self.lawyer, expires_in_hours=4)
        self.assertEqual(link.expires_at, NOW + timedelta(hours=4))

    def test_issue_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            self.service.issue(self.lawyer, expires_in_hours=0)
        with self.assertRaises(ValidationError):
            self.service.issue(self.lawyer, notification_channel='pigeon')

    def test_tokens_are_unique(self):
        tokens = {self.service.issue(self.lawyer).token for _ in range(5)}
        self.assertEqual(len(tokens), 5)

    @patch('scheduling.tasks.send_booking_link_notification.delay')
    def test_notification_is_queued_after_commit(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            link = self.service.issue(
                self.lawyer, notification_channel='email', recipient_email='client@example.com'
            )
        mock_delay.assert_called_once_with(link.pk, 'email')

    @patch('scheduling.tasks.send_booking_link_notification.delay')
    def test_no_notification_without_channel(self, mock_delay):
        with self.captureOnCommitCallbacks(execute=True):
            self.service.issue(self.lawyer)
        mock_delay.assert_not_called()

    def test_validate(self):
        link = self.service.issue(self.lawyer)
        self.assertEqual(self.service.validate(link.token), link)

        with self.assertRaises(LinkInvalid):
            self.service.validate('missing')

    def test_link_is_expired_exactly_at_expiry(self):
        link = self.service.issue(self.lawyer, expires_in_hours=1)
        self.assertEqual(link.state(NOW + timedelta(minutes=59)), 'issued')
        self.assertEqual(link.state(NOW + timedelta(hours=1)), 'expired')

        self.clock.advance(timedelta(hours=1))
        with self.assertRaises(LinkExpired):
            self.service.validate(link.token)

    def test_used_link_fails_validation(self):
        link = self.service.issue(self.lawyer)
        BookingProcessor(clock=self.clock).reserve(link.token, at(2026, 3, 1, 9, 0), 30)

        with self.assertRaises(LinkAlreadyUsed):
            self.service.validate(link.token)
        link.refresh_from_db()
        self.assertEqual(link.state(NOW + timedelta(days=10)), 'used')

    def test_delete_keeps_booked_meeting(self):
        link = self.service.issue(self.lawyer)
        meeting = BookingProcessor(clock=self.clock).reserve(link.token, at(2026, 3, 1, 9, 0), 30)

        self.service.delete(link.pk)

        self.assertFalse(BookingLink.objects.filter(pk=link.pk).exists())
        meeting = ClientMeeting.objects.get(pk=meeting.pk)
        self.assertIsNone(meeting.booking_link)

    def test_delete_missing_link(self):
        with self.assertRaises(LinkInvalid):
            self.service.delete(999999)

    @patch('scheduling.tasks.send_booking_link_notification.delay')
    def test_resend(self, mock_delay):
        link = self.service.issue(self.lawyer, notification_channel='email', recipient_email='c@example.com')
        mock_delay.reset_mock()

        with self.captureOnCommitCallbacks(execute=True):
            self.service.resend(link.pk, 'whatsapp')
        mock_delay.assert_called_once_with(link.pk, 'whatsapp')

    def test_resend_rejects_unusable_links(self):
        link = self.service.issue(self.lawyer)
        with self.assertRaises(ValidationError):
            self.service.resend(link.pk)
        with self.assertRaises(LinkInvalid):
            self.service.resend(999999, 'email')

        expired = make_link(self.lawyer, expires_at=NOW - timedelta(minutes=1))
        with self.assertRaises(LinkExpired):
            self.service.resend(expired.pk, 'email')


@override_settings(EMAIL_BACKEND='django.core.mail.backends.locmem.EmailBackend')
class BookingLinkNotificationTaskTestCase(TestCase):

    def setUp(self):
        self.lawyer = make_user('lawyer', first_name='Omar', last_name='Haddad')
        # The task checks validity against the real clock
        self.expires_at = timezone.now() + timedelta(days=1)

    def test_email_is_sent_to_recipient(self):
        link = make_link(
            self.lawyer, expires_at=self.expires_at,
            client_name='Sara', recipient_email='sara@example.com'
        )

        sent = send_booking_link_notification(link.pk, 'email')

        self.assertEqual(sent, ['email'])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['sara@example.com'])
        self.assertIn('Omar Haddad', mail.outbox[0].subject)
        self.assertIn(link.token, mail.outbox[0].body)

    def test_whatsapp_is_logged_only(self):
        link = make_link(self.lawyer, expires_at=self.expires_at, recipient_phone='+966500000000')

        with self.assertLogs('scheduling.tasks', level='INFO'):
            sent = send_booking_link_notification(link.pk, 'both')

        self.assertEqual(sent, ['whatsapp'])
        self.assertEqual(len(mail.outbox), 0)

    def test_used_link_is_skipped(self):
        link = make_link(
            self.lawyer, expires_at=self.expires_at, recipient_email='sara@example.com', is_used=True
        )
        self.assertIsNone(send_booking_link_notification(link.pk, 'email'))
        self.assertEqual(len(mail.outbox), 0)

    def test_missing_link_is_skipped(self):
        self.assertIsNone(send_booking_link_notification(999999, 'email'))
