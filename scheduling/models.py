"""
Scheduling models for lawyer availability, booking links and meetings
Client meetings are booked through single-use links; internal meetings
coordinate staff and drive the smart join/summary button
"""
import secrets
from datetime import timedelta
from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from django.db import models
from django.utils import timezone
from django.core.validators import MinValueValidator, MaxValueValidator

from .availability import default_weekly_schedule, default_allowed_durations


def default_timezone():
    return settings.SCHEDULING_CONFIG['DEFAULT_TIMEZONE']


def generate_link_token():
    return secrets.token_urlsafe(32)


def default_link_expiry():
    return timezone.now() + timedelta(hours=settings.SCHEDULING_CONFIG['LINK_EXPIRY_HOURS'])


def default_join_minutes_before():
    return settings.SCHEDULING_CONFIG['JOIN_BUTTON_MINUTES_BEFORE']


def default_join_minutes_after():
    return settings.SCHEDULING_CONFIG['JOIN_BUTTON_MINUTES_AFTER']


class LawyerAvailability(models.Model):
    """
    Weekly availability template and booking policy for one lawyer
    The row doubles as the per-lawyer lock taken while reserving a slot
    """
    lawyer = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='availability'
    )
    timezone = models.CharField(max_length=64, default=default_timezone)

    # Format: {"sunday": {"enabled": true, "slots": [{"start": "09:00", "end": "17:00"}]}, ...}
    weekly_schedule = models.JSONField(default=default_weekly_schedule)

    buffer_minutes = models.PositiveIntegerField(
        default=15,
        validators=[MaxValueValidator(240)],
        help_text="Idle time required around every committed meeting"
    )
    min_booking_hours = models.PositiveIntegerField(
        default=24,
        validators=[MaxValueValidator(24 * 30)],
        help_text="Minimum advance notice required for bookings"
    )
    max_booking_days = models.PositiveIntegerField(
        default=30,
        validators=[MinValueValidator(1), MaxValueValidator(365)],
        help_text="Maximum days in advance a client may book"
    )
    allowed_durations = models.JSONField(
        default=default_allowed_durations,
        help_text="Meeting lengths in minutes clients may choose from"
    )
    default_location = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'lawyer availabilities'

    def __str__(self):
        return f"{self.lawyer} - Availability"


class AvailabilityException(models.Model):
    """
    Date-specific override of the weekly template
    Either blocks the whole date or replaces its slots with custom ones
    """
    availability = models.ForeignKey(
        LawyerAvailability,
        on_delete=models.CASCADE,
        related_name='exceptions'
    )
    date = models.DateField()
    is_blocked = models.BooleanField(default=True)
    # Format: [{"start": "09:00", "end": "12:00"}]
    custom_slots = models.JSONField(default=list, blank=True)
    reason = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['availability', 'date'], name='unique_exception_per_date'),
        ]
        ordering = ['date']

    def __str__(self):
        kind = 'blocked' if self.is_blocked else 'custom hours'
        return f"{self.availability.lawyer} - {self.date} ({kind})"


class BookingLink(models.Model):
    """
    Single-use, time-limited token that lets one client book one meeting
    """
    NOTIFICATION_CHANNELS = [
        ('none', 'Do not send'),
        ('email', 'Email'),
        ('whatsapp', 'WhatsApp'),
        ('both', 'Email and WhatsApp'),
    ]

    lawyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='booking_links'
    )
    client_id = models.PositiveIntegerField(null=True, blank=True)
    case_id = models.PositiveIntegerField(null=True, blank=True)
    # Contact details used to deliver the link and prefill the booking form
    client_name = models.CharField(max_length=255, blank=True)
    recipient_email = models.EmailField(blank=True)
    recipient_phone = models.CharField(max_length=50, blank=True)
    token = models.CharField(max_length=64, unique=True, default=generate_link_token, editable=False)
    expires_at = models.DateTimeField(default=default_link_expiry)
    is_used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)
    notification_channel = models.CharField(max_length=10, choices=NOTIFICATION_CHANNELS, default='none')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='issued_booking_links'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['lawyer', 'is_used'], name='sched_link_lawyer_used_idx'),
            models.Index(fields=['expires_at'], name='sched_link_expires_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"Booking link for {self.lawyer} ({self.state()})"

    def is_expired(self, now=None):
        return (now or timezone.now()) >= self.expires_at

    def is_valid(self, now=None):
        return not self.is_used and not self.is_expired(now)

    def state(self, now=None):
        """issued -> used, or issued -> expired (computed, never stored)"""
        if self.is_used:
            return 'used'
        if self.is_expired(now):
            return 'expired'
        return 'issued'

    def get_public_url(self):
        base = settings.SCHEDULING_CONFIG['PUBLIC_BOOKING_URL'].rstrip('/')
        return f"{base}/{self.token}"

    def get_meeting(self):
        """The meeting booked through this link, if any"""
        try:
            return self.meeting
        except ObjectDoesNotExist:
            return None


class TimedMeeting(models.Model):
    """Shared start/duration fields; ends_at is kept in sync for range queries"""
    scheduled_at = models.DateTimeField()
    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    ends_at = models.DateTimeField(editable=False)
    timezone = models.CharField(max_length=64, default=default_timezone)
    location = models.CharField(max_length=255, blank=True)
    video_meeting_url = models.URLField(blank=True)
    cancellation_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        self.ends_at = self.scheduled_at + timedelta(minutes=self.duration_minutes)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and {'scheduled_at', 'duration_minutes'} & set(update_fields):
            kwargs['update_fields'] = list(set(update_fields) | {'ends_at'})
        super().save(*args, **kwargs)


class ClientMeeting(TimedMeeting):
    """
    Meeting between a lawyer and a client, usually created from a booking link
    Never deleted; only moved through its status machine
    """
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('completed', 'Completed'),
        ('cancelled_by_client', 'Cancelled by Client'),
        ('cancelled_by_lawyer', 'Cancelled by Lawyer'),
        ('no_show', 'No Show'),
    ]
    MEETING_TYPES = [
        ('in_person', 'In Person'),
        ('remote', 'Remote'),
    ]
    CANCELLED_STATUSES = ('cancelled_by_client', 'cancelled_by_lawyer')
    ACTIVE_STATUSES = ('pending', 'confirmed')

    lawyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='client_meetings'
    )
    # Deleting a link keeps the meeting it produced
    booking_link = models.OneToOneField(
        BookingLink,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='meeting'
    )
    client_id = models.PositiveIntegerField(null=True, blank=True)
    case_id = models.PositiveIntegerField(null=True, blank=True)
    client_name = models.CharField(max_length=255, blank=True)
    client_email = models.EmailField(blank=True)
    client_phone = models.CharField(max_length=50, blank=True)

    title = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    meeting_type = models.CharField(max_length=20, choices=MEETING_TYPES, default='in_person')

    status = models.CharField(max_length=24, choices=STATUS_CHOICES, default='pending')
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    outcome = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['lawyer', 'scheduled_at'], name='sched_client_lawyer_start_idx'),
            models.Index(fields=['lawyer', 'ends_at'], name='sched_client_lawyer_end_idx'),
            models.Index(fields=['status'], name='sched_client_status_idx'),
        ]
        ordering = ['scheduled_at']

    def __str__(self):
        return f"{self.title or 'Client meeting'} - {self.scheduled_at:%Y-%m-%d %H:%M}"


class InternalMeeting(TimedMeeting):
    """
    Staff meeting with a time-windowed join button and a shared summary
    """
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    SUMMARY_PERMISSIONS = [
        ('creator_only', 'Creator Only'),
        ('all_attendees', 'All Attendees'),
    ]
    VIDEO_PROVIDERS = [
        ('manual', 'Manual Link'),
        ('zoom', 'Zoom'),
        ('google_meet', 'Google Meet'),
        ('teams', 'Microsoft Teams'),
    ]

    title = models.CharField(max_length=255)
    agenda = models.TextField(blank=True)
    video_provider = models.CharField(max_length=20, choices=VIDEO_PROVIDERS, blank=True)

    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='InternalMeetingParticipant',
        related_name='internal_meetings'
    )
    join_button_minutes_before = models.PositiveIntegerField(default=default_join_minutes_before)
    join_button_minutes_after = models.PositiveIntegerField(default=default_join_minutes_after)
    summary_permission = models.CharField(max_length=20, choices=SUMMARY_PERMISSIONS, default='creator_only')

    summary = models.TextField(blank=True)
    summary_points = models.JSONField(default=list, blank=True)
    summary_decisions = models.JSONField(default=list, blank=True)
    # Format: [{"title": "...", "assignee_id": 3, "due_date": "2026-01-31"}]
    summary_tasks = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='scheduled')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='created_internal_meetings'
    )

    class Meta:
        indexes = [
            models.Index(fields=['scheduled_at', 'status'], name='sched_internal_start_idx'),
            models.Index(fields=['ends_at'], name='sched_internal_end_idx'),
        ]
        ordering = ['scheduled_at']

    def __str__(self):
        return f"{self.title} - {self.scheduled_at:%Y-%m-%d %H:%M}"

    def has_summary(self):
        return bool(
            (self.summary or '').strip()
            or self.summary_points
            or self.summary_decisions
            or self.summary_tasks
        )


class InternalMeetingParticipant(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('declined', 'Declined'),
    ]

    meeting = models.ForeignKey(InternalMeeting, on_delete=models.CASCADE, related_name='attendances')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='meeting_attendances')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    joined_at = models.DateTimeField(null=True, blank=True)
    left_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['meeting', 'user'], name='unique_meeting_participant'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.meeting_id} ({self.status})"
