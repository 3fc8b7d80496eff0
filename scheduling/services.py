"""
Scheduling services for availability calculation, booking links and reservations
All time comparisons use timezone-aware datetimes; wall-clock slot times are
interpreted in the lawyer's configured timezone
"""
import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .availability import (
    BookingPolicy, resolve_day_slots, get_timezone, day_windows, day_bounds
)
from .clock import default_clock
from .exceptions import (
    ValidationError, LinkInvalid, LinkAlreadyUsed, LinkExpired, SlotNoLongerAvailable, IllegalTransition
)
from .intervals import Interval, expand, overlaps, subtract, step_starts
from .models import BookingLink, ClientMeeting
from .repositories import MeetingRepository, LinkRepository, AvailabilityRepository

logger = logging.getLogger(__name__)

# Reasons reported by AvailabilityCalculator.check_slot
OUTSIDE_HORIZON = 'outside_horizon'
DURATION_NOT_ALLOWED = 'duration_not_allowed'
OUTSIDE_AVAILABILITY = 'outside_availability'
CONFLICT = 'conflict'

CLIENT_DETAIL_FIELDS = (
    'client_name', 'client_email', 'client_phone', 'title', 'notes', 'meeting_type',
    'location', 'video_meeting_url', 'timezone',
)


def _validate_duration(duration) -> int:
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise ValidationError(f"Duration must be a positive number of minutes, got {duration!r}")
    return duration


def _validate_start(start) -> datetime:
    if not isinstance(start, datetime) or timezone.is_naive(start):
        raise ValidationError("Start time must be a timezone-aware datetime")
    return start


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


class AvailabilityCalculator:
    """
    Service for calculating bookable start times
    Combines the weekly template, date exceptions, committed meetings and the booking policy
    """

    def __init__(self, clock=None, meetings: Optional[MeetingRepository] = None,
                 availability: Optional[AvailabilityRepository] = None):
        self.clock = clock or default_clock
        self.meetings = meetings or MeetingRepository()
        self.availability = availability or AvailabilityRepository()

    def generate(self, lawyer_id: int, start_date, end_date, duration: int) -> List[datetime]:
        """
        Candidate start times for a lawyer over a date range (inclusive)

        Args:
            lawyer_id: Lawyer whose availability is used
            start_date: First date of the range
            end_date: Last date of the range
            duration: Meeting length in minutes; also the step between candidates

        Returns:
            Ordered list of aware datetimes
        """
        _validate_duration(duration)
        start_date, end_date = _as_date(start_date), _as_date(end_date)
        if end_date < start_date:
            raise ValidationError("End date must not be before start date")

        now = self.clock.now()
        availability = self.availability.get_schedule(lawyer_id)
        policy = BookingPolicy.from_model(availability)
        if not policy.allows_duration(duration):
            logger.debug(f"Duration {duration} not allowed for lawyer {lawyer_id}")
            return []

        tz = get_timezone(availability.timezone)
        earliest = policy.earliest_start(now)
        latest = policy.latest_start(now)

        # Dates wholly outside the horizon can never produce a candidate
        start_date = max(start_date, earliest.astimezone(tz).date())
        end_date = min(end_date, latest.astimezone(tz).date())
        if end_date < start_date:
            return []

        exceptions = self.availability.get_exceptions(lawyer_id, start_date, end_date)
        range_window = Interval(day_bounds(start_date, tz).start, day_bounds(end_date, tz).end)
        blocked = self._blocked_intervals(lawyer_id, range_window, policy.buffer_minutes)

        step = timedelta(minutes=duration)
        candidates = []
        current = start_date
        while current <= end_date:
            for free in self._free_for_day(current, availability, tz, exceptions.get(current), blocked):
                candidates.extend(t for t in step_starts(free, step) if earliest <= t <= latest)
            current += timedelta(days=1)

        logger.debug(
            f"Generated {len(candidates)} candidates for lawyer {lawyer_id} "
            f"between {start_date} and {end_date} ({duration} min)"
        )
        return candidates

    def free_intervals(self, availability, day: date) -> List[Interval]:
        """Raw availability for one date minus buffered committed meetings"""
        tz = get_timezone(availability.timezone)
        policy = BookingPolicy.from_model(availability)
        exception = self.availability.get_exceptions(availability.lawyer_id, day, day).get(day)
        blocked = self._blocked_intervals(availability.lawyer_id, day_bounds(day, tz), policy.buffer_minutes)
        return self._free_for_day(day, availability, tz, exception, blocked)

    def available_days(self, lawyer_id: int, year: int, month: int, duration: Optional[int] = None) -> List[date]:
        """Dates of the month with at least one bookable start"""
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}")
        availability = self.availability.get_schedule(lawyer_id)
        if duration is None:
            policy = BookingPolicy.from_model(availability)
            if not policy.allowed_durations:
                return []
            duration = min(policy.allowed_durations)

        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        tz = get_timezone(availability.timezone)
        days = {t.astimezone(tz).date() for t in self.generate(lawyer_id, first, last, duration)}
        return sorted(days)

    def check_slot(self, lawyer_id: int, start: datetime, duration: int) -> Tuple[bool, Optional[str]]:
        """
        Whether one specific start can be booked right now

        Returns:
            (True, None) or (False, reason) where reason is one of
            outside_horizon, duration_not_allowed, outside_availability, conflict
        """
        _validate_duration(duration)
        _validate_start(start)
        availability = self.availability.get_schedule(lawyer_id)
        reason = self.evaluate_slot(availability, start, duration, self.clock.now())
        return reason is None, reason

    def evaluate_slot(self, availability, start: datetime, duration: int, now: datetime,
                      enforce_horizon: bool = True) -> Optional[str]:
        """Reason a start is not bookable against current data, or None when it is"""
        policy = BookingPolicy.from_model(availability)
        if not policy.allows_duration(duration):
            return DURATION_NOT_ALLOWED
        if enforce_horizon and not policy.earliest_start(now) <= start <= policy.latest_start(now):
            return OUTSIDE_HORIZON

        end = start + timedelta(minutes=duration)
        tz = get_timezone(availability.timezone)
        day = start.astimezone(tz).date()
        exception = self.availability.get_exceptions(availability.lawyer_id, day, day).get(day)
        windows = day_windows(day, resolve_day_slots(day, availability.weekly_schedule, exception), tz)
        if not any(window.contains(start, end) for window in windows):
            return OUTSIDE_AVAILABILITY

        blocked = self._blocked_intervals(availability.lawyer_id, day_bounds(day, tz), policy.buffer_minutes)
        free = self._free_for_day(day, availability, tz, exception, blocked)
        if not any(interval.contains(start, end) for interval in free):
            return CONFLICT
        return None

    def has_conflict(self, lawyer_id: int, start: datetime, duration: int, buffer_minutes: int,
                     exclude_client_meeting_id: Optional[int] = None) -> bool:
        """
        True when [start, start + duration) overlaps any buffered committed meeting
        A meeting being moved passes its own id so it does not block itself
        """
        candidate = Interval(start, start + timedelta(minutes=duration))
        blocked = self._blocked_intervals(lawyer_id, candidate, buffer_minutes, exclude_client_meeting_id)
        return any(overlaps(candidate, block) for block in blocked)

    def _blocked_intervals(self, lawyer_id: int, window: Interval, buffer_minutes: int,
                           exclude_client_meeting_id: Optional[int] = None) -> List[Interval]:
        # Widen the lookup so meetings whose buffer spills into the window are found
        lookup = expand(window, buffer_minutes)
        committed = self.meetings.list_committed_meetings(
            lawyer_id, lookup.start, lookup.end, exclude_client_meeting_id=exclude_client_meeting_id
        )
        return [expand(meeting, buffer_minutes) for meeting in committed]

    def _free_for_day(self, day: date, availability, tz, exception, blocked: List[Interval]) -> List[Interval]:
        slots = resolve_day_slots(day, availability.weekly_schedule, exception)
        free = []
        for window in day_windows(day, slots, tz):
            free.extend(subtract(window, blocked))
        return free


class BookingProcessor:
    """
    Service for turning a chosen start time into a committed client meeting
    Reservations for one lawyer are serialised by locking that lawyer's availability row
    """

    def __init__(self, clock=None, calculator: Optional[AvailabilityCalculator] = None,
                 meetings: Optional[MeetingRepository] = None, links: Optional[LinkRepository] = None,
                 availability: Optional[AvailabilityRepository] = None):
        self.clock = clock or default_clock
        self.meetings = meetings or MeetingRepository()
        self.links = links or LinkRepository()
        self.availability = availability or AvailabilityRepository()
        self.calculator = calculator or AvailabilityCalculator(
            clock=self.clock, meetings=self.meetings, availability=self.availability
        )

    def reserve(self, token: str, chosen_start: datetime, duration: int, **client_details) -> ClientMeeting:
        """
        Book a meeting through a booking link

        The link is consumed and the meeting created in the same transaction,
        so a token can never produce two meetings.
        """
        _validate_duration(duration)
        _validate_start(chosen_start)
        details = self._clean_details(client_details)

        with transaction.atomic():
            now = self.clock.now()
            link = self.links.get_link(token, for_update=True)
            if link is None:
                raise LinkInvalid()
            if link.is_used:
                raise LinkAlreadyUsed()
            if link.is_expired(now):
                raise LinkExpired()

            availability = self.availability.get_schedule(link.lawyer_id, for_update=True)
            policy = BookingPolicy.from_model(availability)
            if not policy.allows_duration(duration):
                raise ValidationError(
                    f"Duration {duration} is not allowed; choose one of {list(policy.allowed_durations)}"
                )

            reason = self.calculator.evaluate_slot(availability, chosen_start, duration, now)
            if reason is not None:
                logger.info(
                    f"Rejected reservation for lawyer {link.lawyer_id} at {chosen_start.isoformat()}: {reason}"
                )
                raise SlotNoLongerAvailable()

            meeting = self.meetings.create_client_meeting(
                lawyer_id=link.lawyer_id,
                booking_link=link,
                client_id=link.client_id,
                case_id=link.case_id,
                scheduled_at=chosen_start,
                duration_minutes=duration,
                timezone=details.pop('timezone', '') or availability.timezone,
                location=details.pop('location', '') or policy.default_location or '',
                status='pending',
                **details
            )
            self.links.mark_used(link, meeting, now)

        logger.info(f"Reserved client meeting {meeting.pk} for lawyer {meeting.lawyer_id} via link {link.pk}")
        return meeting

    def book_direct(self, lawyer, start: datetime, duration: int, client_id: Optional[int] = None,
                    case_id: Optional[int] = None, **details) -> ClientMeeting:
        """
        Staff booking on a lawyer's calendar; buffers are respected, the horizon is not
        """
        _validate_duration(duration)
        _validate_start(start)
        details = self._clean_details(details)
        lawyer_id = getattr(lawyer, 'pk', lawyer)

        with transaction.atomic():
            now = self.clock.now()
            availability = self.availability.get_schedule(lawyer_id, for_update=True)
            if self.calculator.has_conflict(lawyer_id, start, duration, availability.buffer_minutes):
                logger.info(f"Rejected direct booking for lawyer {lawyer_id} at {start.isoformat()}: conflict")
                raise SlotNoLongerAvailable()

            meeting = self.meetings.create_client_meeting(
                lawyer_id=lawyer_id,
                client_id=client_id,
                case_id=case_id,
                scheduled_at=start,
                duration_minutes=duration,
                timezone=details.pop('timezone', '') or availability.timezone,
                location=details.pop('location', '') or availability.default_location or '',
                status='confirmed',
                confirmed_at=now,
                **details
            )

        logger.info(f"Booked client meeting {meeting.pk} directly for lawyer {lawyer_id}")
        return meeting

    def reschedule(self, meeting: ClientMeeting, start: Optional[datetime] = None,
                   duration: Optional[int] = None, **details) -> ClientMeeting:
        """
        Edit a pending or confirmed meeting, moving it when start or duration change

        A new time is re-checked against the lawyer's other commitments under the
        same per-lawyer lock as bookings. Like direct bookings, only buffered
        conflicts apply; the horizon and weekly hours do not.
        """
        if duration is not None:
            _validate_duration(duration)
        if start is not None:
            _validate_start(start)
        details = self._clean_details(details)

        with transaction.atomic():
            availability = self.availability.get_schedule(meeting.lawyer_id, for_update=True)
            meeting.refresh_from_db()
            if meeting.status not in ClientMeeting.ACTIVE_STATUSES:
                raise IllegalTransition(
                    meeting.status, meeting.status,
                    f"Cannot edit a meeting in status '{meeting.status}'"
                )

            fields = {
                name: value for name, value in details.items()
                if getattr(meeting, name) != value
            }
            new_start = start if start is not None else meeting.scheduled_at
            new_duration = duration if duration is not None else meeting.duration_minutes
            if new_start != meeting.scheduled_at or new_duration != meeting.duration_minutes:
                if self.calculator.has_conflict(meeting.lawyer_id, new_start, new_duration,
                                                availability.buffer_minutes,
                                                exclude_client_meeting_id=meeting.pk):
                    logger.info(
                        f"Rejected reschedule of client meeting {meeting.pk} to {new_start.isoformat()}: conflict"
                    )
                    raise SlotNoLongerAvailable()
                fields.update(scheduled_at=new_start, duration_minutes=new_duration)

            if fields:
                self.meetings.update_client_meeting(meeting, **fields)

        logger.info(f"Updated client meeting {meeting.pk} ({', '.join(sorted(fields)) or 'no changes'})")
        return meeting

    def _clean_details(self, details: Dict) -> Dict:
        unknown = set(details) - set(CLIENT_DETAIL_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown booking fields: {', '.join(sorted(unknown))}")
        meeting_type = details.get('meeting_type')
        if meeting_type is not None and meeting_type not in dict(ClientMeeting.MEETING_TYPES):
            raise ValidationError(f"Invalid meeting type: {meeting_type}")
        if details.get('timezone'):
            get_timezone(details['timezone'])
        return {key: value for key, value in details.items() if value is not None}


class BookingLinkService:
    """
    Issues, validates and re-sends single-use booking links
    """

    def __init__(self, clock=None, links: Optional[LinkRepository] = None):
        self.clock = clock or default_clock
        self.links = links or LinkRepository()

    def issue(self, lawyer, created_by=None, client_id: Optional[int] = None, case_id: Optional[int] = None,
              notification_channel: str = 'none', expires_in_hours: Optional[int] = None,
              client_name: str = '', recipient_email: str = '', recipient_phone: str = '') -> BookingLink:
        self._validate_channel(notification_channel)
        hours = expires_in_hours if expires_in_hours is not None else settings.SCHEDULING_CONFIG['LINK_EXPIRY_HOURS']
        if hours <= 0:
            raise ValidationError("Link expiry must be a positive number of hours")

        link = self.links.create_link(
            lawyer=lawyer,
            created_by=created_by,
            client_id=client_id,
            case_id=case_id,
            client_name=client_name or '',
            recipient_email=recipient_email or '',
            recipient_phone=recipient_phone or '',
            notification_channel=notification_channel,
            expires_at=self.clock.now() + timedelta(hours=hours),
        )
        logger.info(f"Issued booking link {link.pk} for lawyer {link.lawyer_id} (expires {link.expires_at.isoformat()})")
        self._queue_notification(link, notification_channel)
        return link

    def validate(self, token: str) -> BookingLink:
        """The link for a token, or the typed reason it cannot be used"""
        link = self.links.get_link(token)
        if link is None:
            raise LinkInvalid()
        if link.is_used:
            raise LinkAlreadyUsed()
        if link.is_expired(self.clock.now()):
            raise LinkExpired()
        return link

    def state(self, link: BookingLink, now: Optional[datetime] = None) -> str:
        return link.state(now or self.clock.now())

    def delete(self, link_id: int) -> None:
        """Delete a link in any state; meetings booked with it are kept"""
        if not self.links.delete_link(link_id):
            raise LinkInvalid()
        logger.info(f"Deleted booking link {link_id}")

    def resend(self, link_id: int, channel: Optional[str] = None) -> BookingLink:
        link = self.links.get_link_by_id(link_id)
        if link is None:
            raise LinkInvalid()
        if link.is_used:
            raise LinkAlreadyUsed()
        if link.is_expired(self.clock.now()):
            raise LinkExpired()

        channel = channel or link.notification_channel
        self._validate_channel(channel)
        if channel == 'none':
            raise ValidationError("Choose a notification channel to resend the link")
        self._queue_notification(link, channel)
        return link

    def _validate_channel(self, channel: str):
        if channel not in dict(BookingLink.NOTIFICATION_CHANNELS):
            raise ValidationError(f"Invalid notification channel: {channel}")

    def _queue_notification(self, link: BookingLink, channel: str):
        if channel == 'none':
            return
        from .tasks import send_booking_link_notification

        link_id = link.pk
        transaction.on_commit(lambda: send_booking_link_notification.delay(link_id, channel))
        logger.info(f"Queued {channel} notification for booking link {link_id}")
