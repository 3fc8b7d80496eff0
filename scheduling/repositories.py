"""
Thin data-access layer over the Django ORM
Services only talk to these classes, so locking and range queries live in one place
"""
import logging
from datetime import datetime
from typing import List, Optional

from django.db.models import Q

from .intervals import Interval
from .models import (
    LawyerAvailability, AvailabilityException, BookingLink,
    ClientMeeting, InternalMeeting
)

logger = logging.getLogger(__name__)


class MeetingRepository:

    def list_committed_meetings(self, lawyer_id: int, start: datetime, end: datetime,
                                exclude_client_meeting_id: Optional[int] = None) -> List[Interval]:
        """
        Intervals of every meeting that occupies the lawyer between start and end.

        Client meetings count in any non-cancelled status. Internal meetings
        count unless cancelled, when the lawyer attends or organised them.
        """
        client_qs = ClientMeeting.objects.filter(
            lawyer_id=lawyer_id,
            scheduled_at__lt=end,
            ends_at__gt=start,
        ).exclude(status__in=ClientMeeting.CANCELLED_STATUSES)
        if exclude_client_meeting_id is not None:
            client_qs = client_qs.exclude(pk=exclude_client_meeting_id)

        internal_qs = InternalMeeting.objects.filter(
            Q(participants__id=lawyer_id) | Q(created_by_id=lawyer_id),
            scheduled_at__lt=end,
            ends_at__gt=start,
        ).exclude(status='cancelled').distinct()

        intervals = [Interval(s, e) for s, e in client_qs.values_list('scheduled_at', 'ends_at')]
        intervals.extend(Interval(s, e) for s, e in internal_qs.values_list('scheduled_at', 'ends_at'))
        intervals.sort()
        return intervals

    def create_client_meeting(self, **fields) -> ClientMeeting:
        return ClientMeeting.objects.create(**fields)

    def update_client_meeting(self, meeting: ClientMeeting, **fields) -> ClientMeeting:
        for name, value in fields.items():
            setattr(meeting, name, value)
        meeting.save(update_fields=list(fields) + ['updated_at'])
        return meeting

    def update_status(self, meeting, status: str, reason: Optional[str] = None, **extra):
        """Persist a status change plus any timestamp/outcome fields that go with it"""
        meeting.status = status
        update_fields = ['status', 'updated_at']
        if reason is not None:
            meeting.cancellation_reason = reason
            update_fields.append('cancellation_reason')
        for name, value in extra.items():
            setattr(meeting, name, value)
            update_fields.append(name)
        meeting.save(update_fields=update_fields)
        return meeting


class LinkRepository:

    def get_link(self, token: str, for_update: bool = False) -> Optional[BookingLink]:
        qs = BookingLink.objects.all()
        if for_update:
            qs = qs.select_for_update()
        return qs.filter(token=token).first()

    def get_link_by_id(self, link_id: int) -> Optional[BookingLink]:
        return BookingLink.objects.filter(pk=link_id).first()

    def create_link(self, **fields) -> BookingLink:
        return BookingLink.objects.create(**fields)

    def mark_used(self, link: BookingLink, meeting: ClientMeeting, used_at: datetime) -> BookingLink:
        link.is_used = True
        link.used_at = used_at
        link.save(update_fields=['is_used', 'used_at', 'updated_at'])
        logger.info(f"Booking link {link.pk} used by meeting {meeting.pk}")
        return link

    def delete_link(self, link_id: int) -> bool:
        deleted, _ = BookingLink.objects.filter(pk=link_id).delete()
        return deleted > 0


class AvailabilityRepository:

    def get_schedule(self, lawyer_id: int, for_update: bool = False) -> LawyerAvailability:
        """
        The lawyer's availability row, created with defaults on first access.
        With for_update the row is locked until the surrounding transaction ends.
        """
        availability, created = LawyerAvailability.objects.get_or_create(lawyer_id=lawyer_id)
        if created:
            logger.info(f"Created default availability for lawyer {lawyer_id}")
        if for_update:
            availability = LawyerAvailability.objects.select_for_update().get(pk=availability.pk)
        return availability

    def get_exceptions(self, lawyer_id: int, start, end) -> dict:
        """Exceptions between two dates (inclusive), keyed by date"""
        exceptions = AvailabilityException.objects.filter(
            availability__lawyer_id=lawyer_id,
            date__gte=start,
            date__lte=end,
        )
        return {exception.date: exception for exception in exceptions}

    def upsert_exception(self, availability: LawyerAvailability, date, is_blocked: bool = True,
                         custom_slots=None, reason: str = '') -> AvailabilityException:
        """At most one exception per date; a second write for the same date replaces the first"""
        exception, created = AvailabilityException.objects.update_or_create(
            availability=availability,
            date=date,
            defaults={
                'is_blocked': is_blocked,
                'custom_slots': [] if is_blocked else (custom_slots or []),
                'reason': reason or '',
            },
        )
        logger.info(
            f"{'Created' if created else 'Replaced'} availability exception on {date} "
            f"for lawyer {availability.lawyer_id}"
        )
        return exception

    def delete_exception(self, availability: LawyerAvailability, exception_id: int) -> bool:
        deleted, _ = AvailabilityException.objects.filter(availability=availability, pk=exception_id).delete()
        return deleted > 0
