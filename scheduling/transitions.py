"""
Status machines for client and internal meetings, plus the smart button
projection shown on internal meetings

The button state is derived from (meeting, now) on every request and never stored.
"""
import logging
from datetime import datetime, timedelta
from math import ceil
from typing import NamedTuple, Optional

from django.db import transaction

from .exceptions import IllegalTransition, PermissionDenied, ValidationError
from .models import InternalMeetingParticipant
from .repositories import MeetingRepository

logger = logging.getLogger(__name__)

_meetings = MeetingRepository()

# Allowed (current -> targets) for client meetings; terminal states map to nothing
CLIENT_TRANSITIONS = {
    'pending': {'confirmed', 'completed', 'cancelled_by_client', 'cancelled_by_lawyer', 'no_show'},
    'confirmed': {'completed', 'cancelled_by_client', 'cancelled_by_lawyer', 'no_show'},
    'completed': set(),
    'cancelled_by_client': set(),
    'cancelled_by_lawyer': set(),
    'no_show': set(),
}

INTERNAL_TRANSITIONS = {
    'scheduled': {'in_progress', 'completed', 'cancelled'},
    'in_progress': {'completed', 'cancelled'},
    'completed': set(),
    'cancelled': set(),
}


def _check(transitions, meeting, target):
    if target not in transitions.get(meeting.status, set()):
        raise IllegalTransition(meeting.status, target)


def _require_reason(reason):
    if not (reason or '').strip():
        raise ValidationError("A cancellation reason is required")
    return reason.strip()


# Client meetings

def confirm_client_meeting(meeting, now: datetime):
    _check(CLIENT_TRANSITIONS, meeting, 'confirmed')
    _meetings.update_status(meeting, 'confirmed', confirmed_at=now)
    logger.info(f"Client meeting {meeting.pk} confirmed")
    return meeting


def complete_client_meeting(meeting, outcome: Optional[str] = None):
    _check(CLIENT_TRANSITIONS, meeting, 'completed')
    extra = {'outcome': outcome} if outcome else {}
    _meetings.update_status(meeting, 'completed', **extra)
    logger.info(f"Client meeting {meeting.pk} completed")
    return meeting


def cancel_client_meeting(meeting, reason: str, now: datetime, by: str = 'lawyer'):
    """Cancel on behalf of the client or the lawyer; a reason is mandatory"""
    if by not in ('client', 'lawyer'):
        raise ValidationError(f"Invalid cancelling party: {by}")
    target = f'cancelled_by_{by}'
    _check(CLIENT_TRANSITIONS, meeting, target)
    _meetings.update_status(meeting, target, reason=_require_reason(reason), cancelled_at=now)
    logger.info(f"Client meeting {meeting.pk} cancelled by {by}")
    return meeting


def mark_no_show(meeting):
    _check(CLIENT_TRANSITIONS, meeting, 'no_show')
    _meetings.update_status(meeting, 'no_show')
    logger.info(f"Client meeting {meeting.pk} marked as no-show")
    return meeting


def link_to_case(meeting, case_id: Optional[int]):
    """Attach the meeting to a case; a data edit allowed in any status"""
    if case_id is not None and (isinstance(case_id, bool) or not isinstance(case_id, int) or case_id <= 0):
        raise ValidationError(f"Invalid case id: {case_id!r}")
    meeting.case_id = case_id
    meeting.save(update_fields=['case_id', 'updated_at'])
    return meeting


# Internal meetings

def start_internal_meeting(meeting):
    _check(INTERNAL_TRANSITIONS, meeting, 'in_progress')
    _meetings.update_status(meeting, 'in_progress')
    logger.info(f"Internal meeting {meeting.pk} started")
    return meeting


def complete_internal_meeting(meeting):
    _check(INTERNAL_TRANSITIONS, meeting, 'completed')
    _meetings.update_status(meeting, 'completed')
    logger.info(f"Internal meeting {meeting.pk} completed")
    return meeting


def cancel_internal_meeting(meeting, reason: str):
    _check(INTERNAL_TRANSITIONS, meeting, 'cancelled')
    _meetings.update_status(meeting, 'cancelled', reason=_require_reason(reason))
    logger.info(f"Internal meeting {meeting.pk} cancelled")
    return meeting


# Smart button

BUTTON_LABELS = {
    'upcoming': 'Upcoming',
    'join': 'Join meeting',
    'write_summary': 'Write summary',
    'view_summary': 'View summary',
    'none': 'Cancelled',
}


class ButtonState(NamedTuple):
    status: str
    disabled: bool = False
    countdown_minutes: Optional[int] = None

    def as_dict(self):
        return {
            'status': self.status,
            'disabled': self.disabled,
            'countdown_minutes': self.countdown_minutes,
        }


def is_participant(meeting, user) -> bool:
    if user is None or not getattr(user, 'is_authenticated', False):
        return False
    return meeting.attendances.filter(user_id=user.pk).exists()


def can_edit_summary(meeting, user) -> bool:
    if meeting.status == 'cancelled' or user is None:
        return False
    if meeting.created_by_id == user.pk:
        return True
    return meeting.summary_permission == 'all_attendees' and is_participant(meeting, user)


def join_window(meeting):
    """(opens, closes) of the join window, both inclusive"""
    opens = meeting.scheduled_at - timedelta(minutes=meeting.join_button_minutes_before)
    closes = (
        meeting.scheduled_at
        + timedelta(minutes=meeting.duration_minutes)
        + timedelta(minutes=meeting.join_button_minutes_after)
    )
    return opens, closes


def project_button_state(meeting, now: datetime, viewer=None) -> ButtonState:
    """
    What the meeting's action button shows at `now`

    completed   -> view_summary, or write_summary when nothing is written yet and viewer may edit
    cancelled   -> none
    before join window -> upcoming with a countdown to the window opening
    inside join window -> join
    after join window  -> write_summary
    """
    if meeting.status == 'completed':
        if not meeting.has_summary() and viewer is not None and can_edit_summary(meeting, viewer):
            return ButtonState('write_summary')
        return ButtonState('view_summary')
    if meeting.status == 'cancelled':
        return ButtonState('none', disabled=True)

    opens, closes = join_window(meeting)
    if now < opens:
        minutes = ceil((opens - now).total_seconds() / 60)
        return ButtonState('upcoming', disabled=True, countdown_minutes=minutes)
    if now <= closes:
        return ButtonState('join')
    return ButtonState('write_summary')


def join(meeting, user, now: datetime):
    """Record attendance and move a scheduled meeting to in_progress"""
    if project_button_state(meeting, now, user).status != 'join':
        raise ValidationError("This meeting cannot be joined right now")
    participant = meeting.attendances.filter(user_id=user.pk).first()
    if participant is None and meeting.created_by_id != user.pk:
        raise PermissionDenied("Only participants can join this meeting")

    with transaction.atomic():
        if participant is None:
            participant = InternalMeetingParticipant.objects.create(
                meeting=meeting, user=user, status='accepted'
            )
        if participant.joined_at is None:
            participant.joined_at = now
            participant.save(update_fields=['joined_at'])
        if meeting.status == 'scheduled':
            start_internal_meeting(meeting)

    logger.info(f"User {user.pk} joined internal meeting {meeting.pk}")
    return meeting


SUMMARY_FIELDS = ('summary', 'summary_points', 'summary_decisions', 'summary_tasks')


def save_summary(meeting, user, data: dict, now: datetime):
    """
    Store the meeting summary; an active meeting whose start has passed is completed
    """
    if not can_edit_summary(meeting, user):
        raise PermissionDenied("You are not allowed to edit this meeting's summary")

    update_fields = ['updated_at']
    for name in SUMMARY_FIELDS:
        if name in data:
            setattr(meeting, name, data[name])
            update_fields.append(name)

    with transaction.atomic():
        meeting.save(update_fields=update_fields)
        if meeting.status in ('scheduled', 'in_progress') and now >= meeting.scheduled_at:
            complete_internal_meeting(meeting)

    logger.info(f"Summary saved for internal meeting {meeting.pk} by user {user.pk}")
    return meeting
