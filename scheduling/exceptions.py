"""
Domain errors raised by the scheduling engine
Each kind carries a stable code and the HTTP status the API answers with
"""
from rest_framework import status


class SchedulingError(Exception):
    """Base class for expected, caller-recoverable scheduling outcomes"""
    code = 'scheduling_error'
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = 'Scheduling request failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def as_dict(self):
        return {'error': self.message, 'code': self.code}


class ValidationError(SchedulingError):
    """Malformed input: non-positive duration, disallowed duration, empty range"""
    code = 'validation_error'
    default_message = 'Invalid scheduling request'


class BookingLinkError(SchedulingError):
    code = 'link_error'
    default_message = 'Booking link cannot be used'


class LinkInvalid(BookingLinkError):
    code = 'link_invalid'
    http_status = status.HTTP_404_NOT_FOUND
    default_message = 'Booking link not found'


class LinkAlreadyUsed(BookingLinkError):
    code = 'link_already_used'
    http_status = status.HTTP_410_GONE
    default_message = 'Booking link has already been used'


class LinkExpired(BookingLinkError):
    code = 'link_expired'
    http_status = status.HTTP_410_GONE
    default_message = 'Booking link has expired'


class SlotNoLongerAvailable(SchedulingError):
    """The chosen start is no longer free; the caller should re-fetch slots"""
    code = 'slot_no_longer_available'
    http_status = status.HTTP_409_CONFLICT
    default_message = 'Selected time slot is no longer available'


class IllegalTransition(SchedulingError):
    code = 'illegal_transition'
    http_status = status.HTTP_409_CONFLICT
    default_message = 'Status change not allowed'

    def __init__(self, current, target, message=None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move meeting from '{current}' to '{target}'")


class PermissionDenied(SchedulingError):
    code = 'permission_denied'
    http_status = status.HTTP_403_FORBIDDEN
    default_message = 'You are not allowed to perform this action'
