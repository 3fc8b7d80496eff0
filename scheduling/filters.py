"""
Filter classes for scheduling list endpoints
"""
from django_filters import rest_framework as filters

from .models import BookingLink, ClientMeeting, InternalMeeting


class BookingLinkFilter(filters.FilterSet):
    is_used = filters.BooleanFilter()
    client_id = filters.NumberFilter()
    case_id = filters.NumberFilter()
    lawyer_id = filters.NumberFilter(field_name='lawyer_id')

    class Meta:
        model = BookingLink
        fields = ['is_used', 'client_id', 'case_id', 'lawyer_id']


class ClientMeetingFilter(filters.FilterSet):
    """Client meetings by status, people involved and scheduled date"""
    status = filters.MultipleChoiceFilter(choices=ClientMeeting.STATUS_CHOICES)
    meeting_type = filters.ChoiceFilter(choices=ClientMeeting.MEETING_TYPES)
    lawyer_id = filters.NumberFilter(field_name='lawyer_id')
    client_id = filters.NumberFilter()
    case_id = filters.NumberFilter()
    scheduled_after = filters.DateFilter(field_name='scheduled_at', lookup_expr='date__gte')
    scheduled_before = filters.DateFilter(field_name='scheduled_at', lookup_expr='date__lte')

    class Meta:
        model = ClientMeeting
        fields = ['status', 'meeting_type', 'lawyer_id', 'client_id', 'case_id']


class InternalMeetingFilter(filters.FilterSet):
    status = filters.MultipleChoiceFilter(choices=InternalMeeting.STATUS_CHOICES)
    created_by = filters.NumberFilter()
    participant = filters.NumberFilter(field_name='participants__id', distinct=True)
    scheduled_after = filters.DateFilter(field_name='scheduled_at', lookup_expr='date__gte')
    scheduled_before = filters.DateFilter(field_name='scheduled_at', lookup_expr='date__lte')

    class Meta:
        model = InternalMeeting
        fields = ['status', 'created_by']
