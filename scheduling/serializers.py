"""
Serializers for scheduling models
Handles data validation and transformation for scheduling API endpoints
"""
import re
from datetime import datetime

from rest_framework import serializers
from django.contrib.auth import get_user_model

from . import exceptions
from .availability import parse_time_slots, validate_weekly_schedule, get_timezone
from .transitions import project_button_state, BUTTON_LABELS
from .models import (
    LawyerAvailability, AvailabilityException, BookingLink,
    ClientMeeting, InternalMeeting, InternalMeetingParticipant
)

User = get_user_model()

MONTH_RE = re.compile(r'^(\d{4})-(\d{2})$')


def _run_domain_check(check, value):
    """Re-raise domain validation failures as DRF field errors"""
    try:
        return check(value)
    except exceptions.ValidationError as e:
        raise serializers.ValidationError(e.message)


class LawyerAvailabilitySerializer(serializers.ModelSerializer):
    """Serializer for a lawyer's weekly template and booking policy"""
    lawyer = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = LawyerAvailability
        fields = [
            'id', 'lawyer', 'timezone', 'weekly_schedule', 'buffer_minutes',
            'min_booking_hours', 'max_booking_days', 'allowed_durations',
            'default_location', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'lawyer', 'created_at', 'updated_at']

    def validate_weekly_schedule(self, value):
        return _run_domain_check(validate_weekly_schedule, value)

    def validate_timezone(self, value):
        _run_domain_check(get_timezone, value)
        return value

    def validate_allowed_durations(self, value):
        if not isinstance(value, list) or not value:
            raise serializers.ValidationError("Allowed durations must be a non-empty list")
        for minutes in value:
            if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
                raise serializers.ValidationError(f"Invalid duration: {minutes!r}")
        return sorted(set(value))


class AvailabilityExceptionSerializer(serializers.ModelSerializer):
    """Serializer for date-specific availability overrides"""

    class Meta:
        model = AvailabilityException
        fields = ['id', 'date', 'is_blocked', 'custom_slots', 'reason', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']
        # Uniqueness per date is handled by replacing the existing exception
        validators = []

    def validate_custom_slots(self, value):
        slots = _run_domain_check(parse_time_slots, value)
        return [{'start': f"{start:%H:%M}", 'end': f"{end:%H:%M}"} for start, end in slots]


class SlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    end_date = serializers.DateField(required=False)
    duration = serializers.IntegerField(min_value=1)
    lawyer_id = serializers.IntegerField(required=False, min_value=1)

    def validate(self, attrs):
        attrs.setdefault('end_date', attrs['date'])
        if attrs['end_date'] < attrs['date']:
            raise serializers.ValidationError({'end_date': "End date must not be before date"})
        return attrs


class DaysQuerySerializer(serializers.Serializer):
    month = serializers.CharField(help_text="YYYY-MM")
    duration = serializers.IntegerField(required=False, min_value=1)
    lawyer_id = serializers.IntegerField(required=False, min_value=1)

    def validate_month(self, value):
        match = MONTH_RE.match(value)
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise serializers.ValidationError("Month must be in YYYY-MM format")
        return int(match.group(1)), int(match.group(2))


class CheckSlotQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    duration = serializers.IntegerField(min_value=1)
    lawyer_id = serializers.IntegerField(required=False, min_value=1)


class BookingLinkSerializer(serializers.ModelSerializer):
    """Serializer for booking links as seen by staff"""
    lawyer = serializers.PrimaryKeyRelatedField(read_only=True)
    created_by = serializers.PrimaryKeyRelatedField(read_only=True)
    url = serializers.SerializerMethodField()
    state = serializers.SerializerMethodField()
    meeting_id = serializers.SerializerMethodField()

    class Meta:
        model = BookingLink
        fields = [
            'id', 'lawyer', 'client_id', 'case_id', 'client_name', 'recipient_email',
            'recipient_phone', 'token', 'url', 'expires_at', 'is_used', 'used_at',
            'state', 'meeting_id', 'notification_channel', 'created_by',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_url(self, obj):
        return obj.get_public_url()

    def get_state(self, obj):
        return obj.state(self.context.get('now'))

    def get_meeting_id(self, obj):
        meeting = obj.get_meeting()
        return meeting.pk if meeting else None


class BookingLinkCreateSerializer(serializers.Serializer):
    lawyer_id = serializers.IntegerField(required=False, min_value=1)
    client_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    case_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    client_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    recipient_email = serializers.EmailField(required=False, allow_blank=True)
    recipient_phone = serializers.CharField(required=False, allow_blank=True, max_length=50)
    notification_channel = serializers.ChoiceField(choices=BookingLink.NOTIFICATION_CHANNELS, default='none')
    expires_in_hours = serializers.IntegerField(required=False, min_value=1, max_value=24 * 90)

    def validate(self, attrs):
        channel = attrs.get('notification_channel')
        if channel in ('email', 'both') and not attrs.get('recipient_email'):
            raise serializers.ValidationError({'recipient_email': "Required to send the link by email"})
        if channel in ('whatsapp', 'both') and not attrs.get('recipient_phone'):
            raise serializers.ValidationError({'recipient_phone': "Required to send the link by WhatsApp"})
        return attrs


class ResendLinkSerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=['email', 'whatsapp', 'both'], required=False)


class ClientMeetingSerializer(serializers.ModelSerializer):
    """Serializer for client meetings"""
    lawyer = serializers.PrimaryKeyRelatedField(read_only=True)
    booking_link = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = ClientMeeting
        fields = [
            'id', 'lawyer', 'booking_link', 'client_id', 'case_id', 'client_name',
            'client_email', 'client_phone', 'title', 'notes', 'scheduled_at',
            'duration_minutes', 'ends_at', 'timezone', 'meeting_type', 'location',
            'video_meeting_url', 'status', 'confirmed_at', 'cancelled_at', 'outcome',
            'cancellation_reason', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class ClientMeetingDetailsSerializer(serializers.Serializer):
    """Client and venue fields shared by direct booking and editing"""
    client_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    client_email = serializers.EmailField(required=False, allow_blank=True)
    client_phone = serializers.CharField(required=False, allow_blank=True, max_length=50)
    title = serializers.CharField(required=False, allow_blank=True, max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True)
    location = serializers.CharField(required=False, allow_blank=True, max_length=255)
    video_meeting_url = serializers.URLField(required=False, allow_blank=True)
    timezone = serializers.CharField(required=False, max_length=64)

    def validate_timezone(self, value):
        _run_domain_check(get_timezone, value)
        return value


class ClientMeetingCreateSerializer(ClientMeetingDetailsSerializer):
    """Direct booking by staff on a lawyer's calendar"""
    lawyer_id = serializers.IntegerField(required=False, min_value=1)
    scheduled_at = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1, max_value=24 * 60)
    client_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    case_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    meeting_type = serializers.ChoiceField(choices=ClientMeeting.MEETING_TYPES, default='in_person')


class ClientMeetingUpdateSerializer(ClientMeetingDetailsSerializer):
    """Edit or move a pending or confirmed meeting; every field is optional"""
    scheduled_at = serializers.DateTimeField(required=False)
    duration_minutes = serializers.IntegerField(required=False, min_value=1, max_value=24 * 60)
    meeting_type = serializers.ChoiceField(choices=ClientMeeting.MEETING_TYPES, required=False)


class MeetingOutcomeSerializer(serializers.Serializer):
    outcome = serializers.CharField(required=False, allow_blank=True)


class CancellationReasonSerializer(serializers.Serializer):
    reason = serializers.CharField()


class MeetingCancellationSerializer(CancellationReasonSerializer):
    cancelled_by = serializers.ChoiceField(choices=['client', 'lawyer'], default='lawyer')


class LinkCaseSerializer(serializers.Serializer):
    case_id = serializers.IntegerField(allow_null=True, min_value=1)


class InternalMeetingParticipantSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    name = serializers.SerializerMethodField()

    class Meta:
        model = InternalMeetingParticipant
        fields = ['id', 'user_id', 'name', 'status', 'joined_at', 'left_at']
        read_only_fields = fields

    def get_name(self, obj):
        return obj.user.get_full_name() or obj.user.get_username()


class InternalMeetingSerializer(serializers.ModelSerializer):
    """
    Serializer for internal meetings
    `participant_ids` replaces the attendee list on write; `button_state`
    is projected for the requesting user at read time
    """
    created_by = serializers.PrimaryKeyRelatedField(read_only=True)
    participants = InternalMeetingParticipantSerializer(source='attendances', many=True, read_only=True)
    participant_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), write_only=True, required=False
    )
    button_state = serializers.SerializerMethodField()

    class Meta:
        model = InternalMeeting
        fields = [
            'id', 'title', 'agenda', 'scheduled_at', 'duration_minutes', 'ends_at',
            'timezone', 'location', 'video_meeting_url', 'video_provider', 'status',
            'join_button_minutes_before', 'join_button_minutes_after', 'summary_permission',
            'summary', 'summary_points', 'summary_decisions', 'summary_tasks',
            'cancellation_reason', 'created_by', 'participants', 'participant_ids',
            'button_state', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'id', 'ends_at', 'status', 'summary', 'summary_points', 'summary_decisions',
            'summary_tasks', 'cancellation_reason', 'created_by', 'created_at', 'updated_at'
        ]

    def get_button_state(self, obj):
        now = self.context.get('now')
        if now is None:
            return None
        request = self.context.get('request')
        state = project_button_state(obj, now, getattr(request, 'user', None))
        return dict(state.as_dict(), label=BUTTON_LABELS[state.status])

    def validate_timezone(self, value):
        _run_domain_check(get_timezone, value)
        return value

    def validate_participant_ids(self, value):
        ids = list(dict.fromkeys(value))
        found = set(User.objects.filter(pk__in=ids).values_list('pk', flat=True))
        missing = [pk for pk in ids if pk not in found]
        if missing:
            raise serializers.ValidationError(f"Unknown users: {missing}")
        return ids

    def validate(self, attrs):
        if (self.instance is None or 'participant_ids' in attrs) and not attrs.get('participant_ids'):
            raise serializers.ValidationError({'participant_ids': "At least one participant is required"})
        return attrs

    def _sync_participants(self, meeting, participant_ids):
        InternalMeetingParticipant.objects.filter(meeting=meeting).exclude(user_id__in=participant_ids).delete()
        existing = set(meeting.attendances.values_list('user_id', flat=True))
        InternalMeetingParticipant.objects.bulk_create([
            InternalMeetingParticipant(meeting=meeting, user_id=user_id)
            for user_id in participant_ids if user_id not in existing
        ])

    def create(self, validated_data):
        participant_ids = validated_data.pop('participant_ids', [])
        meeting = super().create(validated_data)
        self._sync_participants(meeting, participant_ids)
        return meeting

    def update(self, instance, validated_data):
        participant_ids = validated_data.pop('participant_ids', None)
        meeting = super().update(instance, validated_data)
        if participant_ids is not None:
            self._sync_participants(meeting, participant_ids)
        return meeting


class SummaryTaskSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    assignee_id = serializers.IntegerField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)


class MeetingSummarySerializer(serializers.Serializer):
    summary = serializers.CharField(required=False, allow_blank=True)
    summary_points = serializers.ListField(child=serializers.CharField(), required=False)
    summary_decisions = serializers.ListField(child=serializers.CharField(), required=False)
    summary_tasks = SummaryTaskSerializer(many=True, required=False)

    def validate_summary_tasks(self, value):
        # Stored as JSON, so dates go back to ISO strings
        return [
            {key: (item.isoformat() if hasattr(item, 'isoformat') else item) for key, item in task.items()}
            for task in value
        ]


class PublicBookingRequestSerializer(serializers.Serializer):
    """Booking form submitted by a client; date and time are in the lawyer's timezone"""
    client_name = serializers.CharField(max_length=255)
    client_email = serializers.EmailField(required=False, allow_blank=True)
    client_phone = serializers.CharField(required=False, allow_blank=True, max_length=50)
    date = serializers.DateField()
    time = serializers.TimeField(input_formats=['%H:%M'])
    duration = serializers.IntegerField(min_value=1)
    meeting_type = serializers.ChoiceField(choices=ClientMeeting.MEETING_TYPES, default='in_person')
    notes = serializers.CharField(required=False, allow_blank=True)

    def local_start(self, tz):
        data = self.validated_data
        return tz.localize(datetime.combine(data['date'], data['time']))


class PublicSlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    duration = serializers.IntegerField(min_value=1)
