"""
Public API views for scheduling
Handles unauthenticated booking through a single-use booking link token
"""
import logging
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter

from .availability import get_timezone
from .exceptions import LinkInvalid, ValidationError
from .models import ClientMeeting
from .repositories import AvailabilityRepository, LinkRepository
from .serializers import (
    PublicBookingRequestSerializer, PublicSlotQuerySerializer,
    CancellationReasonSerializer, DaysQuerySerializer
)
from .services import AvailabilityCalculator, BookingProcessor, BookingLinkService
from .transitions import cancel_client_meeting
from .views import SchedulingErrorMixin, slot_payload

logger = logging.getLogger(__name__)


class PublicBookingMixin(SchedulingErrorMixin):
    """No authentication; the token in the URL is the only credential"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def valid_link(self, token):
        return BookingLinkService(clock=self.clock).validate(token)


class PublicBookingView(PublicBookingMixin, APIView):
    """
    Booking page information (GET) and booking submission (POST)
    """

    @extend_schema(summary="Get public booking page information", responses={200: dict})
    def get(self, request, token):
        link = self.valid_link(token)
        availability = AvailabilityRepository().get_schedule(link.lawyer_id)
        lawyer = link.lawyer

        return Response({
            'lawyer_name': lawyer.get_full_name() or lawyer.get_username(),
            'allowed_durations': sorted(availability.allowed_durations),
            'meeting_types': [value for value, _ in ClientMeeting.MEETING_TYPES],
            'default_location': availability.default_location or None,
            'min_booking_hours': availability.min_booking_hours,
            'max_booking_days': availability.max_booking_days,
            'timezone': availability.timezone,
            'client_name': link.client_name or None,
            'expires_at': link.expires_at.isoformat(),
        })

    @extend_schema(
        summary="Book a meeting with a booking link",
        request=PublicBookingRequestSerializer,
        responses={201: dict}
    )
    def post(self, request, token):
        link = self.valid_link(token)
        serializer = PublicBookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        tz = get_timezone(AvailabilityRepository().get_schedule(link.lawyer_id).timezone)
        start = serializer.local_start(tz)

        meeting = BookingProcessor(clock=self.clock).reserve(
            token,
            start,
            data['duration'],
            client_name=data['client_name'],
            client_email=data.get('client_email', ''),
            client_phone=data.get('client_phone', ''),
            meeting_type=data['meeting_type'],
            notes=data.get('notes', ''),
            title=f"Meeting with {data['client_name']}",
        )
        logger.info(f"Public booking created meeting {meeting.pk} for lawyer {meeting.lawyer_id}")

        local_start = meeting.scheduled_at.astimezone(tz)
        return Response({
            'meeting_id': meeting.pk,
            'message': 'Your meeting request has been received and is awaiting confirmation',
            'meeting_details': {
                'title': meeting.title,
                'date': local_start.date().isoformat(),
                'time': local_start.strftime('%H:%M'),
                'duration': meeting.duration_minutes,
                'location': meeting.location or None,
                'meeting_type': meeting.meeting_type,
                'status': meeting.status,
            },
        }, status=status.HTTP_201_CREATED)


class PublicBookingDaysView(PublicBookingMixin, APIView):

    @extend_schema(
        summary="List bookable dates of a month",
        parameters=[
            OpenApiParameter('month', str, description="YYYY-MM"),
            OpenApiParameter('duration', int, required=False),
        ],
        responses={200: dict}
    )
    def get(self, request, token):
        link = self.valid_link(token)
        query = DaysQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        year, month = query.validated_data['month']

        days = AvailabilityCalculator(clock=self.clock).available_days(
            link.lawyer_id, year, month, query.validated_data.get('duration')
        )
        return Response({'days': [day.isoformat() for day in days]})


class PublicBookingSlotsView(PublicBookingMixin, APIView):

    @extend_schema(
        summary="List bookable start times for a date",
        parameters=[
            OpenApiParameter('date', str, description="YYYY-MM-DD"),
            OpenApiParameter('duration', int),
        ],
        responses={200: dict}
    )
    def get(self, request, token):
        link = self.valid_link(token)
        query = PublicSlotQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        starts = AvailabilityCalculator(clock=self.clock).generate(
            link.lawyer_id, params['date'], params['date'], params['duration']
        )
        tz = get_timezone(AvailabilityRepository().get_schedule(link.lawyer_id).timezone)
        return Response({'slots': slot_payload(starts, params['duration'], tz)})


class PublicBookingCancelView(PublicBookingMixin, APIView):
    """
    Lets the client cancel the meeting booked with their link
    The link is already used at this point, so it is looked up without validation
    """

    @extend_schema(summary="Cancel a meeting booked with this link", request=CancellationReasonSerializer)
    def patch(self, request, token):
        link = LinkRepository().get_link(token)
        if link is None:
            raise LinkInvalid()
        meeting = link.get_meeting()
        if meeting is None:
            raise ValidationError("No meeting has been booked with this link")

        serializer = CancellationReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        now = self.clock.now()
        if meeting.scheduled_at <= now:
            raise ValidationError("Meetings that have already started cannot be cancelled")
        cancel_client_meeting(meeting, serializer.validated_data['reason'], now, by='client')
        logger.info(f"Client cancelled meeting {meeting.pk} through booking link {link.pk}")
        return Response({'message': 'Your meeting has been cancelled', 'status': meeting.status})

    post = patch
