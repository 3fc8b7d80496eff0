"""
Internal API views for scheduling management
Handles authenticated lawyer and staff operations: availability, booking links,
client meetings and internal meetings
"""
import logging
from datetime import timedelta
from rest_framework import viewsets, mixins, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.filters import OrderingFilter
from django_filters.rest_framework import DjangoFilterBackend
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Q, Count
from django.utils.dateparse import parse_date
from drf_spectacular.utils import extend_schema, OpenApiParameter

from . import transitions
from .availability import get_timezone, day_bounds
from .clock import default_clock
from .exceptions import SchedulingError, ValidationError, PermissionDenied
from .filters import BookingLinkFilter, ClientMeetingFilter, InternalMeetingFilter
from .models import AvailabilityException, BookingLink, ClientMeeting, InternalMeeting
from .permissions import (
    is_admin, BookingLinkPermission,
    ClientMeetingPermission, InternalMeetingPermission
)
from .repositories import AvailabilityRepository
from .serializers import (
    LawyerAvailabilitySerializer, AvailabilityExceptionSerializer,
    SlotQuerySerializer, DaysQuerySerializer, CheckSlotQuerySerializer,
    BookingLinkSerializer, BookingLinkCreateSerializer, ResendLinkSerializer,
    ClientMeetingSerializer, ClientMeetingCreateSerializer, ClientMeetingUpdateSerializer,
    MeetingOutcomeSerializer, MeetingCancellationSerializer, CancellationReasonSerializer, LinkCaseSerializer,
    InternalMeetingSerializer, MeetingSummarySerializer
)
from .services import AvailabilityCalculator, BookingProcessor, BookingLinkService

User = get_user_model()

logger = logging.getLogger(__name__)

DEFAULT_UPCOMING_LIMIT = 10


class SchedulingErrorMixin:
    """
    Answers domain errors with {'error': ..., 'code': ...} and their HTTP status
    Also carries the clock used by every service the view builds
    """
    clock = default_clock

    def handle_exception(self, exc):
        if isinstance(exc, SchedulingError):
            logger.info(f"{self.__class__.__name__} rejected request: {exc.code} - {exc.message}")
            return Response(exc.as_dict(), status=exc.http_status)
        return super().handle_exception(exc)

    def now(self):
        return self.clock.now()


class SchedulingViewSetMixin(SchedulingErrorMixin):

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['now'] = self.now()
        return context


def resolve_lawyer_id(user, lawyer_id=None):
    """The calendar a request acts on; staff may act for any lawyer"""
    if lawyer_id is None or lawyer_id == user.pk:
        return user.pk
    if not is_admin(user):
        raise PermissionDenied("Only staff can act on another lawyer's calendar")
    if not User.objects.filter(pk=lawyer_id).exists():
        raise ValidationError(f"Unknown lawyer: {lawyer_id}")
    return lawyer_id


def slot_payload(starts, duration, tz):
    """Candidate starts as start/end ISO strings plus the lawyer's local wall-clock time"""
    step = timedelta(minutes=duration)
    return [
        {
            'start': start.isoformat(),
            'end': (start + step).isoformat(),
            'date': start.astimezone(tz).date().isoformat(),
            'time': start.astimezone(tz).strftime('%H:%M'),
        }
        for start in starts
    ]


def upcoming_limit(request):
    try:
        limit = int(request.query_params.get('limit', DEFAULT_UPCOMING_LIMIT))
    except (TypeError, ValueError):
        raise ValidationError("limit must be a number")
    return max(1, min(limit, 100))


class AvailabilityView(SchedulingErrorMixin, APIView):
    """
    The requesting lawyer's weekly template and booking policy
    Created with defaults on first access
    """
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(summary="Get my availability settings", responses={200: LawyerAvailabilitySerializer})
    def get(self, request):
        availability = AvailabilityRepository().get_schedule(request.user.pk)
        return Response(LawyerAvailabilitySerializer(availability).data)

    @extend_schema(
        summary="Update my availability settings",
        request=LawyerAvailabilitySerializer,
        responses={200: LawyerAvailabilitySerializer}
    )
    def put(self, request):
        availability = AvailabilityRepository().get_schedule(request.user.pk)
        serializer = LawyerAvailabilitySerializer(availability, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Availability updated for lawyer {request.user.pk}")
        return Response(serializer.data)

    patch = put


class AvailabilitySlotsView(SchedulingErrorMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        summary="List bookable start times",
        parameters=[
            OpenApiParameter('date', str, description="First date (YYYY-MM-DD)"),
            OpenApiParameter('end_date', str, required=False, description="Last date, defaults to date"),
            OpenApiParameter('duration', int, description="Meeting length in minutes"),
            OpenApiParameter('lawyer_id', int, required=False, description="Staff only: another lawyer"),
        ],
        responses={200: dict}
    )
    def get(self, request):
        query = SlotQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        lawyer_id = resolve_lawyer_id(request.user, params.get('lawyer_id'))

        starts = AvailabilityCalculator(clock=self.clock).generate(
            lawyer_id, params['date'], params['end_date'], params['duration']
        )
        tz = get_timezone(AvailabilityRepository().get_schedule(lawyer_id).timezone)
        return Response({
            'lawyer_id': lawyer_id,
            'duration': params['duration'],
            'timezone': tz.zone,
            'slots': slot_payload(starts, params['duration'], tz),
        })


class AvailabilityDaysView(SchedulingErrorMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        summary="List dates of a month with at least one bookable start",
        parameters=[
            OpenApiParameter('month', str, description="YYYY-MM"),
            OpenApiParameter('duration', int, required=False),
            OpenApiParameter('lawyer_id', int, required=False),
        ],
        responses={200: dict}
    )
    def get(self, request):
        query = DaysQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        lawyer_id = resolve_lawyer_id(request.user, params.get('lawyer_id'))
        year, month = params['month']

        days = AvailabilityCalculator(clock=self.clock).available_days(
            lawyer_id, year, month, params.get('duration')
        )
        return Response({'lawyer_id': lawyer_id, 'days': [day.isoformat() for day in days]})


class CheckSlotView(SchedulingErrorMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        summary="Check whether a specific start time can be booked",
        parameters=[
            OpenApiParameter('start', str, description="ISO 8601 datetime with offset"),
            OpenApiParameter('duration', int),
            OpenApiParameter('lawyer_id', int, required=False),
        ],
        responses={200: dict}
    )
    def get(self, request):
        query = CheckSlotQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        lawyer_id = resolve_lawyer_id(request.user, params.get('lawyer_id'))

        available, reason = AvailabilityCalculator(clock=self.clock).check_slot(
            lawyer_id, params['start'], params['duration']
        )
        return Response({'available': available, 'conflict': reason})


class AvailabilityExceptionViewSet(SchedulingViewSetMixin,
                                   mixins.ListModelMixin,
                                   mixins.CreateModelMixin,
                                   mixins.DestroyModelMixin,
                                   viewsets.GenericViewSet):
    """
    Date exceptions for the requesting lawyer
    Creating an exception for a date that already has one replaces it
    """
    serializer_class = AvailabilityExceptionSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = []

    def get_queryset(self):
        queryset = AvailabilityException.objects.filter(availability__lawyer=self.request.user)
        for param, lookup in (('from', 'date__gte'), ('to', 'date__lte')):
            raw = self.request.query_params.get(param)
            if raw:
                value = parse_date(raw)
                if value is None:
                    raise ValidationError(f"'{param}' must be a date in YYYY-MM-DD format")
                queryset = queryset.filter(**{lookup: value})
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        repository = AvailabilityRepository()
        availability = repository.get_schedule(request.user.pk)
        exception = repository.upsert_exception(availability, **serializer.validated_data)
        return Response(self.get_serializer(exception).data, status=status.HTTP_201_CREATED)


class BookingLinkViewSet(SchedulingViewSetMixin,
                         mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         mixins.DestroyModelMixin,
                         viewsets.GenericViewSet):
    """
    Single-use booking links issued to clients
    """
    serializer_class = BookingLinkSerializer
    permission_classes = [BookingLinkPermission]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = BookingLinkFilter
    ordering_fields = ['created_at', 'expires_at']
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = BookingLink.objects.select_related('lawyer', 'meeting')
        if is_admin(self.request.user):
            return queryset
        return queryset.filter(Q(lawyer=self.request.user) | Q(created_by=self.request.user))

    def link_service(self):
        return BookingLinkService(clock=self.clock)

    @extend_schema(
        summary="Issue a booking link",
        request=BookingLinkCreateSerializer,
        responses={201: BookingLinkSerializer}
    )
    def create(self, request, *args, **kwargs):
        serializer = BookingLinkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        lawyer_id = resolve_lawyer_id(request.user, data.pop('lawyer_id', None))

        link = self.link_service().issue(
            lawyer=User.objects.get(pk=lawyer_id),
            created_by=request.user,
            **data
        )
        return Response(self.get_serializer(link).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        link = self.get_object()
        self.link_service().delete(link.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(summary="Send a booking link again", request=ResendLinkSerializer, responses={200: dict})
    @action(detail=True, methods=['post'])
    def resend(self, request, pk=None):
        link = self.get_object()
        serializer = ResendLinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        link = self.link_service().resend(link.pk, serializer.validated_data.get('channel'))
        return Response({
            'message': 'Booking link queued for delivery',
            'link': self.get_serializer(link).data,
        })


class ClientMeetingViewSet(SchedulingViewSetMixin,
                           mixins.ListModelMixin,
                           mixins.RetrieveModelMixin,
                           viewsets.GenericViewSet):
    """
    Client meetings on a lawyer's calendar
    Meetings are never deleted; they move through confirm/complete/cancel/no-show
    and can be edited or moved while pending or confirmed
    """
    serializer_class = ClientMeetingSerializer
    permission_classes = [ClientMeetingPermission]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = ClientMeetingFilter
    ordering_fields = ['scheduled_at', 'created_at', 'status']
    ordering = ['scheduled_at']

    def get_queryset(self):
        queryset = ClientMeeting.objects.select_related('lawyer', 'booking_link')
        if is_admin(self.request.user):
            return queryset
        return queryset.filter(lawyer=self.request.user)

    @extend_schema(
        summary="Book a client meeting directly",
        request=ClientMeetingCreateSerializer,
        responses={201: ClientMeetingSerializer}
    )
    def create(self, request, *args, **kwargs):
        serializer = ClientMeetingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        lawyer_id = resolve_lawyer_id(request.user, data.pop('lawyer_id', None))

        meeting = BookingProcessor(clock=self.clock).book_direct(
            lawyer_id,
            data.pop('scheduled_at'),
            data.pop('duration_minutes'),
            client_id=data.pop('client_id', None),
            case_id=data.pop('case_id', None),
            **data
        )
        return Response(self.get_serializer(meeting).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Edit or reschedule a client meeting",
        request=ClientMeetingUpdateSerializer,
        responses={200: ClientMeetingSerializer}
    )
    def update(self, request, *args, **kwargs):
        """Every field is optional; a new time is re-checked against the lawyer's calendar"""
        meeting = self.get_object()
        serializer = ClientMeetingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        meeting = BookingProcessor(clock=self.clock).reschedule(
            meeting,
            data.pop('scheduled_at', None),
            data.pop('duration_minutes', None),
            **data
        )
        return Response(self.get_serializer(meeting).data)

    @extend_schema(
        summary="Edit or reschedule a client meeting",
        request=ClientMeetingUpdateSerializer,
        responses={200: ClientMeetingSerializer}
    )
    def partial_update(self, request, *args, **kwargs):
        return self.update(request, *args, **kwargs)

    @extend_schema(parameters=[OpenApiParameter('limit', int, required=False)])
    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        """Pending or confirmed meetings that have not started yet"""
        meetings = self.filter_queryset(self.get_queryset()).filter(
            status__in=ClientMeeting.ACTIVE_STATUSES,
            scheduled_at__gte=self.now(),
        ).order_by('scheduled_at')[:upcoming_limit(request)]
        return Response(self.get_serializer(meetings, many=True).data)

    @action(detail=True, methods=['post', 'patch'])
    def confirm(self, request, pk=None):
        meeting = transitions.confirm_client_meeting(self.get_object(), self.now())
        return Response(self.get_serializer(meeting).data)

    @extend_schema(request=MeetingOutcomeSerializer)
    @action(detail=True, methods=['post', 'patch'])
    def complete(self, request, pk=None):
        serializer = MeetingOutcomeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = transitions.complete_client_meeting(
            self.get_object(), serializer.validated_data.get('outcome')
        )
        return Response(self.get_serializer(meeting).data)

    @extend_schema(request=MeetingCancellationSerializer)
    @action(detail=True, methods=['post', 'patch'])
    def cancel(self, request, pk=None):
        serializer = MeetingCancellationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = transitions.cancel_client_meeting(
            self.get_object(),
            serializer.validated_data['reason'],
            self.now(),
            by=serializer.validated_data['cancelled_by'],
        )
        return Response(self.get_serializer(meeting).data)

    @action(detail=True, methods=['post', 'patch'], url_path='no-show')
    def no_show(self, request, pk=None):
        meeting = transitions.mark_no_show(self.get_object())
        return Response(self.get_serializer(meeting).data)

    @extend_schema(request=LinkCaseSerializer)
    @action(detail=True, methods=['post', 'patch'], url_path='link-case')
    def link_case(self, request, pk=None):
        serializer = LinkCaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = transitions.link_to_case(self.get_object(), serializer.validated_data['case_id'])
        return Response(self.get_serializer(meeting).data)


class InternalMeetingViewSet(SchedulingViewSetMixin, viewsets.ModelViewSet):
    """
    Internal staff meetings with a time-windowed join button and shared summary
    """
    serializer_class = InternalMeetingSerializer
    permission_classes = [InternalMeetingPermission]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = InternalMeetingFilter
    ordering_fields = ['scheduled_at', 'created_at', 'status']
    ordering = ['scheduled_at']

    def get_queryset(self):
        queryset = InternalMeeting.objects.select_related('created_by').prefetch_related('attendances__user')
        if is_admin(self.request.user):
            return queryset
        user = self.request.user
        return queryset.filter(Q(created_by=user) | Q(participants=user)).distinct()

    def perform_create(self, serializer):
        meeting = serializer.save(created_by=self.request.user)
        logger.info(f"Internal meeting {meeting.pk} created by user {self.request.user.pk}")

    @extend_schema(parameters=[OpenApiParameter('limit', int, required=False)])
    @action(detail=False, methods=['get'])
    def upcoming(self, request):
        """Scheduled or running meetings that have not ended yet"""
        meetings = self.filter_queryset(self.get_queryset()).filter(
            status__in=['scheduled', 'in_progress'],
            ends_at__gte=self.now(),
        ).order_by('scheduled_at')[:upcoming_limit(request)]
        return Response(self.get_serializer(meetings, many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        """Counts by status plus meetings in the current week (Sunday to Saturday)"""
        queryset = self.get_queryset()
        counts = dict(
            queryset.order_by().prefetch_related(None).values_list('status').annotate(total=Count('id', distinct=True))
        )

        tz = get_timezone(settings.SCHEDULING_CONFIG['DEFAULT_TIMEZONE'])
        today = self.now().astimezone(tz).date()
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        week_from = day_bounds(week_start, tz).start
        week_to = day_bounds(week_start + timedelta(days=6), tz).end

        return Response({
            'total': sum(counts.values()),
            'scheduled': counts.get('scheduled', 0),
            'in_progress': counts.get('in_progress', 0),
            'completed': counts.get('completed', 0),
            'cancelled': counts.get('cancelled', 0),
            'this_week': queryset.filter(
                scheduled_at__gte=week_from, scheduled_at__lt=week_to
            ).exclude(status='cancelled').count(),
        })

    @action(detail=True, methods=['post', 'patch'])
    def start(self, request, pk=None):
        meeting = transitions.start_internal_meeting(self.get_object())
        return Response(self.get_serializer(meeting).data)

    @action(detail=True, methods=['post', 'patch'])
    def complete(self, request, pk=None):
        meeting = transitions.complete_internal_meeting(self.get_object())
        return Response(self.get_serializer(meeting).data)

    @extend_schema(request=CancellationReasonSerializer)
    @action(detail=True, methods=['post', 'patch'])
    def cancel(self, request, pk=None):
        serializer = CancellationReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = transitions.cancel_internal_meeting(self.get_object(), serializer.validated_data['reason'])
        return Response(self.get_serializer(meeting).data)

    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        meeting = transitions.join(self.get_object(), request.user, self.now())
        return Response({
            'video_meeting_url': meeting.video_meeting_url or None,
            'location': meeting.location or None,
            'meeting': self.get_serializer(meeting).data,
        })

    @extend_schema(request=MeetingSummarySerializer)
    @action(detail=True, methods=['get', 'post', 'put'])
    def summary(self, request, pk=None):
        meeting = self.get_object()
        if request.method == 'GET':
            return Response({
                'summary': meeting.summary,
                'summary_points': meeting.summary_points,
                'summary_decisions': meeting.summary_decisions,
                'summary_tasks': meeting.summary_tasks,
                'can_edit': transitions.can_edit_summary(meeting, request.user),
            })

        serializer = MeetingSummarySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        meeting = transitions.save_summary(meeting, request.user, serializer.validated_data, self.now())
        return Response(self.get_serializer(meeting).data)

    @action(detail=True, methods=['get'], url_path='button-state')
    def button_state(self, request, pk=None):
        meeting = self.get_object()
        state = transitions.project_button_state(meeting, self.now(), request.user)
        return Response(dict(state.as_dict(), label=transitions.BUTTON_LABELS[state.status]))
