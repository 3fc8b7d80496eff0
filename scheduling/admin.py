from django.contrib import admin
from .models import (
    LawyerAvailability, AvailabilityException, BookingLink,
    ClientMeeting, InternalMeeting, InternalMeetingParticipant
)


class AvailabilityExceptionInline(admin.TabularInline):
    model = AvailabilityException
    extra = 0
    fields = ['date', 'is_blocked', 'custom_slots', 'reason']


@admin.register(LawyerAvailability)
class LawyerAvailabilityAdmin(admin.ModelAdmin):
    list_display = ['lawyer', 'timezone', 'buffer_minutes', 'min_booking_hours', 'max_booking_days', 'updated_at']
    search_fields = ['lawyer__username', 'lawyer__email']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [AvailabilityExceptionInline]

    fieldsets = (
        ('Lawyer', {
            'fields': ('lawyer', 'timezone', 'default_location')
        }),
        ('Weekly Schedule', {
            'fields': ('weekly_schedule',)
        }),
        ('Booking Policy', {
            'fields': ('buffer_minutes', 'min_booking_hours', 'max_booking_days', 'allowed_durations')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        })
    )


@admin.register(BookingLink)
class BookingLinkAdmin(admin.ModelAdmin):
    list_display = ['token', 'lawyer', 'client_id', 'case_id', 'is_used', 'expires_at', 'created_by', 'created_at']
    list_filter = ['is_used', 'notification_channel']
    search_fields = ['token', 'lawyer__username', 'client_name', 'recipient_email']
    readonly_fields = ['token', 'used_at', 'created_at', 'updated_at']


@admin.register(ClientMeeting)
class ClientMeetingAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'lawyer', 'client_name', 'scheduled_at', 'duration_minutes', 'status']
    list_filter = ['status', 'meeting_type']
    search_fields = ['title', 'client_name', 'client_email', 'lawyer__username']
    readonly_fields = ['ends_at', 'booking_link', 'confirmed_at', 'cancelled_at', 'created_at', 'updated_at']
    date_hierarchy = 'scheduled_at'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('lawyer', 'booking_link')


class InternalMeetingParticipantInline(admin.TabularInline):
    model = InternalMeetingParticipant
    extra = 0
    raw_id_fields = ['user']
    readonly_fields = ['joined_at', 'left_at']


@admin.register(InternalMeeting)
class InternalMeetingAdmin(admin.ModelAdmin):
    list_display = ['title', 'created_by', 'scheduled_at', 'duration_minutes', 'status', 'summary_permission']
    list_filter = ['status', 'summary_permission', 'video_provider']
    search_fields = ['title', 'agenda', 'created_by__username']
    readonly_fields = ['ends_at', 'created_at', 'updated_at']
    inlines = [InternalMeetingParticipantInline]
    date_hierarchy = 'scheduled_at'
