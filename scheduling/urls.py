"""
URL configuration for scheduling endpoints
Includes both internal (authenticated) and public endpoints
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    AvailabilityView,
    AvailabilitySlotsView,
    AvailabilityDaysView,
    CheckSlotView,
    AvailabilityExceptionViewSet,
    BookingLinkViewSet,
    ClientMeetingViewSet,
    InternalMeetingViewSet
)
from .public_views import (
    PublicBookingView,
    PublicBookingDaysView,
    PublicBookingSlotsView,
    PublicBookingCancelView
)

# Internal API router
router = DefaultRouter()
router.register(r'availability/exceptions', AvailabilityExceptionViewSet, basename='availability-exception')
router.register(r'booking-links', BookingLinkViewSet, basename='booking-link')
router.register(r'meetings/client', ClientMeetingViewSet, basename='client-meeting')
router.register(r'meetings/internal', InternalMeetingViewSet, basename='internal-meeting')

urlpatterns = [
    # Lawyer availability
    path('availability/', AvailabilityView.as_view(), name='availability'),
    path('availability/slots/', AvailabilitySlotsView.as_view(), name='availability-slots'),
    path('availability/days/', AvailabilityDaysView.as_view(), name='availability-days'),
    path('availability/check-slot/', CheckSlotView.as_view(), name='availability-check-slot'),

    # Internal authenticated APIs
    path('', include(router.urls)),

    # Public booking APIs (no authentication required)
    path('public/booking/<str:token>/', PublicBookingView.as_view(), name='public-booking'),
    path('public/booking/<str:token>/days/', PublicBookingDaysView.as_view(), name='public-booking-days'),
    path('public/booking/<str:token>/slots/', PublicBookingSlotsView.as_view(), name='public-booking-slots'),
    path('public/booking/<str:token>/cancel/', PublicBookingCancelView.as_view(), name='public-booking-cancel'),
]
