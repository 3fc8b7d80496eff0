"""
URL configuration for Lawdesk.
"""

from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from drf_spectacular.views import SpectacularAPIView


def health_check(request):
    """Simple health check endpoint"""
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_check, name='health_check'),
    path('api/v1/scheduling/', include('scheduling.urls')),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
]
