"""
Scheduling-specific permission classes
Two-level model: staff manage everything, lawyers manage their own calendar
"""
from rest_framework import permissions


def is_admin(user):
    return bool(user and user.is_authenticated and user.is_staff)


class SchedulingPermission(permissions.BasePermission):
    """
    Authenticated users may use scheduling; objects are limited to their owner

    Ownership is resolved from the first of `lawyer`, `created_by` found on the object.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        if is_admin(request.user):
            return True
        if hasattr(obj, 'lawyer_id'):
            return obj.lawyer_id == request.user.pk
        if hasattr(obj, 'created_by_id'):
            return obj.created_by_id == request.user.pk
        return False


class BookingLinkPermission(SchedulingPermission):
    """Links are managed by the lawyer they book for or the user who issued them"""

    def has_object_permission(self, request, view, obj):
        if is_admin(request.user):
            return True
        return request.user.pk in (obj.lawyer_id, obj.created_by_id)


class ClientMeetingPermission(SchedulingPermission):
    pass


class InternalMeetingPermission(SchedulingPermission):
    """
    Any participant or the organiser can read and act on a meeting
    Creating, editing and deleting meetings is reserved for staff
    """
    staff_actions = ('create', 'update', 'partial_update', 'destroy')

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if getattr(view, 'action', None) in self.staff_actions:
            return is_admin(request.user)
        return True

    def has_object_permission(self, request, view, obj):
        if is_admin(request.user):
            return True
        if obj.created_by_id == request.user.pk:
            return True
        return obj.attendances.filter(user_id=request.user.pk).exists()
