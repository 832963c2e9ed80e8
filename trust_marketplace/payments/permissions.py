from rest_framework.permissions import BasePermission


class IsPaymentOwnerOrStaff(BasePermission):
    """Payments are visible to the paying user and to staff."""
    def has_object_permission(self, request, view, obj):
        return request.user.is_staff or obj.user_id == request.user.id
