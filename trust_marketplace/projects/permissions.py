from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsOwnerFundraiserOrReadOnly(BasePermission):
    """Read access for any authenticated user; writes only for the project's fundraiser."""

    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        return obj.fundraiser_id == request.user.id
