from rest_framework.permissions import BasePermission


class IsInvestor(BasePermission):
    message = "Only investors can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_investor)


class IsFundraiser(BasePermission):
    message = "Only fundraisers can perform this action."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_fundraiser)
