from rest_framework_simplejwt import views as jwt_views, tokens
from rest_framework import views as drf_views, generics, permissions, status
from django.db import transaction
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema


from trust_marketplace.exceptions import ValidationFailed, success
from . import serializers as my_serializers
from . import trust_bands
from .throttles import RegistrationRateThrottle


class CustomTokenObtainPairView(jwt_views.TokenObtainPairView):
    serializer_class = my_serializers.CustomTokenObtainPairSerializer


class RegistrationAPIView(generics.CreateAPIView):
    """
    Handles new user registration.

    Accepts a POST request with user details:
        - email, password, confirm_password, first_name, last_name, user_type (required)
        - phone_number, country, company_name, wallet_address (optional)
    Creates a new user, and returns the user's data along with JWT access and
    refresh tokens.
    """
    serializer_class = my_serializers.RegistrationSerializer
    permission_classes = [permissions.AllowAny]
    throttle_classes = [RegistrationRateThrottle]

    @swagger_auto_schema(
        operation_summary="Register a new user",
        responses={
            201: my_serializers.RegistrationSerializer,
            400: "Invalid input"
        }
    )
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            user = serializer.save()
            refresh = tokens.RefreshToken.for_user(user)

        return Response(
            success({
                'user': serializer.data,
                'refresh': str(refresh),
                'access': str(refresh.access_token),
            }),
            status=status.HTTP_201_CREATED
        )


class UserProfileRetrieveUpdateAPIView(generics.RetrieveUpdateAPIView):
    """
    Allows authenticated users to retrieve and update their own profile.

    GET: Returns the profile of the currently authenticated user, including the trust badge.
    PUT/PATCH: Updates the editable profile fields.
    """
    serializer_class = my_serializers.UserProfileSerializer
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(operation_summary="Retrieve user profile")
    def get(self, request, *args, **kwargs):
        return Response(success(self.get_serializer(self.get_object()).data))

    @swagger_auto_schema(operation_summary="Update user profile")
    def put(self, request, *args, **kwargs):
        return self._update(request, partial=False)

    @swagger_auto_schema(operation_summary="Partially update user profile")
    def patch(self, request, *args, **kwargs):
        return self._update(request, partial=True)

    def _update(self, request, partial):
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(success(serializer.data))

    def get_object(self):
        return self.request.user


class TrustBandDetailAPIView(drf_views.APIView):
    """Describe a trust band on both scales."""
    permission_classes = [permissions.AllowAny]

    @swagger_auto_schema(
        operation_summary="Describe a trust band",
        responses={200: "Band description", 400: "Unknown band"}
    )
    def get(self, request, band):
        if not trust_bands.is_valid_trust_band(band):
            raise ValidationFailed(f"Unknown trust band: {band}")

        normalized = band.upper()
        if normalized in trust_bands.INTERNAL_BANDS:
            internal, external = normalized, trust_bands.to_frd_band(normalized)
        else:
            internal, external = trust_bands.to_internal_band(normalized), normalized

        return Response(success({
            'band': normalized,
            'internal': internal,
            'external': external,
            'description': trust_bands.get_trust_band_description(normalized),
        }))
