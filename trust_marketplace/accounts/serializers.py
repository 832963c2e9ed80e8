import re

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoPasswordValidationError


from .models import CustomUser

WALLET_ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Serializer for user login and token generation.

    Fields:
        - email (required)
        - password (required)
    Rejects deactivated accounts before issuing tokens.
    """
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['user_type'] = user.user_type
        return token

    def validate(self, attrs):
        user = CustomUser.objects.filter(email=attrs.get('email')).first()
        if user is not None and not user.is_active:
            raise AuthenticationFailed("Your account is deactivated.")
        return super().validate(attrs)


class RegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration.

    Fields :
        required: first_name, last_name, user_type, email, password, confirm_password
        optional: phone_number, country, company_name, wallet_address
    Validates password confirmation and creates a new user.
    """
    password = serializers.CharField(required=True, write_only=True)
    confirm_password = serializers.CharField(required=True, write_only=True)

    class Meta:
        model = CustomUser
        fields = [
            'id', 'first_name', 'last_name', 'user_type', 'phone_number', 'country',
            'company_name', 'wallet_address', 'email', 'password', 'confirm_password',
        ]
        read_only_fields = ['id']
        extra_kwargs = {
            'first_name': {'required': True},
            'last_name': {'required': True},
            'email': {'required': True},
            'user_type': {'required': True},
        }

    def validate_wallet_address(self, value):
        if value and not WALLET_ADDRESS_RE.match(value):
            raise serializers.ValidationError("Enter a valid 0x-prefixed 20-byte address.")
        return value.lower()

    def validate(self, attrs):
        if attrs['password'] != attrs['confirm_password']:
            raise serializers.ValidationError("Password do not match.")
        prospective_user = CustomUser(
            email=attrs.get('email'),
            first_name=attrs.get('first_name'),
            last_name=attrs.get('last_name'),
            user_type=attrs.get('user_type'),
        )

        try:
            validate_password(attrs['password'], user=prospective_user)
        except DjangoPasswordValidationError as exc:
            raise serializers.ValidationError({'password': list(exc.messages)})

        return attrs

    def create(self, validated_data):
        validated_data.pop('confirm_password')
        return CustomUser.objects.create_user(**validated_data)


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for user profile retrieval and updates.

    Fields:
        read-only: id, email, user_type, trust_band, trust_badge
        - first_name, last_name, phone_number, country, company_name, wallet_address
    """
    trust_badge = serializers.ReadOnlyField()

    class Meta:
        model = CustomUser
        fields = (
            'id', 'first_name', 'last_name', 'email', 'phone_number', 'user_type', 'country',
            'company_name', 'wallet_address', 'trust_band', 'trust_badge',
        )
        read_only_fields = ('id', 'email', 'user_type', 'trust_band')

    def validate_wallet_address(self, value):
        if value and not WALLET_ADDRESS_RE.match(value):
            raise serializers.ValidationError("Enter a valid 0x-prefixed 20-byte address.")
        return value.lower()


class UserSummarySerializer(serializers.ModelSerializer):
    """Lightweight user reference embedded in project, investment and escrow payloads."""
    trust_badge = serializers.ReadOnlyField()

    class Meta:
        model = CustomUser
        fields = ['id', 'first_name', 'last_name', 'email', 'company_name', 'trust_badge']
