from rest_framework import serializers


from accounts.serializers import UserSummarySerializer
from .models import Project


class ProjectSummarySerializer(serializers.ModelSerializer):
    """
    Serializer providing compact project information for nested responses.

    Fields (all read-only): id, title, status, target_amount, current_amount.
    """
    class Meta:
        model = Project
        fields = ['id', 'title', 'status', 'target_amount', 'current_amount']
        read_only_fields = fields


class ProjectSerializer(serializers.ModelSerializer):
    """
    Serializer for listing and retrieving projects.

    Embeds the fundraiser with their trust badge and exposes derived funding progress.
    """
    fundraiser = UserSummarySerializer(read_only=True)
    funding_progress = serializers.DecimalField(max_digits=7, decimal_places=2, read_only=True)
    price = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'fundraiser', 'title', 'description', 'target_amount', 'min_investment',
            'max_investment', 'current_amount', 'funding_progress', 'unit_price', 'price',
            'status', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'fundraiser', 'current_amount', 'created_at', 'updated_at']


class ProjectWriteSerializer(serializers.ModelSerializer):
    """
    Serializer for fundraisers creating or updating their own projects.

    Fields:
        - title, target_amount (required)
        - description, min_investment, max_investment, unit_price, status (optional)
    """
    class Meta:
        model = Project
        fields = [
            'title', 'description', 'target_amount', 'min_investment', 'max_investment',
            'unit_price', 'status',
        ]

    def validate_target_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Please enter a valid amount.")
        return value

    def validate(self, attrs):
        instance = self.instance
        min_investment = attrs.get('min_investment', getattr(instance, 'min_investment', 0))
        max_investment = attrs.get('max_investment', getattr(instance, 'max_investment', None))

        if min_investment is not None and min_investment < 0:
            raise serializers.ValidationError({'min_investment': "Minimum investment cannot be negative."})
        if max_investment is not None and min_investment is not None and max_investment < min_investment:
            raise serializers.ValidationError({'max_investment': "Maximum investment must not be below the minimum."})
        return attrs

    def create(self, validated_data):
        return Project.objects.create(fundraiser=self.context['request'].user, **validated_data)
