from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from payments.models import Payment
from projects.serializers import ProjectSummarySerializer
from .models import Investment
from .services import CREATABLE_STATUSES


class InvestmentSerializer(serializers.ModelSerializer):
    """
    Read serializer for investments.

    Embeds the project and investor summaries and the id of the escrow holding
    the funds, when there is one.
    """
    project = ProjectSummarySerializer(read_only=True)
    investor = UserSummarySerializer(read_only=True)
    escrow_id = serializers.SerializerMethodField()

    class Meta:
        model = Investment
        fields = [
            'id', 'investor', 'project', 'amount', 'status', 'transaction_hash', 'notes',
            'escrow_id', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_escrow_id(self, obj):
        escrow = getattr(obj, 'escrow_contract', None)
        return escrow.id if escrow else None


class InvestmentCreateSerializer(serializers.Serializer):
    project_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    status = serializers.ChoiceField(choices=CREATABLE_STATUSES, default=Investment.PENDING)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, default='BANK_TRANSFER')
    release_conditions = serializers.JSONField(required=False)

    def validate_release_conditions(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError("Release conditions must be an object.")
        return value


class InvestmentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Investment.APPROVED, Investment.ESCROWED])
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, default='BANK_TRANSFER')
    release_conditions = serializers.JSONField(required=False)
