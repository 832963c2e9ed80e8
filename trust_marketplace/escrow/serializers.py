from rest_framework import serializers

from .models import EscrowContract, EscrowEvent


class EscrowEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = EscrowEvent
        fields = ("name", "tx_hash", "log_index", "block_number", "args", "applied_at")
        read_only_fields = fields


class EscrowContractSerializer(serializers.ModelSerializer):
    investment_id = serializers.IntegerField(source="investment.id", read_only=True)
    investor_id = serializers.IntegerField(source="investment.investor_id", read_only=True)
    investor_email = serializers.EmailField(source="investment.investor.email", read_only=True)
    project_id = serializers.IntegerField(source="project.id", read_only=True)
    project_title = serializers.CharField(source="project.title", read_only=True)
    events = EscrowEventSerializer(many=True, read_only=True)

    class Meta:
        model = EscrowContract
        fields = (
            "id",
            "investment_id",
            "investor_id",
            "investor_email",
            "project_id",
            "project_title",
            "contract_address",
            "chain_escrow_id",
            "amount",
            "status",
            "release_conditions",
            "is_locked",
            "dispute_reason",
            "released_at",
            "refunded_at",
            "created_at",
            "updated_at",
            "events",
        )
        read_only_fields = fields


class EscrowDisputeSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000)


class EscrowLockSerializer(serializers.Serializer):
    """Serializer to lock or unlock an escrow (e.g., during disputes)."""

    is_locked = serializers.BooleanField()

    def to_representation(self, instance):
        return {
            "id": instance.id,
            "is_locked": instance.is_locked,
            "status": instance.status,
        }
