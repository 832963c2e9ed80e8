from rest_framework import serializers

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            'id', 'user', 'investment', 'amount', 'currency', 'status', 'payment_method',
            'provider', 'transaction_id', 'gateway_response', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class RefundSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class WebhookSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = serializers.CharField(required=False, allow_blank=True)
    data = serializers.JSONField()

    def validate(self, attrs):
        payload = attrs.get('data') or {}
        if not isinstance(payload, dict):
            raise serializers.ValidationError('data must be an object')

        transaction_id = payload.get('transaction_id') or payload.get('id') or payload.get('reference')
        if not transaction_id:
            raise serializers.ValidationError('Missing transaction id in webhook payload')
        if not payload.get('status'):
            raise serializers.ValidationError('Missing status in webhook payload')

        attrs['transaction_id'] = transaction_id
        attrs['status'] = payload['status']
        return attrs
