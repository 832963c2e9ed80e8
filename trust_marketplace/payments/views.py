import json
import logging

from rest_framework import generics, permissions, status
from rest_framework.views import APIView
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema

from trust_marketplace.exceptions import NotAuthorized, ValidationFailed, success
from . import serializers as my_serializers
from .models import Payment
from .permissions import IsPaymentOwnerOrStaff
from .services import PaymentService, apply_webhook, refund_payment

logger = logging.getLogger(__name__)


class PaymentListAPIView(generics.ListAPIView):
    serializer_class = my_serializers.PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'payment_method', 'investment']

    def get_queryset(self):
        return Payment.objects.filter(user=self.request.user)

    @swagger_auto_schema(operation_summary="List own payments")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class PaymentDetailAPIView(generics.RetrieveAPIView):
    serializer_class = my_serializers.PaymentSerializer
    permission_classes = [permissions.IsAuthenticated, IsPaymentOwnerOrStaff]
    queryset = Payment.objects.all()
    lookup_field = 'id'

    @swagger_auto_schema(operation_summary="Retrieve a payment")
    def get(self, request, *args, **kwargs):
        return Response(success(self.get_serializer(self.get_object()).data))


class PaymentRefundAPIView(generics.GenericAPIView):
    permission_classes = [permissions.IsAuthenticated, IsPaymentOwnerOrStaff]
    serializer_class = my_serializers.RefundSerializer
    queryset = Payment.objects.all()
    lookup_field = 'id'

    @swagger_auto_schema(
        operation_summary="Refund a completed payment",
        responses={200: my_serializers.PaymentSerializer(), 409: "Payment cannot be refunded"}
    )
    def post(self, request, *args, **kwargs):
        payment = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = refund_payment(payment, reason=serializer.validated_data.get('reason') or 'Refund')
        return Response(success(my_serializers.PaymentSerializer(payment).data))


class PaymentWebhookAPIView(APIView):
    """
    Gateway callback. The raw body is checked against the provider signature
    before anything is applied; replayed event ids are acknowledged and ignored.
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(request_body=my_serializers.WebhookSerializer, operation_summary="Payment gateway webhook")
    def post(self, request, provider_name):
        signature = request.headers.get('X-Signature', '')
        raw_body = request.body
        if not PaymentService().validate_webhook(payload=raw_body, signature=signature, provider_name=provider_name):
            logger.warning("Rejected %s webhook with invalid signature", provider_name)
            raise NotAuthorized("Invalid webhook signature")

        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError:
            raise ValidationFailed("Webhook body is not valid JSON")

        serializer = my_serializers.WebhookSerializer(data=payload)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment, applied = apply_webhook(
            provider_name=provider_name,
            event_id=data['id'],
            transaction_id=data['transaction_id'],
            status=data['status'],
        )
        return Response(
            success({'payment_id': payment.id, 'status': payment.status, 'applied': applied}),
            status=status.HTTP_200_OK
        )
