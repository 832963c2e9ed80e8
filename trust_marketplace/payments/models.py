from django.db import models
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog

from investments.models import Investment

User = get_user_model()


class Payment(models.Model):
    PENDING = 'PENDING'
    PROCESSING = 'PROCESSING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    REFUNDED = 'REFUNDED'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (PROCESSING, 'Processing'),
        (COMPLETED, 'Completed'),
        (FAILED, 'Failed'),
        (REFUNDED, 'Refunded'),
    )

    # Gateway callbacks may arrive out of order; status only moves forward.
    TRANSITIONS = {
        PENDING: {PROCESSING, COMPLETED, FAILED},
        PROCESSING: {COMPLETED, FAILED},
        COMPLETED: {REFUNDED},
        FAILED: set(),
        REFUNDED: set(),
    }

    METHOD_CHOICES = (
        ('BANK_TRANSFER', 'Bank Transfer'),
        ('MPESA', 'M-Pesa'),
        ('CARD', 'Card'),
        ('CRYPTO', 'Crypto'),
    )

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='payments')
    investment = models.ForeignKey(
        Investment,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='payments'
    )
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES)
    provider = models.CharField(max_length=50, blank=True)  # e.g., 'demo', 'http'
    transaction_id = models.CharField(max_length=255, unique=True)
    gateway_response = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def can_transition(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, set())

    def __str__(self):
        return f"{self.payment_method} payment of {self.amount} {self.currency} ({self.status})"


class WebhookEvent(models.Model):
    """
    Stores processed webhook event IDs to ensure idempotency.
    """
    provider = models.CharField(max_length=50)
    event_id = models.CharField(max_length=255, unique=True)
    received_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.provider}:{self.event_id}"


auditlog.register(Payment)
