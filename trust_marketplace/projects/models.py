from decimal import Decimal

from django.db import models
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog

User = get_user_model()


class Project(models.Model):
    DRAFT = 'DRAFT'
    PENDING_REVIEW = 'PENDING_REVIEW'
    APPROVED = 'APPROVED'
    ACTIVE = 'ACTIVE'
    FUNDED = 'FUNDED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'

    STATUS_CHOICES = (
        (DRAFT, 'Draft'),
        (PENDING_REVIEW, 'Pending Review'),
        (APPROVED, 'Approved'),
        (ACTIVE, 'Active'),
        (FUNDED, 'Funded'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    )
    INVESTABLE_STATUSES = (APPROVED, ACTIVE)

    fundraiser = models.ForeignKey(User, related_name='projects', on_delete=models.PROTECT)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    target_amount = models.DecimalField(max_digits=14, decimal_places=2)
    min_investment = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    max_investment = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    current_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=DRAFT)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def is_investable(self):
        return self.status in self.INVESTABLE_STATUSES

    @property
    def price(self):
        """Cart unit price; projects without one are sold at their target amount."""
        return self.unit_price if self.unit_price is not None else self.target_amount

    @property
    def funding_progress(self):
        if not self.target_amount:
            return Decimal('0')
        return (self.current_amount / self.target_amount * 100).quantize(Decimal('0.01'))


auditlog.register(Project)
