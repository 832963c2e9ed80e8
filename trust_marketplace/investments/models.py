from django.db import models
from django.db.models import F, Q
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog

from projects.models import Project
from trust_marketplace.exceptions import InvalidStateError

User = get_user_model()

ACTIVE_INVESTMENT_CONSTRAINT = 'unique_active_investment_per_investor_project'


class Investment(models.Model):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    ESCROWED = 'ESCROWED'
    RELEASED = 'RELEASED'
    REFUNDED = 'REFUNDED'
    CANCELLED = 'CANCELLED'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (ESCROWED, 'Escrowed'),
        (RELEASED, 'Released'),
        (REFUNDED, 'Refunded'),
        (CANCELLED, 'Cancelled'),
    )

    # Forward-only lattice; REFUNDED and CANCELLED are terminal exits.
    TRANSITIONS = {
        PENDING: {APPROVED, ESCROWED, CANCELLED},
        APPROVED: {ESCROWED, REFUNDED, CANCELLED},
        ESCROWED: {RELEASED, REFUNDED},
        RELEASED: set(),
        REFUNDED: set(),
        CANCELLED: set(),
    }
    INACTIVE_STATUSES = (REFUNDED, CANCELLED)
    PAID_STATUSES = (APPROVED, ESCROWED)

    investor = models.ForeignKey(User, on_delete=models.PROTECT, related_name='investments')
    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='investments')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    transaction_hash = models.CharField(max_length=66, unique=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['investor', 'project'],
                condition=~Q(status__in=['REFUNDED', 'CANCELLED']),
                name=ACTIVE_INVESTMENT_CONSTRAINT,
            ),
        ]

    def __str__(self):
        return f"{self.investor} -> {self.project.title} ({self.amount}, {self.status})"

    def can_transition(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status):
        """
        Move along the status lattice and persist.

        Leaving for REFUNDED or CANCELLED takes the amount back out of the
        project's current_amount.
        """
        if not self.can_transition(new_status):
            raise InvalidStateError(f"Investment cannot move from {self.status} to {new_status}")

        self.status = new_status
        self.save(update_fields=['status', 'updated_at'])

        if new_status in self.INACTIVE_STATUSES:
            Project.objects.filter(pk=self.project_id).update(
                current_amount=F('current_amount') - self.amount
            )
        return self


auditlog.register(Investment)


def is_active_investment_violation(error):
    """True when an IntegrityError comes from the one-active-investment-per-project rule."""
    diag = getattr(error.__cause__, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', None)
    if constraint_name:
        return constraint_name == ACTIVE_INVESTMENT_CONSTRAINT
    # SQLite reports the columns of the violated index instead of its name.
    message = str(error)
    return (
        ACTIVE_INVESTMENT_CONSTRAINT in message
        or 'investments_investment.investor_id, investments_investment.project_id' in message
    )
