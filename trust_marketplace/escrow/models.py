from django.db import models
from auditlog.registry import auditlog

from investments.models import Investment
from projects.models import Project


class EscrowContract(models.Model):
    """Off-chain mirror of one escrow held by the escrow contract."""
    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    RELEASED = 'RELEASED'
    REFUNDED = 'REFUNDED'
    CANCELLED = 'CANCELLED'

    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (ACTIVE, 'Active'),
        (RELEASED, 'Released'),
        (REFUNDED, 'Refunded'),
        (CANCELLED, 'Cancelled'),
    )

    investment = models.OneToOneField(Investment, on_delete=models.PROTECT, related_name='escrow_contract')
    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name='escrow_contracts')
    contract_address = models.CharField(max_length=42)
    chain_escrow_id = models.PositiveBigIntegerField(null=True, blank=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    release_conditions = models.JSONField(default=dict, blank=True)
    is_locked = models.BooleanField(default=False)  # Lock during disputes
    dispute_reason = models.TextField(blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['contract_address', 'chain_escrow_id'],
                name='unique_chain_escrow',
            ),
        ]

    def __str__(self):
        return f"Escrow for {self.project.title} ({self.amount}, {self.status})"


class EscrowEvent(models.Model):
    """Chain events that have been verified and applied to a mirror row."""
    escrow = models.ForeignKey(EscrowContract, on_delete=models.CASCADE, related_name='events')
    name = models.CharField(max_length=50)
    tx_hash = models.CharField(max_length=66)
    log_index = models.PositiveIntegerField()
    block_number = models.PositiveBigIntegerField()
    args = models.JSONField(default=dict)
    applied_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['block_number', 'log_index']
        constraints = [
            models.UniqueConstraint(fields=['tx_hash', 'log_index'], name='unique_escrow_event'),
        ]

    def __str__(self):
        return f"{self.name} #{self.block_number}:{self.log_index}"


auditlog.register(EscrowContract)


class Uint256Field(models.CharField):
    """Unsigned 256-bit integer kept as decimal text, exact on every backend."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('max_length', 78)
        kwargs.setdefault('default', 0)
        super().__init__(*args, **kwargs)

    def from_db_value(self, value, expression, connection):
        return None if value is None else int(value)

    def to_python(self, value):
        if value is None or isinstance(value, int):
            return value
        return int(value)

    def get_prep_value(self, value):
        return None if value is None else str(int(value))


# Contract storage. Rows below are only written through escrow.contract.EscrowLedger.

class LedgerState(models.Model):
    """Per-contract counters. The row is locked for the duration of every contract call."""
    address = models.CharField(max_length=42, unique=True)
    held = Uint256Field()
    next_escrow_id = models.PositiveBigIntegerField(default=1)
    block_number = models.PositiveBigIntegerField(default=0)

    def __str__(self):
        return self.address


class LedgerEscrow(models.Model):
    contract_address = models.CharField(max_length=42)
    escrow_id = models.PositiveBigIntegerField()
    depositor = models.CharField(max_length=42)
    beneficiary = models.CharField(max_length=42)
    amount = Uint256Field()
    release_conditions = models.TextField(blank=True)
    state = models.PositiveSmallIntegerField(default=0)
    depositor_approved = models.BooleanField(default=False)
    beneficiary_approved = models.BooleanField(default=False)
    created_at = models.PositiveBigIntegerField()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['contract_address', 'escrow_id'], name='unique_ledger_escrow'),
        ]

    def __str__(self):
        return f"{self.contract_address}#{self.escrow_id}"


class LedgerCredit(models.Model):
    """Funds paid out of escrow to an account."""
    contract_address = models.CharField(max_length=42)
    account = models.CharField(max_length=42)
    amount = Uint256Field()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['contract_address', 'account'], name='unique_ledger_credit'),
        ]


class LedgerLog(models.Model):
    """Append-only contract event log."""
    contract_address = models.CharField(max_length=42)
    escrow_id = models.PositiveBigIntegerField()
    name = models.CharField(max_length=50)
    args = models.JSONField(default=dict)
    block_number = models.PositiveBigIntegerField()
    tx_hash = models.CharField(max_length=66)
    log_index = models.PositiveIntegerField()

    class Meta:
        ordering = ['block_number', 'log_index']
        constraints = [
            models.UniqueConstraint(fields=['tx_hash', 'log_index'], name='unique_ledger_log'),
        ]

    def __str__(self):
        return f"{self.name} #{self.block_number}:{self.log_index}"
