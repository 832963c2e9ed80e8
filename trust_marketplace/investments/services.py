import logging
import secrets
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction
from django.db.models import F

from escrow.services import EscrowService
from payments.models import Payment
from payments.services import ChargeGuard, PaymentService, record_payment
from projects.models import Project
from trust_marketplace.exceptions import (
    ConflictError,
    InvalidStateError,
    NotAuthorized,
    NotFound,
    ValidationFailed,
)
from .models import Investment, is_active_investment_violation

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
CREATABLE_STATUSES = (Investment.PENDING, Investment.APPROVED, Investment.ESCROWED)


def clamp_amount(amount, minimum, maximum=None):
    """Clamp ``amount`` into [minimum, maximum]; a missing maximum leaves the top open."""
    upper = maximum if maximum is not None else amount
    return max(minimum, min(amount, upper))


def generate_transaction_hash():
    return '0x' + secrets.token_hex(32)


class InvestmentService:
    """
    Creates investments together with their payment and escrow rows.

    Everything an investment touches is written in one transaction with the
    project row locked, so concurrent investments on a project serialize and
    current_amount never loses an increment.
    """

    def __init__(self, payment_service=None, escrow_service=None):
        self.payment_service = payment_service or PaymentService()
        self._escrow_service = escrow_service

    @property
    def escrow_service(self):
        if self._escrow_service is None:
            self._escrow_service = EscrowService()
        return self._escrow_service

    def create_investment(self, *, investor, project_id, amount, status=Investment.PENDING, notes='',
                          payment_method='BANK_TRANSFER', release_conditions=None):
        if investor is None or not getattr(investor, 'is_investor', False):
            raise ValidationFailed("A registered investor is required")
        if status not in CREATABLE_STATUSES:
            raise ValidationFailed(f"Investments cannot be created with status {status}")

        try:
            requested = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise ValidationFailed("Amount must be a number")
        if requested <= 0:
            raise ValidationFailed("Amount must be greater than zero")

        try:
            with ChargeGuard(self.payment_service) as payments, transaction.atomic():
                project = Project.objects.select_for_update().filter(pk=project_id).first()
                if project is None:
                    raise NotFound("Project not found")
                if not project.is_investable:
                    raise ValidationFailed("Project is not open for investment")

                if self._has_active_investment(investor, project):
                    raise ConflictError("You already have an active investment in this project")

                final_amount = clamp_amount(
                    requested, project.min_investment, project.max_investment
                ).quantize(CENTS)

                investment = Investment.objects.create(
                    investor=investor,
                    project=project,
                    amount=final_amount,
                    status=status,
                    transaction_hash=generate_transaction_hash(),
                    notes=notes or '',
                )

                if status in Investment.PAID_STATUSES:
                    self._collect_payment(payments, investment, payment_method)

                Project.objects.filter(pk=project.pk).update(
                    current_amount=F('current_amount') + final_amount
                )
                project.refresh_from_db(fields=['current_amount'])

                if status == Investment.ESCROWED:
                    self.escrow_service.open_escrow(investment, release_conditions)
        except IntegrityError as e:
            if is_active_investment_violation(e):
                raise ConflictError("You already have an active investment in this project")
            raise

        logger.info(
            "Investment %s created: investor=%s project=%s amount=%s (requested %s) status=%s",
            investment.id, investor.id, project_id, final_amount, requested, status,
        )
        return investment

    @transaction.atomic
    def cancel_investment(self, user, investment_id):
        investment = self._lock(investment_id)
        if investment.investor_id != user.id:
            raise NotAuthorized("Only the investor can cancel this investment")
        if investment.status != Investment.PENDING:
            raise InvalidStateError("Only pending investments can be cancelled")

        investment.transition_to(Investment.CANCELLED)
        logger.info("Investment %s cancelled by investor %s", investment.id, user.id)
        return investment

    def advance_status(self, investment_id, new_status, payment_method='BANK_TRANSFER', release_conditions=None):
        """
        Move an investment forward one step on the status lattice.

        Funding an investment collects its payment once; escrowing it opens the
        escrow. Escrowed investments are released or refunded through their
        escrow only.
        """
        with ChargeGuard(self.payment_service) as payments, transaction.atomic():
            investment = self._lock(investment_id)
            if investment.status == Investment.ESCROWED:
                raise InvalidStateError("Escrowed investments are settled through their escrow")
            if not investment.can_transition(new_status):
                raise InvalidStateError(f"Investment cannot move from {investment.status} to {new_status}")

            if new_status in Investment.PAID_STATUSES and not investment.payments.filter(
                status=Payment.COMPLETED
            ).exists():
                self._collect_payment(payments, investment, payment_method)

            investment.transition_to(new_status)

            if new_status == Investment.ESCROWED:
                self.escrow_service.open_escrow(investment, release_conditions)
        return investment

    @staticmethod
    def _collect_payment(payments, investment, payment_method):
        result = payments.charge(
            user=investment.investor,
            amount=investment.amount,
            payment_method=payment_method,
            reference=investment.transaction_hash,
            description=f"Investment in {investment.project.title}",
        )
        return record_payment(
            user=investment.investor,
            amount=investment.amount,
            charge_result=result,
            payment_method=payment_method,
            investment=investment,
        )

    @staticmethod
    def _has_active_investment(investor, project):
        return Investment.objects.filter(investor=investor, project=project).exclude(
            status__in=Investment.INACTIVE_STATUSES
        ).exists()

    @staticmethod
    def _lock(investment_id):
        investment = (
            Investment.objects.select_for_update()
            .select_related('investor', 'project', 'project__fundraiser')
            .filter(pk=investment_id)
            .first()
        )
        if investment is None:
            raise NotFound("Investment not found")
        return investment
