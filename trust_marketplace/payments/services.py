import logging

from django.conf import settings
from django.db import transaction

from investments.models import Investment
from trust_marketplace.exceptions import ExternalServiceError, InvalidStateError, NotFound, ValidationFailed
from .models import Payment, WebhookEvent
from .providers import get_payment_provider

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Provider adapter. This class should NOT create or update Payment records.
    It only calls the configured payment provider(s).
    """
    def __init__(self, provider_name=None):
        self.default_provider_name = provider_name

    def _get_provider(self, provider_name=None):
        name = provider_name or self.default_provider_name or settings.PAYMENT_PROVIDER
        try:
            return get_payment_provider(name), name
        except ValueError as e:
            raise ExternalServiceError(str(e))

    def charge(self, *, user, amount, currency=None, provider_name=None, **kwargs):
        """
        Charge ``user`` and return the provider result.

        Raises ExternalServiceError when the provider does not report success,
        so callers inside an atomic block roll back.
        """
        provider, resolved_name = self._get_provider(provider_name)
        currency = currency or settings.SETTLEMENT_CURRENCY
        result = provider.charge(user=user, amount=amount, currency=currency, **kwargs)

        if result.get('status') != 'success' or not result.get('transaction_id'):
            logger.error("Charge via %s failed for user %s: %s", resolved_name, user.pk, result.get('message'))
            raise ExternalServiceError(result.get('message') or 'Payment was not completed')

        result.setdefault('provider', resolved_name)
        return result

    def refund(self, *, provider_transaction_id, provider_name=None, amount=None, reason="Investment refund"):
        provider, resolved_name = self._get_provider(provider_name)
        result = provider.refund(provider_transaction_id, amount, reason)
        if result.get('status') != 'success':
            logger.error("Refund via %s failed for %s: %s", resolved_name, provider_transaction_id, result.get('message'))
            raise ExternalServiceError(result.get('message') or 'Refund failed')
        return result

    def get_status(self, *, provider_transaction_id, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.get_payment_status(provider_transaction_id)

    def validate_webhook(self, *, payload, signature, provider_name=None):
        provider, _ = self._get_provider(provider_name)
        return provider.validate_webhook(payload, signature)


class ChargeGuard:
    """
    Context manager that refunds every charge taken inside it when the block
    raises. Database rows roll back on their own; money taken at the gateway
    does not.

        with ChargeGuard(payment_service) as payments, transaction.atomic():
            result = payments.charge(user=user, amount=amount)
    """

    def __init__(self, payment_service):
        self.payment_service = payment_service
        self.charges = []

    def charge(self, **kwargs):
        result = self.payment_service.charge(**kwargs)
        self.charges.append((result['transaction_id'], result.get('provider'), kwargs.get('amount')))
        return result

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            return False
        for transaction_id, provider_name, amount in reversed(self.charges):
            try:
                self.payment_service.refund(
                    provider_transaction_id=transaction_id,
                    provider_name=provider_name,
                    amount=amount,
                    reason="Reversal of an incomplete operation",
                )
            except ExternalServiceError:
                logger.error("Could not reverse charge %s after a failed operation", transaction_id)
            else:
                logger.warning("Reversed charge %s after a failed operation", transaction_id)
        return False


def record_payment(*, user, amount, charge_result, payment_method, currency=None, investment=None):
    """Persist a completed charge returned by ``PaymentService.charge``."""
    return Payment.objects.create(
        user=user,
        investment=investment,
        amount=amount,
        currency=currency or settings.SETTLEMENT_CURRENCY,
        status=Payment.COMPLETED,
        payment_method=payment_method,
        provider=charge_result.get('provider', ''),
        transaction_id=charge_result['transaction_id'],
        gateway_response=charge_result.get('data') or {},
    )


def is_refundable_here(payment):
    """Escrowed investments are refunded through their escrow, not the gateway."""
    investment = payment.investment
    return investment is None or investment.status == Investment.APPROVED


def _settle_refund(payment, refund_data):
    payment.status = Payment.REFUNDED
    payment.gateway_response = {**payment.gateway_response, 'refund': refund_data}
    payment.save(update_fields=['status', 'gateway_response', 'updated_at'])

    if payment.investment is not None:
        payment.investment.transition_to(Investment.REFUNDED)

    order = getattr(payment, 'order', None)
    if order is not None:
        order.mark_refunded()


@transaction.atomic
def refund_payment(payment, *, reason="Refund", payment_service=None):
    """
    Refund a COMPLETED payment through its provider.

    Escrowed investments are refunded through the escrow instead.
    """
    payment = Payment.objects.select_for_update().select_related('investment').get(pk=payment.pk)
    if payment.status != Payment.COMPLETED:
        raise InvalidStateError(f"Only completed payments can be refunded (status: {payment.status})")
    if not is_refundable_here(payment):
        raise InvalidStateError(f"Investment in status {payment.investment.status} cannot be refunded here")

    result = (payment_service or PaymentService()).refund(
        provider_transaction_id=payment.transaction_id,
        provider_name=payment.provider or None,
        amount=payment.amount,
        reason=reason,
    )
    _settle_refund(payment, result)

    logger.info("Payment %s refunded (%s)", payment.transaction_id, reason)
    return payment


WEBHOOK_STATUSES = {
    'success': Payment.COMPLETED,
    'completed': Payment.COMPLETED,
    'processing': Payment.PROCESSING,
    'failed': Payment.FAILED,
    'refunded': Payment.REFUNDED,
}


@transaction.atomic
def apply_webhook(*, provider_name, event_id, transaction_id, status):
    """
    Apply a gateway callback to the matching payment.

    Returns ``(payment, applied)``. ``applied`` is False for replays of an
    event that was already processed and for callbacks that would move the
    payment backwards. A ``refunded`` callback settles the refund the same way
    ``refund_payment`` does, without calling the gateway again.
    """
    new_status = WEBHOOK_STATUSES.get((status or '').lower())
    if new_status is None:
        raise ValidationFailed(f"Unsupported payment status: {status}")

    _, created = WebhookEvent.objects.get_or_create(provider=provider_name, event_id=event_id)
    payment = Payment.objects.select_for_update().select_related('investment').filter(
        transaction_id=transaction_id
    ).first()
    if payment is None:
        raise NotFound("Payment not found")
    if not created:
        logger.info("Ignoring replayed webhook %s:%s", provider_name, event_id)
        return payment, False

    if not payment.can_transition(new_status):
        logger.warning(
            "Ignoring webhook %s: payment %s cannot move from %s to %s",
            event_id, transaction_id, payment.status, new_status,
        )
        return payment, False

    if new_status == Payment.REFUNDED:
        if not is_refundable_here(payment):
            logger.warning(
                "Ignoring refund webhook %s: investment %s is %s",
                event_id, payment.investment_id, payment.investment.status,
            )
            return payment, False
        _settle_refund(payment, {'webhook': event_id})
    else:
        payment.status = new_status
        payment.save(update_fields=['status', 'updated_at'])

        investment = payment.investment
        if new_status == Payment.COMPLETED and investment is not None and investment.status == Investment.PENDING:
            investment.transition_to(Investment.APPROVED)

    logger.info("Webhook %s set payment %s to %s", event_id, transaction_id, new_status)
    return payment, True
