from decimal import Decimal

import pytest

from escrow.models import EscrowContract
from investments.models import Investment
from investments.services import InvestmentService
from payments.models import Payment
from payments.services import ChargeGuard, PaymentService, apply_webhook
from trust_marketplace.exceptions import ExternalServiceError

pytestmark = pytest.mark.django_db


class UnrefundablePaymentService(PaymentService):
    def refund(self, **kwargs):
        raise ExternalServiceError("Gateway unavailable")


def invest(investor, project, status):
    return InvestmentService().create_investment(
        investor=investor, project_id=project.id, amount=50000, status=status
    )


def test_failed_callback_cannot_undo_a_completed_payment(investor, project):
    investment = invest(investor, project, Investment.ESCROWED)
    payment = investment.payments.get()

    payment, applied = apply_webhook(
        provider_name='demo', event_id='evt_late_failure', transaction_id=payment.transaction_id, status='failed'
    )

    assert applied is False
    payment.refresh_from_db()
    investment.refresh_from_db()
    assert payment.status == Payment.COMPLETED
    assert investment.status == Investment.ESCROWED
    assert investment.escrow_contract.status == EscrowContract.ACTIVE


@pytest.mark.parametrize('status', ['processing', 'success'])
def test_completed_payment_ignores_earlier_states(investor, project, status):
    payment = invest(investor, project, Investment.APPROVED).payments.get()

    _, applied = apply_webhook(
        provider_name='demo', event_id=f'evt_{status}', transaction_id=payment.transaction_id, status=status
    )

    assert applied is False
    payment.refresh_from_db()
    assert payment.status == Payment.COMPLETED


def test_refunded_callback_settles_the_investment(investor, project):
    investment = invest(investor, project, Investment.APPROVED)
    payment = investment.payments.get()

    payment, applied = apply_webhook(
        provider_name='demo', event_id='evt_refund', transaction_id=payment.transaction_id, status='refunded'
    )

    assert applied is True
    investment.refresh_from_db()
    project.refresh_from_db()
    assert payment.status == Payment.REFUNDED
    assert payment.gateway_response['refund'] == {'webhook': 'evt_refund'}
    assert investment.status == Investment.REFUNDED
    assert project.current_amount == Decimal('0')


def test_refunded_callback_for_escrowed_investment_is_ignored(investor, project):
    investment = invest(investor, project, Investment.ESCROWED)
    payment = investment.payments.get()

    _, applied = apply_webhook(
        provider_name='demo', event_id='evt_refund_escrowed', transaction_id=payment.transaction_id, status='refunded'
    )

    assert applied is False
    payment.refresh_from_db()
    investment.refresh_from_db()
    assert payment.status == Payment.COMPLETED
    assert investment.status == Investment.ESCROWED


def test_charge_guard_keeps_the_original_error_when_reversal_fails(investor):
    with pytest.raises(ValueError, match='later step'):
        with ChargeGuard(UnrefundablePaymentService(provider_name='demo')) as payments:
            payments.charge(user=investor, amount=Decimal('10'))
            raise ValueError("later step failed")


def test_charge_guard_does_nothing_on_success(investor):
    service = UnrefundablePaymentService(provider_name='demo')

    with ChargeGuard(service) as payments:
        result = payments.charge(user=investor, amount=Decimal('10'))

    assert payments.charges == [(result['transaction_id'], 'demo', Decimal('10'))]
