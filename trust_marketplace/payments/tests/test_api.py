import json
from decimal import Decimal

import pytest
from django.urls import reverse

from investments.models import Investment
from investments.services import InvestmentService
from payments.models import Payment, WebhookEvent

pytestmark = pytest.mark.django_db


@pytest.fixture
def approved_investment(investor, project):
    return InvestmentService().create_investment(
        investor=investor, project_id=project.id, amount=50000, status=Investment.APPROVED
    )


def test_list_own_payments(auth_client, investor, other_investor, approved_investment):
    response = auth_client(investor).get(reverse('payment-list'), {'status': Payment.COMPLETED})

    body = response.json()
    assert response.status_code == 200
    assert body['pagination']['total'] == 1
    assert body['data'][0]['investment'] == approved_investment.id

    assert auth_client(other_investor).get(reverse('payment-list')).json()['data'] == []


def test_other_users_cannot_read_payment(auth_client, other_investor, approved_investment):
    payment = approved_investment.payments.get()

    response = auth_client(other_investor).get(reverse('payment-detail', args=[payment.id]))

    assert response.status_code == 403
    assert response.json()['success'] is False


def test_refund_completed_payment(auth_client, investor, project, approved_investment):
    payment = approved_investment.payments.get()

    response = auth_client(investor).post(reverse('payment-refund', args=[payment.id]), {'reason': 'Changed my mind'})

    assert response.status_code == 200
    assert response.json()['data']['status'] == Payment.REFUNDED
    approved_investment.refresh_from_db()
    project.refresh_from_db()
    assert approved_investment.status == Investment.REFUNDED
    assert project.current_amount == Decimal('0')


def test_refund_twice_conflicts(auth_client, investor, approved_investment):
    payment = approved_investment.payments.get()
    client = auth_client(investor)
    client.post(reverse('payment-refund', args=[payment.id]))

    response = client.post(reverse('payment-refund', args=[payment.id]))

    assert response.status_code == 409
    assert response.json()['error']['code'] == 'invalid_state'


def test_escrowed_payment_is_refunded_through_escrow(auth_client, investor, project):
    investment = InvestmentService().create_investment(
        investor=investor, project_id=project.id, amount=50000, status=Investment.ESCROWED
    )

    response = auth_client(investor).post(reverse('payment-refund', args=[investment.payments.get().id]))

    assert response.status_code == 409


def post_webhook(api_client, payload, provider='demo'):
    return api_client.post(
        reverse('payment-webhook', args=[provider]),
        data=json.dumps(payload),
        content_type='application/json',
    )


def test_webhook_completes_payment_and_approves_investment(api_client, investor, project):
    investment = InvestmentService().create_investment(investor=investor, project_id=project.id, amount=50000)
    payment = Payment.objects.create(
        user=investor, investment=investment, amount=investment.amount, currency='KES',
        payment_method='MPESA', provider='demo', transaction_id='TXN-PENDING1',
    )

    response = post_webhook(api_client, {'id': 'evt_1', 'data': {'transaction_id': 'TXN-PENDING1', 'status': 'success'}})

    assert response.status_code == 200
    assert response.json()['data']['applied'] is True
    payment.refresh_from_db()
    investment.refresh_from_db()
    assert payment.status == Payment.COMPLETED
    assert investment.status == Investment.APPROVED


def test_webhook_replay_is_ignored(api_client, investor):
    Payment.objects.create(
        user=investor, amount=Decimal('10'), currency='KES',
        payment_method='CARD', provider='demo', transaction_id='TXN-REPLAY',
    )
    payload = {'id': 'evt_2', 'data': {'transaction_id': 'TXN-REPLAY', 'status': 'failed'}}

    post_webhook(api_client, payload)
    Payment.objects.filter(transaction_id='TXN-REPLAY').update(status=Payment.PENDING)
    response = post_webhook(api_client, payload)

    assert response.json()['data']['applied'] is False
    assert Payment.objects.get(transaction_id='TXN-REPLAY').status == Payment.PENDING
    assert WebhookEvent.objects.filter(event_id='evt_2').count() == 1


def test_webhook_for_unknown_payment(api_client):
    response = post_webhook(api_client, {'id': 'evt_3', 'data': {'transaction_id': 'missing', 'status': 'success'}})

    assert response.status_code == 404
    assert not WebhookEvent.objects.filter(event_id='evt_3').exists()


def test_http_webhook_requires_signature(api_client, settings):
    settings.PAYMENT_GATEWAY_URL = 'https://gw.test'
    settings.PAYMENT_GATEWAY_SECRET_KEY = 'sk_test'

    response = post_webhook(api_client, {'id': 'evt_4', 'data': {'transaction_id': 'x', 'status': 'success'}}, provider='http')

    assert response.status_code == 403
