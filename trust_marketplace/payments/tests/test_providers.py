import hashlib
import hmac
from decimal import Decimal
from unittest import mock

import pytest
import requests

from payments.providers import get_payment_provider
from payments.providers.demo import DemoProvider
from payments.providers.gateway import HttpGatewayProvider


class StubUser:
    pk = 7
    email = 'payer@example.com'
    first_name = 'Pat'
    last_name = 'Payer'
    phone_number = ''


def test_factory_resolves_known_providers():
    assert isinstance(get_payment_provider('demo'), DemoProvider)
    assert isinstance(get_payment_provider('http', base_url='https://gw.test', secret_key='k'), HttpGatewayProvider)


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_payment_provider('paypal')


def test_factory_defaults_to_configured_provider(settings):
    settings.PAYMENT_PROVIDER = 'demo'
    assert isinstance(get_payment_provider(), DemoProvider)


def test_demo_charge_settles_immediately():
    result = DemoProvider().charge(StubUser(), Decimal('2500'), 'KES', reference='ORD-1')

    assert result['status'] == 'success'
    assert result['transaction_id'].startswith('TXN-')
    assert result['data'] == {'provider': 'demo', 'status': 'success', 'reference': 'ORD-1'}
    assert DemoProvider().get_payment_status(result['transaction_id']) == 'COMPLETED'


def test_demo_refund_unknown_transaction():
    assert DemoProvider().refund('nope')['status'] == 'error'


@pytest.fixture
def gateway():
    return HttpGatewayProvider(base_url='https://gw.test/', secret_key='sk_test', timeout=5)


def test_gateway_charge_posts_to_charges(gateway):
    response = mock.Mock(status_code=200)
    response.json.return_value = {'id': 'ch_1', 'status': 'succeeded'}

    with mock.patch('payments.providers.gateway.requests.post', return_value=response) as post:
        result = gateway.charge(StubUser(), Decimal('100.00'), 'KES', payment_method='CARD')

    assert result['status'] == 'success'
    assert result['transaction_id'] == 'ch_1'
    url = post.call_args.args[0]
    assert url == 'https://gw.test/charges'
    assert post.call_args.kwargs['headers']['Authorization'] == 'Bearer sk_test'
    assert post.call_args.kwargs['json']['amount'] == '100.00'


def test_gateway_charge_network_error_is_reported(gateway):
    with mock.patch('payments.providers.gateway.requests.post', side_effect=requests.exceptions.ConnectionError('down')):
        result = gateway.charge(StubUser(), Decimal('100.00'), 'KES')

    assert result['status'] == 'error'


def test_gateway_declined_charge(gateway):
    response = mock.Mock(status_code=200)
    response.json.return_value = {'id': 'ch_2', 'status': 'declined', 'message': 'Insufficient funds'}

    with mock.patch('payments.providers.gateway.requests.post', return_value=response):
        result = gateway.charge(StubUser(), Decimal('100.00'), 'KES')

    assert result == {'status': 'error', 'message': 'Insufficient funds', 'data': response.json.return_value}


@pytest.mark.parametrize('remote,expected', [
    ('succeeded', 'COMPLETED'),
    ('failed', 'FAILED'),
    ('refunded', 'REFUNDED'),
    ('processing', 'PROCESSING'),
    ('requires_action', 'PENDING'),
])
def test_gateway_status_mapping(gateway, remote, expected):
    response = mock.Mock(status_code=200)
    response.json.return_value = {'status': remote}

    with mock.patch('payments.providers.gateway.requests.get', return_value=response):
        assert gateway.get_payment_status('ch_1') == expected


def test_gateway_webhook_signature(gateway):
    body = b'{"id": "evt_1"}'
    signature = hmac.new(b'sk_test', body, hashlib.sha256).hexdigest()

    assert gateway.validate_webhook(body, signature)
    assert not gateway.validate_webhook(body, 'bad')
    assert not gateway.validate_webhook(body, '')
