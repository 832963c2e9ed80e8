import hashlib
import hmac
import logging

import requests
from django.conf import settings

from .base import BasePaymentProvider

logger = logging.getLogger(__name__)


class HttpGatewayProvider(BasePaymentProvider):
    """
    Hosted payment gateway reached over its REST API.

    Endpoints used:
        POST {base}/charges
        GET  {base}/charges/{id}
        POST {base}/charges/{id}/refunds
    """
    name = 'http'

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.base_url = (kwargs.get('base_url') or settings.PAYMENT_GATEWAY_URL).rstrip('/')
        self.secret_key = kwargs.get('secret_key') or settings.PAYMENT_GATEWAY_SECRET_KEY
        self.timeout = kwargs.get('timeout') or settings.PAYMENT_GATEWAY_TIMEOUT

    def _headers(self):
        return {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json',
        }

    def charge(self, user, amount, currency, **kwargs):
        payload = {
            'amount': str(amount),
            'currency': currency,
            'email': user.email,
            'first_name': user.first_name,
            'last_name': user.last_name,
            'phone_number': user.phone_number or '',
            'payment_method': kwargs.get('payment_method'),
            'reference': kwargs.get('reference'),
            'description': kwargs.get('description', ''),
        }

        logger.info("Initiating gateway charge for user %s, amount: %s %s", user.email, amount, currency)
        try:
            response = requests.post(
                f"{self.base_url}/charges", json=payload, headers=self._headers(), timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Gateway charge request failed: %s", e)
            return {'status': 'error', 'message': 'Payment initiation failed', 'error': str(e)}

        transaction_id = data.get('id') or data.get('transaction_id')
        if data.get('status') not in ('success', 'succeeded', 'completed') or not transaction_id:
            return {
                'status': 'error',
                'message': data.get('message') or 'Payment was declined',
                'data': data,
            }

        return {
            'status': 'success',
            'provider': self.name,
            'transaction_id': transaction_id,
            'data': data,
        }

    def verify(self, provider_transaction_id):
        return self.get_payment_status(provider_transaction_id) == 'COMPLETED'

    def refund(self, provider_transaction_id, amount=None, reason="Refund"):
        payload = {'reason': reason}
        if amount is not None:
            payload['amount'] = str(amount)

        logger.info("Initiating gateway refund for %s, amount: %s", provider_transaction_id, amount)
        try:
            response = requests.post(
                f"{self.base_url}/charges/{provider_transaction_id}/refunds",
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Gateway refund request failed: %s", e)
            return {'status': 'error', 'message': 'Refund request failed', 'error': str(e)}

        return {
            'status': 'success',
            'provider': self.name,
            'refund_id': data.get('id'),
            'amount': payload.get('amount'),
            'data': data,
        }

    def get_payment_status(self, provider_transaction_id):
        try:
            response = requests.get(
                f"{self.base_url}/charges/{provider_transaction_id}",
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Gateway status request failed: %s", e)
            return 'PENDING'

        status = (data.get('status') or '').lower()
        if status in ('success', 'succeeded', 'completed'):
            return 'COMPLETED'
        if status in ('failed', 'declined', 'cancelled'):
            return 'FAILED'
        if status == 'refunded':
            return 'REFUNDED'
        return 'PROCESSING' if status == 'processing' else 'PENDING'

    def validate_webhook(self, payload, signature):
        if not self.secret_key or not signature:
            return False
        if isinstance(payload, str):
            payload = payload.encode()
        expected = hmac.new(self.secret_key.encode(), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)
