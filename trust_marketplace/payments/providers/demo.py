import logging
import uuid

from .base import BasePaymentProvider

logger = logging.getLogger(__name__)

TRANSACTION_PREFIX = 'TXN-'


class DemoProvider(BasePaymentProvider):
    """
    Settles every charge immediately without leaving the process.
    Used for demo deployments, seeding and tests.
    """
    name = 'demo'

    def charge(self, user, amount, currency, **kwargs):
        transaction_id = f"{TRANSACTION_PREFIX}{uuid.uuid4().hex[:20].upper()}"
        logger.info("Demo charge %s for user %s: %s %s", transaction_id, user.pk, amount, currency)
        return {
            'status': 'success',
            'provider': self.name,
            'transaction_id': transaction_id,
            'data': {
                'provider': self.name,
                'status': 'success',
                'reference': kwargs.get('reference'),
            },
        }

    def verify(self, provider_transaction_id):
        return bool(provider_transaction_id) and provider_transaction_id.startswith(TRANSACTION_PREFIX)

    def refund(self, provider_transaction_id, amount=None, reason="Refund"):
        if not self.verify(provider_transaction_id):
            return {'status': 'error', 'message': 'Unknown transaction'}
        return {
            'status': 'success',
            'provider': self.name,
            'refund_id': f"RFD-{provider_transaction_id[len(TRANSACTION_PREFIX):]}",
            'amount': str(amount) if amount is not None else None,
            'reason': reason,
        }

    def get_payment_status(self, provider_transaction_id):
        return 'COMPLETED' if self.verify(provider_transaction_id) else 'FAILED'
