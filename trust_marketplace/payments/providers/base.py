from abc import ABC, abstractmethod


class BasePaymentProvider(ABC):
    """
    Abstract base class for all payment providers.
    Defines the common interface that all payment providers must implement.

    Every call returns a dict with at least a ``status`` key
    ('success', 'pending' or 'error'); providers do not raise for gateway-side
    declines.
    """
    name = None

    def __init__(self, **kwargs):
        """Initialize the payment provider with configuration."""
        self.config = kwargs

    @abstractmethod
    def charge(self, user, amount, currency, **kwargs):
        """
        Collect a payment.

        Args:
            user: User object making the payment
            amount: Amount to charge (as Decimal)
            currency: ISO currency code
            **kwargs: Additional parameters specific to the provider
                (payment_method, reference, description)

        Returns:
            Dict with status, transaction_id and the raw gateway response
        """

    @abstractmethod
    def verify(self, provider_transaction_id: str) -> bool:
        """
        Verify a payment transaction.

        Args:
            provider_transaction_id: Transaction ID from the provider

        Returns:
            bool: True if payment is successful, False otherwise
        """

    @abstractmethod
    def refund(self, provider_transaction_id, amount=None, reason="Refund"):
        """
        Process a refund.

        Args:
            provider_transaction_id: Original transaction ID
            amount: Amount to refund (if None, full refund)

        Returns:
            Dict containing refund response
        """

    @abstractmethod
    def get_payment_status(self, provider_transaction_id):
        """
        Get the current status of a payment.

        Args:
            provider_transaction_id: Transaction ID from the provider

        Returns:
            str: Payment status (PENDING, COMPLETED, FAILED, ...)
        """

    def validate_webhook(self, payload, signature):
        """
        Validate webhook signature (optional implementation).

        Args:
            payload: Raw webhook payload
            signature: Webhook signature header

        Returns:
            bool: True if webhook is valid
        """
        return True
