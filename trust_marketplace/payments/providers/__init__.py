from django.conf import settings

from .base import BasePaymentProvider
from .demo import DemoProvider
from .gateway import HttpGatewayProvider

PROVIDERS = {
    DemoProvider.name: DemoProvider,
    HttpGatewayProvider.name: HttpGatewayProvider,
}


def get_payment_provider(provider_name: str = None, **kwargs) -> BasePaymentProvider:
    """
    Factory function to get payment provider instances.

    Args:
        provider_name: Name of the payment provider (defaults to settings.PAYMENT_PROVIDER)
        **kwargs: Additional configuration

    Returns:
        BasePaymentProvider: Payment provider instance
    """
    name = provider_name or settings.PAYMENT_PROVIDER

    if name not in PROVIDERS:
        raise ValueError(f"Unknown payment provider: {name}")

    return PROVIDERS[name](**kwargs)
