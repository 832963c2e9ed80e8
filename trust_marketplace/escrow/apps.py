import logging

from django.apps import AppConfig, apps
from django.conf import settings

logger = logging.getLogger(__name__)


class EscrowConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'escrow'

    ledger = None

    def ready(self):
        from .contract import EscrowLedger

        self.ledger = EscrowLedger(
            address=settings.ESCROW_CONTRACT_ADDRESS,
            arbiter=settings.ESCROW_ARBITER_ADDRESS,
        )
        logger.info("Escrow ledger bound to contract %s", self.ledger.address)


def get_escrow_ledger():
    """The ledger opened at startup by the escrow app."""
    return apps.get_app_config('escrow').ledger
