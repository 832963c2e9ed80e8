from django.core.management.base import BaseCommand

from escrow.models import EscrowContract
from escrow.services import EscrowService
from trust_marketplace.exceptions import MarketplaceError


class Command(BaseCommand):
    help = "Applies escrow contract events the database mirror has not seen yet."

    def add_arguments(self, parser):
        parser.add_argument('escrow_ids', nargs='*', type=int, help='Escrow records to sync (default: all open escrows)')

    def handle(self, *args, **options):
        escrows = EscrowContract.objects.filter(chain_escrow_id__isnull=False).select_related('investment')
        if options['escrow_ids']:
            escrows = escrows.filter(pk__in=options['escrow_ids'])
        else:
            escrows = escrows.filter(status__in=[EscrowContract.PENDING, EscrowContract.ACTIVE])

        service = EscrowService()
        changed = 0
        for escrow in escrows:
            before = escrow.status
            try:
                escrow = service.sync_from_chain(escrow)
            except MarketplaceError as e:
                self.stdout.write(self.style.WARNING(f"Escrow {escrow.id} could not be synced: {e.detail}"))
                continue
            if escrow.status != before:
                changed += 1
                self.stdout.write(f"Escrow {escrow.id}: {before} -> {escrow.status}")

        self.stdout.write(self.style.SUCCESS(f"Synced {len(escrows)} escrows, {changed} changed status."))
