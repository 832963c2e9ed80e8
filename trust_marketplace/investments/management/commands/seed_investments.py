import random

from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model

from escrow.services import EscrowService
from investments.models import Investment
from investments.services import InvestmentService
from projects.models import Project
from trust_marketplace.exceptions import MarketplaceError

User = get_user_model()

INVESTMENT_AMOUNTS = [
    100000, 250000, 500000, 750000, 1000000, 1500000, 2000000, 3000000, 5000000, 10000000,
]
SEED_STATUSES = [Investment.PENDING, Investment.APPROVED, Investment.ESCROWED, Investment.RELEASED]


class Command(BaseCommand):
    help = "Adds demo investments (with payments and escrows) to open projects."

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=10, help='Max investors and projects to use')
        parser.add_argument('--seed', type=int, help='Random seed for reproducible runs')

    def handle(self, *args, **options):
        rng = random.Random(options.get('seed'))
        limit = options['limit']

        investors = list(User.objects.filter(user_type=User.INVESTOR, is_active=True)[:limit])
        if not investors:
            self.stdout.write(self.style.ERROR("No investors found. Please seed users first."))
            return

        projects = list(Project.objects.filter(status__in=Project.INVESTABLE_STATUSES)[:limit])
        if not projects:
            self.stdout.write(self.style.ERROR("No active projects found. Please seed projects first."))
            return

        self.stdout.write(f"Found {len(investors)} investors and {len(projects)} projects")

        service = InvestmentService()
        created = 0
        for project in projects:
            for _ in range(rng.randint(3, 5)):
                investor = self._pick_investor(rng, investors, project)
                if investor is None:
                    continue
                try:
                    self._invest(service, investor, project, rng.choice(INVESTMENT_AMOUNTS), rng.choice(SEED_STATUSES))
                except MarketplaceError as e:
                    self.stdout.write(self.style.WARNING(f"Skipped {investor.email} on '{project.title}': {e.detail}"))
                    continue
                created += 1

        self.stdout.write(self.style.SUCCESS(f"Added {created} investments and updated project funding amounts."))

    @staticmethod
    def _pick_investor(rng, investors, project):
        """A random investor, or one alternate if the first already invested."""
        investor = rng.choice(investors)
        if not Investment.objects.filter(investor=investor, project=project).exists():
            return investor

        others = [candidate for candidate in investors if candidate.id != investor.id]
        if not others:
            return None
        alternate = rng.choice(others)
        if Investment.objects.filter(investor=alternate, project=project).exists():
            return None
        return alternate

    @staticmethod
    def _invest(service, investor, project, amount, status):
        initial = Investment.ESCROWED if status == Investment.RELEASED else status
        investment = service.create_investment(
            investor=investor,
            project_id=project.id,
            amount=amount,
            status=initial,
            notes=f"Investment in {project.title}",
        )
        if status == Investment.RELEASED:
            EscrowService().release(investor, investment.escrow_contract.id)
        return investment
