from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.urls import reverse

from escrow.models import EscrowContract
from investments.models import Investment
from investments.services import InvestmentService

pytestmark = pytest.mark.django_db


@pytest.fixture
def escrowed(investor, project):
    investment = InvestmentService().create_investment(
        investor=investor, project_id=project.id, amount=100000, status=Investment.ESCROWED
    )
    return investment.escrow_contract


def test_command_applies_missed_contract_events(escrowed, project, ledger):
    ledger.refund(ledger.arbiter, escrowed.chain_escrow_id)
    escrowed.refresh_from_db()
    assert escrowed.status == EscrowContract.ACTIVE

    out = StringIO()
    call_command('sync_escrows', stdout=out)

    escrowed.refresh_from_db()
    escrowed.investment.refresh_from_db()
    project.refresh_from_db()
    assert escrowed.status == EscrowContract.REFUNDED
    assert escrowed.investment.status == Investment.REFUNDED
    assert project.current_amount == Decimal('0')
    assert f"Escrow {escrowed.id}: ACTIVE -> REFUNDED" in out.getvalue()


def test_command_leaves_mirrors_in_step_alone(escrowed):
    out = StringIO()
    call_command('sync_escrows', str(escrowed.id), stdout=out)

    escrowed.refresh_from_db()
    assert escrowed.status == EscrowContract.ACTIVE
    assert "Synced 1 escrows, 0 changed status." in out.getvalue()


def test_staff_can_sync_an_escrow(auth_client, staff_user, escrowed, investor, ledger):
    ledger.release(investor.chain_address, escrowed.chain_escrow_id)

    response = auth_client(staff_user).post(reverse('escrow-sync', args=[escrowed.id]))

    assert response.status_code == 200
    assert response.json()['data']['status'] == EscrowContract.RELEASED


def test_sync_endpoint_is_staff_only(auth_client, investor, escrowed):
    response = auth_client(investor).post(reverse('escrow-sync', args=[escrowed.id]))
    assert response.status_code == 403
