from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import CustomUser
from escrow.apps import get_escrow_ledger
from projects.models import Project


@pytest.fixture
def ledger(db):
    """The escrow contract the app is bound to. Its storage is reset with the test database."""
    return get_escrow_ledger()


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make_user(user_type=CustomUser.INVESTOR, **extra):
        counter['n'] += 1
        extra.setdefault('email', f"{user_type.lower()}{counter['n']}@example.com")
        extra.setdefault('first_name', 'Test')
        extra.setdefault('last_name', f"User{counter['n']}")
        return CustomUser.objects.create_user(password='Str0ng-pass!', user_type=user_type, **extra)

    return _make_user


@pytest.fixture
def investor(make_user):
    return make_user(CustomUser.INVESTOR, trust_band='B')


@pytest.fixture
def other_investor(make_user):
    return make_user(CustomUser.INVESTOR)


@pytest.fixture
def fundraiser(make_user):
    return make_user(CustomUser.FUNDRAISER, company_name='Green Farms Ltd')


@pytest.fixture
def staff_user(make_user):
    return make_user(CustomUser.INVESTOR, is_staff=True)


@pytest.fixture
def project(fundraiser):
    return Project.objects.create(
        fundraiser=fundraiser,
        title='Solar Irrigation',
        description='Solar powered irrigation for smallholder farms',
        target_amount=Decimal('5000000'),
        min_investment=Decimal('10000'),
        max_investment=Decimal('500000'),
        status=Project.APPROVED,
    )


@pytest.fixture
def active_project(fundraiser):
    return Project.objects.create(
        fundraiser=fundraiser,
        title='Dairy Cooperative',
        target_amount=Decimal('2000000'),
        unit_price=Decimal('1000'),
        status=Project.ACTIVE,
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client():
    def _auth_client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _auth_client
