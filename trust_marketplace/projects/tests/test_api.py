from decimal import Decimal

import pytest
from django.urls import reverse

from projects.models import Project

pytestmark = pytest.mark.django_db


def test_fundraiser_creates_project(auth_client, fundraiser):
    response = auth_client(fundraiser).post(
        reverse('project-list-create'),
        {'title': 'Fish Farm', 'target_amount': '750000', 'min_investment': '5000'},
        format='json',
    )

    assert response.status_code == 201
    body = response.json()
    assert body['success'] is True
    assert body['data']['fundraiser']['id'] == fundraiser.id
    assert body['data']['status'] == Project.DRAFT
    assert body['data']['current_amount'] == '0.00'


def test_investor_cannot_create_project(auth_client, investor):
    response = auth_client(investor).post(
        reverse('project-list-create'), {'title': 'Nope', 'target_amount': '1000'}, format='json'
    )

    assert response.status_code == 403
    assert response.json()['success'] is False


def test_max_below_min_is_rejected(auth_client, fundraiser):
    response = auth_client(fundraiser).post(
        reverse('project-list-create'),
        {'title': 'Bad limits', 'target_amount': '1000', 'min_investment': '500', 'max_investment': '100'},
        format='json',
    )

    assert response.status_code == 400
    assert 'max_investment' in response.json()['error']['details']


def test_list_shows_investable_projects(auth_client, investor, fundraiser, project, active_project):
    Project.objects.create(fundraiser=fundraiser, title='Hidden draft', target_amount=Decimal('100'))

    response = auth_client(investor).get(reverse('project-list-create'))

    titles = {item['title'] for item in response.json()['data']}
    assert titles == {project.title, active_project.title}


def test_only_owner_updates(auth_client, fundraiser, make_user, project):
    outsider = make_user(fundraiser.user_type)
    url = reverse('project-detail', args=[project.id])

    assert auth_client(outsider).patch(url, {'title': 'Taken'}, format='json').status_code == 403

    response = auth_client(fundraiser).patch(url, {'title': 'Solar Irrigation II'}, format='json')
    assert response.status_code == 200
    assert response.json()['data']['title'] == 'Solar Irrigation II'
