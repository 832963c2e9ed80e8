import pytest
from django.urls import reverse

from investments.models import Investment

pytestmark = pytest.mark.django_db


def test_create_investment_envelope(auth_client, investor, project):
    response = auth_client(investor).post(reverse('investment-list-create'), {
        'project_id': project.id,
        'amount': '1000000',
        'status': Investment.ESCROWED,
    }, format='json')

    assert response.status_code == 201
    body = response.json()
    assert body['success'] is True
    assert body['data']['amount'] == '500000.00'
    assert body['data']['status'] == Investment.ESCROWED
    assert body['data']['escrow_id'] is not None
    assert body['data']['project']['current_amount'] == '500000.00'


def test_duplicate_investment_returns_conflict(auth_client, investor, project):
    client = auth_client(investor)
    client.post(reverse('investment-list-create'), {'project_id': project.id, 'amount': '20000'}, format='json')

    response = client.post(reverse('investment-list-create'), {'project_id': project.id, 'amount': '20000'}, format='json')

    assert response.status_code == 409
    assert response.json() == {
        'success': False,
        'error': {'message': 'You already have an active investment in this project', 'code': 'conflict'},
    }


def test_fundraisers_cannot_invest(auth_client, fundraiser, project):
    response = auth_client(fundraiser).post(
        reverse('investment-list-create'), {'project_id': project.id, 'amount': '20000'}, format='json'
    )
    assert response.status_code == 403


def test_invalid_amount_is_rejected(auth_client, investor, project):
    response = auth_client(investor).post(
        reverse('investment-list-create'), {'project_id': project.id, 'amount': '-5'}, format='json'
    )

    body = response.json()
    assert response.status_code == 400
    assert body['error']['message'].startswith('amount:')
    assert 'amount' in body['error']['details']


def test_list_and_cancel(auth_client, investor, project):
    client = auth_client(investor)
    created = client.post(
        reverse('investment-list-create'), {'project_id': project.id, 'amount': '20000'}, format='json'
    ).json()['data']

    listed = client.get(reverse('investment-list-create'), {'status': Investment.PENDING}).json()
    assert [item['id'] for item in listed['data']] == [created['id']]

    response = client.post(reverse('investment-cancel', args=[created['id']]))
    assert response.status_code == 200
    assert response.json()['data']['status'] == Investment.CANCELLED


def test_project_investments_visible_to_fundraiser_only(auth_client, investor, other_investor, fundraiser, project):
    auth_client(investor).post(
        reverse('investment-list-create'), {'project_id': project.id, 'amount': '20000'}, format='json'
    )
    url = reverse('project-investments', args=[project.id])

    assert auth_client(fundraiser).get(url).json()['pagination']['total'] == 1
    assert auth_client(other_investor).get(url).status_code == 403


def test_staff_advances_status(auth_client, investor, staff_user, project):
    created = auth_client(investor).post(
        reverse('investment-list-create'), {'project_id': project.id, 'amount': '20000'}, format='json'
    ).json()['data']
    url = reverse('investment-status', args=[created['id']])

    assert auth_client(investor).post(url, {'status': Investment.APPROVED}, format='json').status_code == 403

    response = auth_client(staff_user).post(url, {'status': Investment.APPROVED}, format='json')
    assert response.status_code == 200
    assert response.json()['data']['status'] == Investment.APPROVED
