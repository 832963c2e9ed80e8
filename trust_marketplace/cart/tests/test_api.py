import pytest
from django.urls import reverse

pytestmark = pytest.mark.django_db

CHECKOUT = {
    'shipping_address': {
        'full_name': 'Amina Otieno',
        'address': '12 Kenyatta Avenue',
        'city': 'Nairobi',
        'postal_code': '00100',
        'country': 'Kenya',
        'phone': '+254700000000',
    },
    'payment_method': 'MPESA',
}


def test_cart_flow(auth_client, investor, active_project):
    client = auth_client(investor)

    added = client.post(reverse('cart-add'), {'project_id': active_project.id, 'quantity': 2}, format='json')
    assert added.status_code == 201
    item_id = added.json()['data']['id']

    cart = client.get(reverse('cart')).json()['data']
    assert cart['item_count'] == 2
    assert cart['subtotal'] == '2000.00'
    assert cart['currency'] == 'KES'

    updated = client.patch(reverse('cart-item', args=[item_id]), {'quantity': 3}, format='json')
    assert updated.json()['data']['quantity'] == 3

    rejected = client.patch(reverse('cart-item', args=[item_id]), {'quantity': 0}, format='json')
    assert rejected.status_code == 400

    order = client.post(reverse('checkout'), CHECKOUT, format='json')
    assert order.status_code == 201
    assert order.json()['data']['status'] == 'PAID'

    assert client.get(reverse('cart')).json()['data']['items'] == []
    orders = client.get(reverse('order-list')).json()
    assert orders['pagination']['total'] == 1
    detail = client.get(reverse('order-detail', args=[orders['data'][0]['id']]))
    assert detail.json()['data']['items'][0]['quantity'] == 3


def test_checkout_empty_cart(auth_client, investor):
    response = auth_client(investor).post(reverse('checkout'), CHECKOUT, format='json')

    assert response.status_code == 400
    assert response.json()['error']['message'] == 'Cart is empty'


def test_orders_are_private(auth_client, investor, other_investor, active_project):
    client = auth_client(investor)
    client.post(reverse('cart-add'), {'project_id': active_project.id}, format='json')
    order_id = client.post(reverse('checkout'), CHECKOUT, format='json').json()['data']['id']

    response = auth_client(other_investor).get(reverse('order-detail', args=[order_id]))
    assert response.status_code == 404


def test_clear_cart(auth_client, investor, active_project):
    client = auth_client(investor)
    client.post(reverse('cart-add'), {'project_id': active_project.id}, format='json')

    assert client.delete(reverse('cart')).status_code == 200
    assert client.get(reverse('cart')).json()['data']['item_count'] == 0
