import re
from decimal import Decimal

from cart.services import calculate_totals, generate_order_number


def test_totals_with_free_shipping():
    totals = calculate_totals([(2, Decimal('1000')), (1, Decimal('500'))], tax_rate=Decimal('0.16'), shipping_fee=0)

    assert totals.subtotal == Decimal('2500')
    assert totals.tax == Decimal('400')
    assert totals.shipping == Decimal('0')
    assert totals.total == Decimal('2900')
    assert totals.item_count == 3


def test_shipping_fee_below_threshold(settings):
    settings.VAT_RATE = Decimal('0.16')
    settings.FREE_SHIPPING_THRESHOLD = Decimal('10000')
    settings.SHIPPING_FEE = Decimal('500')

    totals = calculate_totals([(1, Decimal('10000'))])

    assert totals.shipping == Decimal('500')
    assert totals.total == Decimal('12100')


def test_free_shipping_above_threshold(settings):
    settings.FREE_SHIPPING_THRESHOLD = Decimal('10000')

    totals = calculate_totals([(1, Decimal('10000.01'))], tax_rate=0)

    assert totals.shipping == Decimal('0')
    assert totals.total == Decimal('10000.01')


def test_empty_cart_costs_nothing():
    totals = calculate_totals([])

    assert totals.total == Decimal('0')
    assert totals.item_count == 0


def test_tax_is_rounded_to_cents():
    totals = calculate_totals([(1, Decimal('0.05'))], tax_rate=Decimal('0.16'), shipping_fee=0)
    assert totals.tax == Decimal('0.01')


def test_order_number_format():
    number = generate_order_number()

    assert re.fullmatch(r"ORD-[0-9A-Z]+-[0-9A-Z]{4}", number)
    assert generate_order_number() != number
