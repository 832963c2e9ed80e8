import logging
import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from payments.services import ChargeGuard, PaymentService, record_payment
from projects.models import Project
from trust_marketplace.exceptions import NotAuthorized, NotFound, ValidationFailed
from .models import Cart, CartItem, Order, OrderItem

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
BASE36 = string.digits + string.ascii_uppercase


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    item_count: int


def calculate_totals(lines, tax_rate=None, free_shipping_threshold=None, shipping_fee=None):
    """
    Totals for ``lines``, an iterable of ``(quantity, unit_price)`` pairs.

    Shipping is free above the threshold and for an empty cart.
    Policy values default to the VAT_RATE, FREE_SHIPPING_THRESHOLD and
    SHIPPING_FEE settings.
    """
    tax_rate = Decimal(str(settings.VAT_RATE if tax_rate is None else tax_rate))
    threshold = Decimal(str(settings.FREE_SHIPPING_THRESHOLD if free_shipping_threshold is None else free_shipping_threshold))
    fee = Decimal(str(settings.SHIPPING_FEE if shipping_fee is None else shipping_fee))

    subtotal = Decimal('0')
    item_count = 0
    for quantity, unit_price in lines:
        subtotal += Decimal(quantity) * Decimal(str(unit_price))
        item_count += quantity

    shipping = Decimal('0') if item_count == 0 or subtotal > threshold else fee
    tax = (subtotal * tax_rate).quantize(CENTS)
    subtotal = subtotal.quantize(CENTS)
    shipping = shipping.quantize(CENTS)
    return CartTotals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=subtotal + tax + shipping,
        item_count=item_count,
    )


def generate_order_number():
    millis = int(time.time() * 1000)
    encoded = ''
    while millis:
        millis, remainder = divmod(millis, 36)
        encoded = BASE36[remainder] + encoded
    suffix = ''.join(secrets.choice(BASE36) for _ in range(4))
    return f"ORD-{encoded or '0'}-{suffix}"


def lock_cart(user):
    """The user's cart row, locked until the surrounding transaction ends."""
    cart, _ = Cart.objects.get_or_create(user=user)
    return Cart.objects.select_for_update().get(pk=cart.pk)


class CartService:
    def get_cart(self, user):
        cart, _ = Cart.objects.get_or_create(user=user)
        items = list(cart.items.select_related('project', 'project__fundraiser'))
        totals = calculate_totals((item.quantity, item.unit_price) for item in items)
        return cart, items, totals

    @transaction.atomic
    def add_item(self, user, project_id, quantity=1):
        if quantity <= 0:
            raise ValidationFailed("Quantity must be greater than 0")

        cart = lock_cart(user)
        project = Project.objects.filter(pk=project_id).first()
        if project is None:
            raise NotFound("Project not found")
        if project.status != Project.ACTIVE:
            raise ValidationFailed("Project is not available for purchase")

        item = cart.items.filter(project=project).first()
        if item is None:
            item = CartItem.objects.create(cart=cart, project=project, quantity=quantity, unit_price=project.price)
        else:
            item.quantity += quantity
            item.unit_price = project.price
            item.save(update_fields=['quantity', 'unit_price', 'updated_at'])

        logger.info("Cart %s: project %s quantity now %s", cart.id, project.id, item.quantity)
        return item

    @transaction.atomic
    def update_item(self, user, item_id, quantity):
        if quantity <= 0:
            raise ValidationFailed("Quantity must be greater than 0")

        cart = lock_cart(user)
        item = self._owned_item(cart, item_id)
        item.quantity = quantity
        item.unit_price = item.project.price
        item.save(update_fields=['quantity', 'unit_price', 'updated_at'])
        return item

    @transaction.atomic
    def remove_item(self, user, item_id):
        cart = lock_cart(user)
        self._owned_item(cart, item_id).delete()

    @transaction.atomic
    def clear(self, user):
        cart = lock_cart(user)
        cart.items.all().delete()

    @staticmethod
    def _owned_item(cart, item_id):
        item = CartItem.objects.select_related('project').filter(pk=item_id).first()
        if item is None:
            raise NotFound("Cart item not found")
        if item.cart_id != cart.id:
            raise NotAuthorized("Unauthorized")
        return item


class CheckoutService:
    """Turns a user's cart into a paid order."""

    def __init__(self, payment_service=None):
        self.payment_service = payment_service or PaymentService()

    def checkout(self, user, *, shipping_address, payment_method, billing_address=None, notes=''):
        """
        Create the order, charge for it and empty the cart in one transaction.

        Any failure rolls the whole checkout back and reverses a charge already
        taken, so the cart keeps its items.
        """
        with ChargeGuard(self.payment_service) as payments, transaction.atomic():
            cart = lock_cart(user)
            items = list(cart.items.select_related('project'))
            if not items:
                raise ValidationFailed("Cart is empty")

            totals = calculate_totals((item.quantity, item.unit_price) for item in items)
            order = Order.objects.create(
                user=user,
                order_number=generate_order_number(),
                status=Order.PENDING,
                subtotal=totals.subtotal,
                tax=totals.tax,
                shipping=totals.shipping,
                total=totals.total,
                currency=settings.SETTLEMENT_CURRENCY,
                shipping_address=shipping_address,
                billing_address=billing_address,
                payment_method=payment_method,
                notes=notes or '',
            )
            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    project=item.project,
                    product_title=item.project.title,
                    product_description=item.project.description,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    total_price=item.total_price,
                )
                for item in items
            ])

            result = payments.charge(
                user=user,
                amount=totals.total,
                payment_method=payment_method,
                reference=order.order_number,
                description=f"Order {order.order_number}",
            )
            order.payment = record_payment(
                user=user,
                amount=totals.total,
                charge_result=result,
                payment_method=payment_method,
            )
            order.status = Order.PAID
            order.save(update_fields=['payment', 'status', 'updated_at'])

            cart.items.all().delete()
        logger.info("Checkout of cart %s created order %s (total %s)", cart.id, order.order_number, totals.total)
        return order
