from rest_framework import serializers

from payments.models import Payment
from projects.serializers import ProjectSummarySerializer
from .models import CartItem, Order, OrderItem


class CartItemSerializer(serializers.ModelSerializer):
    project = ProjectSummarySerializer(read_only=True)
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = CartItem
        fields = ['id', 'project', 'quantity', 'unit_price', 'total_price', 'created_at', 'updated_at']
        read_only_fields = fields


class AddToCartSerializer(serializers.Serializer):
    project_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class UpdateCartItemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField()

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than 0")
        return value


class AddressSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    address = serializers.CharField(max_length=500)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=100)
    phone = serializers.CharField(max_length=20)


class CheckoutSerializer(serializers.Serializer):
    shipping_address = AddressSerializer()
    billing_address = AddressSerializer(required=False)
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'project', 'product_title', 'product_description', 'unit_price', 'quantity', 'total_price']
        read_only_fields = fields


class OrderPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ['id', 'status', 'transaction_id', 'provider']
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    payment = OrderPaymentSerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'status', 'subtotal', 'tax', 'shipping', 'discount', 'total',
            'currency', 'shipping_address', 'billing_address', 'payment_method', 'payment',
            'notes', 'items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields
