from django.conf import settings
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema

from trust_marketplace.exceptions import success
from . import serializers as my_serializers
from .models import Order
from .services import CartService, CheckoutService


def cart_payload(items, totals):
    return {
        'items': my_serializers.CartItemSerializer(items, many=True).data,
        'item_count': totals.item_count,
        'subtotal': str(totals.subtotal),
        'tax': str(totals.tax),
        'shipping': str(totals.shipping),
        'total': str(totals.total),
        'currency': settings.SETTLEMENT_CURRENCY,
    }


class CartAPIView(views.APIView):
    """
    GET: the caller's cart with subtotal, VAT, shipping and total.
    DELETE: empty the cart.
    """
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(operation_summary="Get cart")
    def get(self, request):
        _, items, totals = CartService().get_cart(request.user)
        return Response(success(cart_payload(items, totals)))

    @swagger_auto_schema(operation_summary="Clear cart")
    def delete(self, request):
        CartService().clear(request.user)
        return Response(success({'cleared': True}))


class CartItemCreateAPIView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Add a project to the cart",
        request_body=my_serializers.AddToCartSerializer,
        responses={201: my_serializers.CartItemSerializer(), 400: "Project not available", 404: "Not found"}
    )
    def post(self, request):
        serializer = my_serializers.AddToCartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = CartService().add_item(
            request.user,
            serializer.validated_data['project_id'],
            serializer.validated_data['quantity'],
        )
        return Response(success(my_serializers.CartItemSerializer(item).data), status=status.HTTP_201_CREATED)


class CartItemAPIView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Set the quantity of a cart item",
        request_body=my_serializers.UpdateCartItemSerializer,
        responses={200: my_serializers.CartItemSerializer(), 403: "Forbidden", 404: "Not found"}
    )
    def patch(self, request, item_id):
        serializer = my_serializers.UpdateCartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = CartService().update_item(request.user, item_id, serializer.validated_data['quantity'])
        return Response(success(my_serializers.CartItemSerializer(item).data))

    @swagger_auto_schema(operation_summary="Remove an item from the cart")
    def delete(self, request, item_id):
        CartService().remove_item(request.user, item_id)
        return Response(success({'removed': item_id}))


class CheckoutAPIView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Check out the cart",
        request_body=my_serializers.CheckoutSerializer,
        responses={201: my_serializers.OrderSerializer(), 400: "Cart is empty", 502: "Payment failed"}
    )
    def post(self, request):
        serializer = my_serializers.CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = CheckoutService().checkout(
            request.user,
            shipping_address=data['shipping_address'],
            billing_address=data.get('billing_address'),
            payment_method=data['payment_method'],
            notes=data['notes'],
        )
        return Response(success(my_serializers.OrderSerializer(order).data), status=status.HTTP_201_CREATED)


class OrderListAPIView(generics.ListAPIView):
    serializer_class = my_serializers.OrderSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ['status']

    def get_queryset(self):
        return Order.objects.filter(user=self.request.user).select_related('payment').prefetch_related('items')

    @swagger_auto_schema(operation_summary="List own orders")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailAPIView(generics.RetrieveAPIView):
    serializer_class = my_serializers.OrderSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_field = 'id'

    def get_queryset(self):
        return Order.objects.filter(user=self.request.user).select_related('payment').prefetch_related('items')

    @swagger_auto_schema(operation_summary="Retrieve an order")
    def get(self, request, *args, **kwargs):
        return Response(success(self.get_serializer(self.get_object()).data))
