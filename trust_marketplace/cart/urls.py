from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.CartAPIView.as_view(), name='cart'),
    path('items/', my_views.CartItemCreateAPIView.as_view(), name='cart-add'),
    path('items/<int:item_id>/', my_views.CartItemAPIView.as_view(), name='cart-item'),
    path('checkout/', my_views.CheckoutAPIView.as_view(), name='checkout'),
    path('orders/', my_views.OrderListAPIView.as_view(), name='order-list'),
    path('orders/<int:id>/', my_views.OrderDetailAPIView.as_view(), name='order-detail'),
]
