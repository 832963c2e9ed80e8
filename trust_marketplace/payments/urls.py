from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.PaymentListAPIView.as_view(), name='payment-list'),
    path('<int:id>/', my_views.PaymentDetailAPIView.as_view(), name='payment-detail'),
    path('<int:id>/refund/', my_views.PaymentRefundAPIView.as_view(), name='payment-refund'),
    path('webhooks/<str:provider_name>/', my_views.PaymentWebhookAPIView.as_view(), name='payment-webhook'),
]
