from django.contrib import admin
from .models import Payment, WebhookEvent


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'investment', 'amount', 'currency', 'provider', 'payment_method', 'status', 'created_at')
    list_filter = ('provider', 'payment_method', 'status')
    search_fields = ('transaction_id', 'user__email')


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ('provider', 'event_id', 'received_at')
    list_filter = ('provider',)
    search_fields = ('event_id',)
