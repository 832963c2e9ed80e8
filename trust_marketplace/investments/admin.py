from django.contrib import admin
from .models import Investment


@admin.register(Investment)
class InvestmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'investor', 'project', 'amount', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('investor__email', 'project__title', 'transaction_hash')
    readonly_fields = ('transaction_hash',)
