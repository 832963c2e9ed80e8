from django.contrib import admin
from .models import EscrowContract, EscrowEvent, LedgerEscrow


class EscrowEventInline(admin.TabularInline):
    model = EscrowEvent
    extra = 0
    readonly_fields = ('name', 'tx_hash', 'log_index', 'block_number', 'args', 'applied_at')
    can_delete = False


@admin.register(EscrowContract)
class EscrowContractAdmin(admin.ModelAdmin):
    list_display = ('id', 'investment', 'project', 'amount', 'status', 'is_locked', 'chain_escrow_id', 'created_at')
    list_filter = ('status', 'is_locked')
    search_fields = ('contract_address', 'investment__investor__email', 'project__title')
    readonly_fields = ('status', 'contract_address', 'chain_escrow_id', 'amount', 'released_at', 'refunded_at')
    inlines = [EscrowEventInline]


@admin.register(LedgerEscrow)
class LedgerEscrowAdmin(admin.ModelAdmin):
    list_display = ('contract_address', 'escrow_id', 'depositor', 'beneficiary', 'amount', 'state')
    list_filter = ('contract_address', 'state')
    search_fields = ('depositor', 'beneficiary')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
