from django.contrib import admin
from .models import CustomUser


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = ('id', 'email', 'user_type', 'trust_band', 'is_active', 'created_at')
    list_filter = ('user_type', 'trust_band', 'is_active')
    search_fields = ('email', 'first_name', 'last_name', 'company_name')
