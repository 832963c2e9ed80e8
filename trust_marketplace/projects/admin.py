from django.contrib import admin
from .models import Project


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'fundraiser', 'status', 'target_amount', 'current_amount', 'created_at')
    list_filter = ('status',)
    search_fields = ('title', 'fundraiser__email')
