from django.contrib import admin
from .models import Email


@admin.register(Email)
class EmailAdmin(admin.ModelAdmin):
    list_display = ['subject', 'direction', 'from_address', 'status', 'folder', 'is_read', 'created_at']
    list_filter = ['direction', 'status', 'folder', 'is_read', 'is_starred']
    search_fields = ['subject', 'from_address', 'text_body']
