from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import AuditLog, CompanySettings, User

PROFILE_FIELDS = ('full_name', 'role', 'phone', 'company', 'address', 'avatar_url')


@admin.register(User)
class CcurityUserAdmin(UserAdmin):
    list_display = ('username', 'full_name', 'role', 'company', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'email', 'full_name', 'company')
    fieldsets = UserAdmin.fieldsets + (('Perfil', {'fields': PROFILE_FIELDS}),)
    add_fieldsets = UserAdmin.add_fieldsets + (('Perfil', {'fields': ('email', 'full_name', 'role')}),)


@admin.register(CompanySettings)
class CompanySettingsAdmin(admin.ModelAdmin):
    list_display = ('name', 'rfc', 'phone', 'updated_at')
    readonly_fields = ('updated_at',)

    def has_add_permission(self, request):
        return not CompanySettings.objects.exists()


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'model_name', 'object_reference')
    list_filter = ('action', 'model_name')
    search_fields = ('user__username', 'object_id', 'object_name', 'object_reference')
    date_hierarchy = 'created_at'

    def has_change_permission(self, request, obj=None):
        return False
