from django.contrib import admin
from .models import (
    ServiceType, ServiceState, Service, ServiceItem, ServiceReport, ServiceEvidence,
    ServiceApplication, ServiceTypeConcept,
)


class ServiceItemInline(admin.TabularInline):
    model = ServiceItem
    extra = 0


class ServiceTypeConceptInline(admin.TabularInline):
    model = ServiceTypeConcept
    extra = 0


@admin.register(ServiceType)
class ServiceTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'color', 'is_active', 'order']
    list_filter = ['is_active']
    inlines = [ServiceTypeConceptInline]


@admin.register(ServiceState)
class ServiceStateAdmin(admin.ModelAdmin):
    list_display = ['name', 'color', 'is_final', 'is_active']


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ['title', 'client', 'collaborator', 'service_type', 'service_state', 'scheduled_date', 'created_at']
    list_filter = ['service_state', 'service_type']
    search_fields = ['title', 'address', 'client__full_name']
    inlines = [ServiceItemInline]


@admin.register(ServiceApplication)
class ServiceApplicationAdmin(admin.ModelAdmin):
    list_display = ['service', 'collaborator', 'status', 'created_at']
    list_filter = ['status']


admin.site.register(ServiceReport)
admin.site.register(ServiceEvidence)
