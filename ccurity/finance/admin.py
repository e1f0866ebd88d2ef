from django.contrib import admin
from .models import ContractType, Contract, ContractToken, ContractSignature, ContractHistory, Invoice, Payment


class ContractTokenInline(admin.TabularInline):
    model = ContractToken
    extra = 0
    readonly_fields = ['token', 'signed_at']


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(ContractType)
class ContractTypeAdmin(admin.ModelAdmin):
    list_display = ['name', 'service_type', 'is_active', 'order']
    list_filter = ['is_active']


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'contract_type', 'counterpart_role', 'status', 'start_date', 'end_date']
    list_filter = ['status', 'counterpart_role']
    search_fields = ['title', 'user__full_name', 'user__email']
    inlines = [ContractTokenInline]


@admin.register(ContractHistory)
class ContractHistoryAdmin(admin.ModelAdmin):
    list_display = ['contract', 'action', 'token', 'ip_address', 'created_at']
    list_filter = ['action']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['number', 'user', 'total', 'status', 'due_date', 'paid_date']
    list_filter = ['status']
    search_fields = ['number', 'user__full_name']
    inlines = [PaymentInline]


admin.site.register(ContractSignature)
