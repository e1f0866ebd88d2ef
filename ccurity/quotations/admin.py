from django.contrib import admin
from .models import Quotation, QuotationTab, QuotationTabLink, QuotationItem, QuotationTemplate


class QuotationItemInline(admin.TabularInline):
    model = QuotationItem
    extra = 0
    readonly_fields = ['total']


class QuotationTabInline(admin.TabularInline):
    model = QuotationTab
    extra = 0


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = ['folio', 'title', 'client', 'status', 'version', 'total', 'payment_status', 'created_at']
    list_filter = ['status', 'payment_status', 'payment_type']
    search_fields = ['folio', 'title', 'client__full_name']
    readonly_fields = ['published_token', 'published_at', 'stripe_product_id', 'stripe_price_id',
                       'stripe_payment_link_id', 'stripe_payment_intent_id']
    inlines = [QuotationTabInline, QuotationItemInline]


@admin.register(QuotationTemplate)
class QuotationTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'theme', 'is_default', 'created_at']


admin.site.register(QuotationTabLink)
