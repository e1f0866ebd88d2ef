import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


class QuotationTemplate(models.Model):
    """Visual template used to render a published quotation"""
    THEME_CHOICES = [
        ('light', 'Claro'),
        ('dark', 'Oscuro'),
    ]

    name = models.CharField(max_length=100)
    theme = models.CharField(max_length=10, choices=THEME_CHOICES, default='light')
    colors = models.JSONField(default=dict, blank=True)
    font_family = models.CharField(max_length=100, blank=True, null=True)
    logo_url = models.URLField(max_length=500, blank=True, null=True)
    header_config = models.JSONField(default=dict, blank=True)
    footer_config = models.JSONField(default=dict, blank=True)
    css_config = models.JSONField(default=dict, blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'quotation_templates'
        ordering = ['-is_default', 'name']

    def __str__(self):
        return self.name


class Quotation(models.Model):
    STATUS_DRAFT = 'DRAFT'
    STATUS_SENT = 'SENT'
    STATUS_ACCEPTED = 'ACCEPTED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_EXPIRED = 'EXPIRED'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Borrador'),
        (STATUS_SENT, 'Enviada'),
        (STATUS_ACCEPTED, 'Aceptada'),
        (STATUS_REJECTED, 'Rechazada'),
        (STATUS_EXPIRED, 'Expirada'),
    ]
    PAYMENT_TYPE_CHOICES = [
        ('one_time', 'Pago único'),
        ('recurring', 'Recurrente'),
    ]
    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pendiente'),
        ('paid', 'Pagado'),
        ('failed', 'Fallido'),
        ('refunded', 'Reembolsado'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                               related_name='quotations')
    title = models.CharField(max_length=255)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    valid_until = models.DateTimeField(blank=True, null=True)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, null=True)
    version = models.PositiveIntegerField(default=1)
    parent = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='versions')
    folio = models.CharField(max_length=50, blank=True, null=True)
    service_type = models.ForeignKey('services.ServiceType', on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='quotations')
    template = models.ForeignKey(QuotationTemplate, on_delete=models.SET_NULL, null=True, blank=True,
                                 related_name='quotations')
    payment_type = models.CharField(max_length=10, choices=PAYMENT_TYPE_CHOICES, default='one_time')
    terms_content = models.TextField(blank=True, null=True)
    privacy_notice = models.TextField(blank=True, null=True)
    published_token = models.CharField(max_length=64, unique=True, blank=True, null=True)
    published_at = models.DateTimeField(blank=True, null=True)
    stripe_product_id = models.CharField(max_length=100, blank=True, null=True)
    stripe_price_id = models.CharField(max_length=100, blank=True, null=True)
    stripe_payment_link_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    stripe_payment_link_url = models.URLField(max_length=500, blank=True, null=True)
    stripe_payment_intent_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUS_CHOICES, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'quotations'
        ordering = ['-created_at']

    def __str__(self):
        return self.folio or self.title

    @property
    def is_published(self):
        return bool(self.published_token)

    @property
    def root(self):
        return self.parent if self.parent_id else self

    def items_subtotal(self):
        return sum((item.quantity * item.unit_price for item in self.items.all()), Decimal('0'))


class QuotationTab(models.Model):
    """A named tab inside one of the three quotation sections"""
    SECTION_CHOICES = [
        ('equipos', 'Equipos'),
        ('materiales', 'Materiales'),
        ('mano_de_obra', 'Mano de obra'),
    ]

    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name='tabs')
    section = models.CharField(max_length=20, choices=SECTION_CHOICES)
    label = models.CharField(max_length=100)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'quotation_tabs'
        ordering = ['section', 'position', 'id']

    def __str__(self):
        return f"{self.section}: {self.label}"


class QuotationTabLink(models.Model):
    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name='tab_links')
    source_tab = models.ForeignKey(QuotationTab, on_delete=models.CASCADE, related_name='outgoing_links')
    target_tab = models.ForeignKey(QuotationTab, on_delete=models.CASCADE, related_name='incoming_links')

    class Meta:
        db_table = 'quotation_tab_links'


class QuotationItem(models.Model):
    """Quotation line; either a catalog concept or a custom free-text line"""
    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name='items')
    concept = models.ForeignKey('catalog.Concept', on_delete=models.SET_NULL, null=True, blank=True,
                                related_name='quotation_items')
    tab = models.ForeignKey(QuotationTab, on_delete=models.SET_NULL, null=True, blank=True, related_name='items')
    section = models.CharField(max_length=20, choices=QuotationTab.SECTION_CHOICES, blank=True, null=True)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, null=True)
    is_custom = models.BooleanField(default=False)
    custom_title = models.CharField(max_length=255, blank=True, null=True)
    custom_description = models.TextField(blank=True, null=True)
    custom_format = models.CharField(max_length=10, blank=True, null=True)
    custom_price = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)

    class Meta:
        db_table = 'quotation_items'
        ordering = ['id']

    def save(self, *args, **kwargs):
        self.total = (self.quantity or Decimal('0')) * (self.unit_price or Decimal('0'))
        super().save(*args, **kwargs)
