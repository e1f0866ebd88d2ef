import secrets
from decimal import Decimal

from django.conf import settings
from django.db import models


def generate_contract_token():
    return secrets.token_hex(16)


class ContractType(models.Model):
    service_type = models.ForeignKey('services.ServiceType', on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='contract_types')
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'contract_types'
        ordering = ['order', 'name']

    def __str__(self):
        return self.name


class Contract(models.Model):
    STATUS_DRAFT = 'DRAFT'
    STATUS_PENDING_SIGNATURE = 'PENDING_SIGNATURE'
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Borrador'),
        (STATUS_PENDING_SIGNATURE, 'Pendiente de firma'),
        (STATUS_ACTIVE, 'Activo'),
        (STATUS_COMPLETED, 'Completado'),
        (STATUS_CANCELLED, 'Cancelado'),
    ]
    ROLE_CLIENT = 'CLIENT'
    ROLE_PROVIDER = 'PROVIDER'
    ROLE_CHOICES = [
        (ROLE_CLIENT, 'Cliente'),
        (ROLE_PROVIDER, 'Proveedor'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='contracts')
    contract_type = models.ForeignKey(ContractType, on_delete=models.SET_NULL, null=True, blank=True,
                                      related_name='contracts')
    counterpart_role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_CLIENT)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    start_date = models.DateField(blank=True, null=True)
    end_date = models.DateField(blank=True, null=True)
    file_url = models.URLField(max_length=500, blank=True, null=True)
    signed_url = models.URLField(max_length=500, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'contracts'
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class ContractToken(models.Model):
    """Per-party signing link of a contract"""
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name='tokens')
    token = models.CharField(max_length=32, unique=True, default=generate_contract_token)
    role = models.CharField(max_length=10, choices=Contract.ROLE_CHOICES)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='contract_tokens')
    signed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'contract_tokens'
        ordering = ['role']

    def __str__(self):
        return f"{self.contract_id}:{self.role}"

    @property
    def is_signed(self):
        return self.signed_at is not None


class ContractSignature(models.Model):
    token = models.OneToOneField(ContractToken, on_delete=models.CASCADE, related_name='signature')
    selfie_url = models.CharField(max_length=500)
    ine_front_url = models.CharField(max_length=500)
    ine_back_url = models.CharField(max_length=500)
    signature_url = models.CharField(max_length=500)
    accepted_digital = models.BooleanField(default=False)
    accepted_content = models.BooleanField(default=False)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'contract_signatures'


class ContractHistory(models.Model):
    ACTION_VIEW = 'VIEW'
    ACTION_SIGN = 'SIGN'
    ACTION_COMMENT = 'COMMENT'
    ACTION_MODIFY = 'MODIFY'
    ACTION_SEND = 'SEND'
    ACTION_CHOICES = [
        (ACTION_VIEW, 'Visto'),
        (ACTION_SIGN, 'Firmado'),
        (ACTION_COMMENT, 'Comentario'),
        (ACTION_MODIFY, 'Modificado'),
        (ACTION_SEND, 'Enviado'),
    ]

    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name='history')
    token = models.ForeignKey(ContractToken, on_delete=models.SET_NULL, null=True, blank=True,
                              related_name='history')
    action = models.CharField(max_length=10, choices=ACTION_CHOICES)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'contract_history'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'contract history'


class Invoice(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pendiente'),
        (STATUS_PAID, 'Pagada'),
        (STATUS_OVERDUE, 'Vencida'),
        (STATUS_CANCELLED, 'Cancelada'),
    ]

    service = models.ForeignKey('services.Service', on_delete=models.SET_NULL, null=True, blank=True,
                                related_name='invoices')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='invoices')
    number = models.CharField(max_length=30, unique=True)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    due_date = models.DateField(blank=True, null=True)
    paid_date = models.DateField(blank=True, null=True)
    file_url = models.URLField(max_length=500, blank=True, null=True)
    factura_pdf_url = models.URLField(max_length=500, blank=True, null=True)
    factura_xml_url = models.URLField(max_length=500, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'invoices'
        ordering = ['-created_at']

    def __str__(self):
        return self.number

    def amount_paid(self):
        return self.payments.aggregate(total=models.Sum('amount'))['total'] or Decimal('0.00')


class Payment(models.Model):
    METHOD_CHOICES = [
        ('transfer', 'Transferencia'),
        ('cash', 'Efectivo'),
        ('card', 'Tarjeta'),
        ('check', 'Cheque'),
        ('stripe', 'Stripe'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='transfer')
    reference = models.CharField(max_length=100, blank=True, null=True)
    paid_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-paid_at']

    def __str__(self):
        return f"{self.invoice_id}: {self.amount}"
