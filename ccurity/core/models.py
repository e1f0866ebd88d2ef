from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Platform user; the role decides which area of the app it can reach"""
    ROLE_ADMIN = 'ADMIN'
    ROLE_SUPER = 'SUPER'
    ROLE_COLAB = 'COLAB'
    ROLE_CLIENT = 'CLIENT'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrador'),
        (ROLE_SUPER, 'Supervisor'),
        (ROLE_COLAB, 'Colaborador'),
        (ROLE_CLIENT, 'Cliente'),
    ]

    full_name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    company = models.CharField(max_length=200, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    avatar_url = models.URLField(max_length=500, blank=True, null=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_CLIENT, db_index=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.full_name or self.username

    @property
    def display_name(self):
        return self.full_name or self.email or self.username


class CompanySettings(models.Model):
    """Company profile shown on quotations and contracts (single row)"""
    name = models.CharField(max_length=200, default='Ccurity')
    legal_name = models.CharField(max_length=255, blank=True)
    rfc = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    logo_url = models.URLField(max_length=500, blank=True)
    website = models.URLField(max_length=255, blank=True)
    privacy_notice = models.TextField(blank=True)
    default_terms = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'company_settings'
        verbose_name_plural = 'company settings'

    def __str__(self):
        return self.name

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(pk=1)
        return obj


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('status_change', 'Status Change'),
        ('price_change', 'Price Change'),
        ('role_change', 'Role Change'),
        ('invite', 'Invite'),
        ('assign', 'Assign'),
        ('publish', 'Publish'),
        ('unpublish', 'Unpublish'),
        ('sign', 'Sign'),
        ('payment_add', 'Payment Added'),
        ('email_send', 'Email Sent'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., concept title, invoice number)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., folio, invoice number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_0f4a1c_idx'),
            models.Index(fields=['action'], name='audit_logs_action_7b2e90_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_3c81d2_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__9d5e47_idx'),
        ]

    def __str__(self):
        return f"{self.action} {self.model_name}#{self.object_id}"
