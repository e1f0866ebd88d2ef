from django.conf import settings
from django.db import models


class Email(models.Model):
    DIRECTION_CHOICES = [
        ('inbound', 'Entrante'),
        ('outbound', 'Saliente'),
    ]
    STATUS_CHOICES = [
        ('draft', 'Borrador'),
        ('sent', 'Enviado'),
        ('delivered', 'Entregado'),
        ('bounced', 'Rebotado'),
        ('received', 'Recibido'),
        ('failed', 'Fallido'),
    ]
    FOLDER_CHOICES = [
        ('inbox', 'Bandeja de entrada'),
        ('sent', 'Enviados'),
        ('drafts', 'Borradores'),
        ('trash', 'Papelera'),
    ]

    resend_id = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    direction = models.CharField(max_length=10, choices=DIRECTION_CHOICES)
    from_address = models.CharField(max_length=255)
    to_addresses = models.JSONField(default=list, blank=True)
    cc = models.JSONField(default=list, blank=True)
    bcc = models.JSONField(default=list, blank=True)
    subject = models.CharField(max_length=500, blank=True)
    html_body = models.TextField(blank=True, null=True)
    text_body = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='draft')
    is_read = models.BooleanField(default=False)
    is_starred = models.BooleanField(default=False)
    folder = models.CharField(max_length=10, choices=FOLDER_CHOICES, default='inbox', db_index=True)
    sent_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                related_name='sent_emails')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'emails'
        ordering = ['-created_at']

    def __str__(self):
        return self.subject or '(Sin asunto)'
