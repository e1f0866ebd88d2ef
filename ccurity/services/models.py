from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class ServiceType(models.Model):
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, null=True)
    color = models.CharField(max_length=20, default='#6B7280')
    icon = models.CharField(max_length=50, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'service_types'
        ordering = ['order', 'name']

    def __str__(self):
        return self.name


class ServiceState(models.Model):
    """Workflow state of a service (Levantamiento, Postulando, Asignado, ...)"""
    SURVEY = 'Levantamiento'
    BIDDING = 'Postulando'
    ASSIGNED = 'Asignado'
    IN_PROGRESS = 'En Proceso'
    COMPLETED = 'Completado'
    CANCELLED = 'Cancelado'

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, null=True)
    color = models.CharField(max_length=20, default='#6B7280')
    is_final = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'service_states'
        ordering = ['name']

    def __str__(self):
        return self.name


class Service(models.Model):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                               related_name='client_services')
    collaborator = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='collaborator_services')
    technician = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='technician_services')
    service_type = models.ForeignKey(ServiceType, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='services')
    service_state = models.ForeignKey(ServiceState, on_delete=models.SET_NULL, null=True, blank=True,
                                      related_name='services')
    scheduled_date = models.DateTimeField(blank=True, null=True)
    completed_date = models.DateTimeField(blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'services'
        ordering = ['-created_at']

    def __str__(self):
        return self.title

    @property
    def state_name(self):
        return self.service_state.name if self.service_state_id else None


class ServiceItem(models.Model):
    service = models.ForeignKey(Service, on_delete=models.CASCADE, related_name='items')
    concept = models.ForeignKey('catalog.Concept', on_delete=models.SET_NULL, null=True, blank=True,
                                related_name='service_items')
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'),
                                   validators=[MinValueValidator(Decimal('0.01'))])
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'service_items'
        ordering = ['id']

    @property
    def line_total(self):
        return self.quantity * self.price


class ServiceReport(models.Model):
    """Field report written after a visit"""
    service = models.ForeignKey(Service, on_delete=models.CASCADE, related_name='reports')
    work_performed = models.TextField()
    materials_used = models.TextField(blank=True, null=True)
    photo_urls = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='service_reports')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'service_reports'
        ordering = ['-created_at']


class ServiceEvidence(models.Model):
    service = models.ForeignKey(Service, on_delete=models.CASCADE, related_name='evidence')
    photo_url = models.URLField(max_length=500)
    caption = models.CharField(max_length=255, blank=True, null=True)
    uploaded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='service_evidence')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'service_evidence'
        ordering = ['-created_at']


class ServiceApplication(models.Model):
    """A collaborator bidding for a service that is open (Postulando)"""
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pendiente'),
        (STATUS_ACCEPTED, 'Aceptada'),
        (STATUS_REJECTED, 'Rechazada'),
    ]

    service = models.ForeignKey(Service, on_delete=models.CASCADE, related_name='applications')
    collaborator = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
                                     related_name='service_applications')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    message = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'service_applications'
        ordering = ['-created_at']
        unique_together = [['service', 'collaborator']]

    def __str__(self):
        return f"{self.collaborator_id} -> {self.service_id} ({self.status})"


class ServiceTypeConcept(models.Model):
    """Survey template line: a concept pre-loaded when a service of this type is surveyed"""
    service_type = models.ForeignKey(ServiceType, on_delete=models.CASCADE, related_name='template_concepts')
    concept = models.ForeignKey('catalog.Concept', on_delete=models.CASCADE, related_name='service_type_templates')
    default_quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'service_type_concepts'
        ordering = ['created_at', 'id']
        unique_together = [['service_type', 'concept']]
