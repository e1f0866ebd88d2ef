from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class ConceptCategory(models.Model):
    """Named bucket for catalog concepts"""
    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'concept_categories'
        ordering = ['name']
        verbose_name_plural = 'concept categories'

    def __str__(self):
        return self.name


class Concept(models.Model):
    """CPU catalog entry: an equipment, material or labour concept with a list price"""
    FORMAT_CHOICES = [
        ('ml', 'Metro lineal'),
        ('pza', 'Pieza'),
        ('m2', 'Metro cuadrado'),
        ('unidad', 'Unidad'),
    ]

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    format = models.CharField(max_length=10, choices=FORMAT_CHOICES, default='pza')
    # Free text; ConceptCategory only keeps the list of known names
    category = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'),
                                validators=[MinValueValidator(Decimal('0.00'))])
    sat_code = models.CharField(max_length=50, blank=True, null=True)
    brand = models.CharField(max_length=100, blank=True, null=True)
    model = models.CharField(max_length=100, blank=True, null=True)
    warranty_months = models.PositiveIntegerField(blank=True, null=True)
    execution_time = models.CharField(max_length=100, blank=True, null=True)
    image_url = models.URLField(max_length=500, blank=True, null=True)
    spec_sheet_url = models.URLField(max_length=500, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'concepts'
        ordering = ['category', 'title']

    def __str__(self):
        return self.title


class ConceptPriceHistory(models.Model):
    """One row per effective price change of a concept"""
    concept = models.ForeignKey(Concept, on_delete=models.CASCADE, related_name='price_history')
    old_price = models.DecimalField(max_digits=12, decimal_places=2)
    new_price = models.DecimalField(max_digits=12, decimal_places=2)
    changed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='concept_price_changes')
    changed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'concept_price_history'
        ordering = ['-changed_at', '-id']

    def __str__(self):
        return f"{self.concept_id}: {self.old_price} -> {self.new_price}"


class CollaboratorPrice(models.Model):
    """A collaborator's own price for a catalog concept"""
    collaborator = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='concept_prices')
    concept = models.ForeignKey(Concept, on_delete=models.CASCADE, related_name='collaborator_prices')
    custom_price = models.DecimalField(max_digits=12, decimal_places=2,
                                       validators=[MinValueValidator(Decimal('0.00'))])
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'collaborator_prices'
        ordering = ['-updated_at']
        unique_together = [['collaborator', 'concept']]

    def __str__(self):
        return f"{self.collaborator_id} / {self.concept_id}: {self.custom_price}"
