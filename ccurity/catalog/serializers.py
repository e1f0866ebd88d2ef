from decimal import Decimal

from rest_framework import serializers
from .models import Concept, ConceptCategory, ConceptPriceHistory, CollaboratorPrice


class ConceptSerializer(serializers.ModelSerializer):
    quotation_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Concept
        fields = ['id', 'title', 'description', 'format', 'category', 'price', 'sat_code', 'brand',
                  'model', 'warranty_months', 'execution_time', 'image_url', 'spec_sheet_url',
                  'is_active', 'quotation_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('El título es obligatorio.')
        return value

    def validate_category(self, value):
        return value.strip() or None if value else None


class ConceptPickerSerializer(serializers.ModelSerializer):
    """Lightweight row for the quotation builder"""
    class Meta:
        model = Concept
        fields = ['id', 'title', 'description', 'format', 'category', 'price', 'sat_code', 'brand', 'model']


class ConceptCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ConceptCategory
        fields = ['id', 'name', 'created_at']


class ConceptPriceHistorySerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(source='changed_by.display_name', read_only=True, default=None)

    class Meta:
        model = ConceptPriceHistory
        fields = ['id', 'concept', 'old_price', 'new_price', 'changed_by', 'changed_by_name', 'changed_at']


class CollaboratorPriceSerializer(serializers.ModelSerializer):
    concept_title = serializers.CharField(source='concept.title', read_only=True)
    concept_category = serializers.CharField(source='concept.category', read_only=True)
    concept_format = serializers.CharField(source='concept.format', read_only=True)
    concept_price = serializers.DecimalField(source='concept.price', max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = CollaboratorPrice
        fields = ['id', 'concept', 'concept_title', 'concept_category', 'concept_format', 'concept_price',
                  'custom_price', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_custom_price(self, value):
        if value is None or value.is_nan() or value < Decimal('0'):
            raise serializers.ValidationError('Precio inválido')
        return value
