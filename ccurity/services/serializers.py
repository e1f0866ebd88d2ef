from rest_framework import serializers
from .models import (
    ServiceType, ServiceState, Service, ServiceItem, ServiceReport, ServiceEvidence,
    ServiceApplication, ServiceTypeConcept,
)


class ServiceTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceType
        fields = ['id', 'name', 'description', 'color', 'icon', 'is_active', 'order', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class ServiceStateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceState
        fields = ['id', 'name', 'description', 'color', 'is_final', 'is_active', 'created_at']
        read_only_fields = ['created_at']


class ServiceItemSerializer(serializers.ModelSerializer):
    concept_title = serializers.CharField(source='concept.title', read_only=True, default=None)
    concept_format = serializers.CharField(source='concept.format', read_only=True, default=None)
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = ServiceItem
        fields = ['id', 'service', 'concept', 'concept_title', 'concept_format', 'quantity', 'price',
                  'line_total', 'notes', 'created_at']
        read_only_fields = ['service', 'created_at']


class ServiceReportSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.display_name', read_only=True, default=None)

    class Meta:
        model = ServiceReport
        fields = ['id', 'service', 'work_performed', 'materials_used', 'photo_urls', 'notes',
                  'created_by', 'created_by_name', 'created_at']
        read_only_fields = ['service', 'created_by', 'created_at']

    def validate_photo_urls(self, value):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise serializers.ValidationError('photo_urls must be a list of URLs')
        return value


class ServiceEvidenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = ServiceEvidence
        fields = ['id', 'service', 'photo_url', 'caption', 'uploaded_by', 'created_at']
        read_only_fields = ['service', 'uploaded_by', 'created_at']


class ServiceSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.display_name', read_only=True, default=None)
    collaborator_name = serializers.CharField(source='collaborator.display_name', read_only=True, default=None)
    technician_name = serializers.CharField(source='technician.display_name', read_only=True, default=None)
    type_name = serializers.CharField(source='service_type.name', read_only=True, default=None)
    type_color = serializers.CharField(source='service_type.color', read_only=True, default=None)
    state_name = serializers.CharField(source='service_state.name', read_only=True, default=None)
    state_color = serializers.CharField(source='service_state.color', read_only=True, default=None)

    class Meta:
        model = Service
        fields = ['id', 'title', 'description', 'client', 'client_name', 'collaborator', 'collaborator_name',
                  'technician', 'technician_name', 'service_type', 'type_name', 'type_color',
                  'service_state', 'state_name', 'state_color', 'scheduled_date', 'completed_date',
                  'address', 'notes', 'created_at', 'updated_at']
        read_only_fields = ['completed_date', 'created_at', 'updated_at']


class ServiceDetailSerializer(ServiceSerializer):
    items = ServiceItemSerializer(many=True, read_only=True)
    reports = ServiceReportSerializer(many=True, read_only=True)
    evidence = ServiceEvidenceSerializer(many=True, read_only=True)
    pending_applications = serializers.SerializerMethodField()

    class Meta(ServiceSerializer.Meta):
        fields = ServiceSerializer.Meta.fields + ['items', 'reports', 'evidence', 'pending_applications']

    def get_pending_applications(self, obj):
        return obj.applications.filter(status=ServiceApplication.STATUS_PENDING).count()


class ServiceApplicationSerializer(serializers.ModelSerializer):
    collaborator_name = serializers.CharField(source='collaborator.display_name', read_only=True)
    collaborator_email = serializers.CharField(source='collaborator.email', read_only=True)
    service_title = serializers.CharField(source='service.title', read_only=True)
    service_description = serializers.CharField(source='service.description', read_only=True, default=None)

    class Meta:
        model = ServiceApplication
        fields = ['id', 'service', 'service_title', 'service_description', 'collaborator',
                  'collaborator_name', 'collaborator_email', 'status', 'message', 'created_at', 'updated_at']
        read_only_fields = ['service', 'collaborator', 'status', 'created_at', 'updated_at']


class ServiceTypeConceptSerializer(serializers.ModelSerializer):
    concept_title = serializers.CharField(source='concept.title', read_only=True)
    concept_category = serializers.CharField(source='concept.category', read_only=True, default=None)
    concept_format = serializers.CharField(source='concept.format', read_only=True)
    concept_price = serializers.DecimalField(source='concept.price', max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = ServiceTypeConcept
        fields = ['id', 'service_type', 'concept', 'concept_title', 'concept_category', 'concept_format',
                  'concept_price', 'default_quantity', 'created_at']
        read_only_fields = ['service_type', 'created_at']
        validators = []

    def validate_default_quantity(self, value):
        if value < 1:
            raise serializers.ValidationError('La cantidad debe ser al menos 1')
        return value
