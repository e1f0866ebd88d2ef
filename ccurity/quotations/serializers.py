from decimal import Decimal

from rest_framework import serializers
from ccurity.core.serializers import CompanySettingsSerializer
from .models import Quotation, QuotationTab, QuotationTabLink, QuotationItem, QuotationTemplate


class QuotationTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuotationTemplate
        fields = ['id', 'name', 'theme', 'colors', 'font_family', 'logo_url', 'header_config',
                  'footer_config', 'css_config', 'is_default', 'created_at']


class QuotationTabSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuotationTab
        fields = ['id', 'section', 'label', 'position']


class QuotationTabLinkSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuotationTabLink
        fields = ['id', 'source_tab', 'target_tab']


class QuotationItemSerializer(serializers.ModelSerializer):
    concept_title = serializers.CharField(source='concept.title', read_only=True, default=None)
    concept_format = serializers.CharField(source='concept.format', read_only=True, default=None)
    concept_category = serializers.CharField(source='concept.category', read_only=True, default=None)

    class Meta:
        model = QuotationItem
        fields = ['id', 'concept', 'concept_title', 'concept_format', 'concept_category', 'tab', 'section',
                  'quantity', 'unit_price', 'total', 'notes', 'is_custom', 'custom_title',
                  'custom_description', 'custom_format', 'custom_price']


class QuotationSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='client.display_name', read_only=True, default=None)
    client_email = serializers.CharField(source='client.email', read_only=True, default=None)
    service_type_name = serializers.CharField(source='service_type.name', read_only=True, default=None)
    is_published = serializers.BooleanField(read_only=True)

    class Meta:
        model = Quotation
        fields = ['id', 'folio', 'title', 'client', 'client_name', 'client_email', 'status', 'valid_until',
                  'subtotal', 'tax', 'total', 'notes', 'version', 'parent', 'service_type', 'service_type_name',
                  'template', 'payment_type', 'terms_content', 'privacy_notice', 'published_token',
                  'published_at', 'is_published', 'stripe_payment_link_url', 'payment_status',
                  'created_at', 'updated_at']
        read_only_fields = fields


class QuotationDetailSerializer(QuotationSerializer):
    items = QuotationItemSerializer(many=True, read_only=True)
    tabs = QuotationTabSerializer(many=True, read_only=True)
    tab_links = QuotationTabLinkSerializer(many=True, read_only=True)
    template_detail = QuotationTemplateSerializer(source='template', read_only=True, default=None)

    class Meta(QuotationSerializer.Meta):
        fields = QuotationSerializer.Meta.fields + ['items', 'tabs', 'tab_links', 'template_detail']
        read_only_fields = fields


class PublicQuotationSerializer(QuotationDetailSerializer):
    """What an anonymous visitor of /cotizacion/<token> may see"""
    company = serializers.SerializerMethodField()

    class Meta(QuotationDetailSerializer.Meta):
        fields = [f for f in QuotationDetailSerializer.Meta.fields if f not in ('client', 'parent')] + ['company']
        read_only_fields = fields

    def get_company(self, obj):
        return CompanySettingsSerializer(self.context.get('company')).data if self.context.get('company') else None


# Builder payload
class TabInputSerializer(serializers.Serializer):
    temp_id = serializers.CharField()
    section = serializers.ChoiceField(choices=QuotationTab.SECTION_CHOICES)
    label = serializers.CharField(max_length=100)
    position = serializers.IntegerField(min_value=0, default=0)


class ItemInputSerializer(serializers.Serializer):
    concept = serializers.IntegerField(required=False, allow_null=True)
    tab = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    section = serializers.ChoiceField(choices=QuotationTab.SECTION_CHOICES, required=False, allow_null=True)
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    is_custom = serializers.BooleanField(default=False)
    custom_title = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=255)
    custom_description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    custom_format = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=10)
    custom_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)

    def validate(self, attrs):
        if attrs.get('is_custom'):
            if not (attrs.get('custom_title') or '').strip():
                raise serializers.ValidationError({'custom_title': 'Custom items need a title'})
            attrs['concept'] = None
        elif not attrs.get('concept'):
            raise serializers.ValidationError({'concept': 'Concept is required for catalog items'})
        return attrs


class LinkInputSerializer(serializers.Serializer):
    source = serializers.CharField()
    target = serializers.CharField()


class QuotationCreateSerializer(serializers.Serializer):
    client = serializers.IntegerField(required=False, allow_null=True)
    title = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    valid_days = serializers.IntegerField(min_value=1, default=30)
    service_type = serializers.IntegerField(required=False, allow_null=True)
    template = serializers.IntegerField(required=False, allow_null=True)
    payment_type = serializers.ChoiceField(choices=Quotation.PAYMENT_TYPE_CHOICES, default='one_time')
    terms_content = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    privacy_notice = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    tabs = TabInputSerializer(many=True, required=False, default=list)
    items = ItemInputSerializer(many=True, required=False, default=list)
    links = LinkInputSerializer(many=True, required=False, default=list)
