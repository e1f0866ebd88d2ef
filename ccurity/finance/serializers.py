from decimal import Decimal

from rest_framework import serializers
from .models import ContractType, Contract, ContractToken, ContractSignature, ContractHistory, Invoice, Payment


class ContractTypeSerializer(serializers.ModelSerializer):
    service_type_name = serializers.CharField(source='service_type.name', read_only=True, default=None)

    class Meta:
        model = ContractType
        fields = ['id', 'service_type', 'service_type_name', 'name', 'description', 'is_active', 'order',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class ContractSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='user.display_name', read_only=True, default=None)
    client_email = serializers.CharField(source='user.email', read_only=True, default=None)
    contract_type_name = serializers.CharField(source='contract_type.name', read_only=True, default=None)

    class Meta:
        model = Contract
        fields = ['id', 'user', 'client_name', 'client_email', 'contract_type', 'contract_type_name',
                  'counterpart_role', 'title', 'description', 'status', 'start_date', 'end_date',
                  'file_url', 'signed_url', 'created_at', 'updated_at']
        read_only_fields = ['status', 'signed_url', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date cannot be before start date'})
        return attrs


class ContractSignatureSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContractSignature
        fields = ['id', 'selfie_url', 'ine_front_url', 'ine_back_url', 'signature_url',
                  'accepted_digital', 'accepted_content', 'ip_address', 'created_at']


class ContractTokenSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.display_name', read_only=True, default=None)
    is_signed = serializers.BooleanField(read_only=True)

    class Meta:
        model = ContractToken
        fields = ['id', 'contract', 'token', 'role', 'user', 'user_name', 'signed_at', 'is_signed', 'created_at']


class SigningPartySerializer(serializers.ModelSerializer):
    """Signing progress of one party, shown on the public page without its token"""
    user_name = serializers.CharField(source='user.display_name', read_only=True, default=None)
    is_signed = serializers.BooleanField(read_only=True)

    class Meta:
        model = ContractToken
        fields = ['role', 'user_name', 'signed_at', 'is_signed']


class ContractHistorySerializer(serializers.ModelSerializer):
    role = serializers.CharField(source='token.role', read_only=True, default=None)

    class Meta:
        model = ContractHistory
        fields = ['id', 'contract', 'token', 'role', 'action', 'ip_address', 'metadata', 'created_at']


class SignatureSubmitSerializer(serializers.Serializer):
    """Images arrive as base64 data URLs"""
    selfie = serializers.CharField()
    ine_front = serializers.CharField()
    ine_back = serializers.CharField()
    signature = serializers.CharField()
    accepted_digital = serializers.BooleanField()
    accepted_content = serializers.BooleanField()

    def validate(self, attrs):
        if not (attrs['accepted_digital'] and attrs['accepted_content']):
            raise serializers.ValidationError('Both acceptance checkboxes are required')
        return attrs


class PaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source='invoice.number', read_only=True)

    class Meta:
        model = Payment
        fields = ['id', 'invoice', 'invoice_number', 'amount', 'method', 'reference', 'paid_at', 'created_at']
        read_only_fields = ['invoice', 'created_at']


class InvoiceSerializer(serializers.ModelSerializer):
    client_name = serializers.CharField(source='user.display_name', read_only=True, default=None)
    service_title = serializers.CharField(source='service.title', read_only=True, default=None)
    amount_paid = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = ['id', 'service', 'service_title', 'user', 'client_name', 'number', 'subtotal', 'tax', 'total',
                  'amount_paid', 'status', 'due_date', 'paid_date', 'file_url', 'factura_pdf_url',
                  'factura_xml_url', 'created_at', 'updated_at']
        read_only_fields = ['number', 'total', 'paid_date', 'created_at', 'updated_at']

    def get_amount_paid(self, obj):
        return str(obj.amount_paid())

    def validate(self, attrs):
        for field in ('subtotal', 'tax'):
            if attrs.get(field) is not None and attrs[field] < Decimal('0'):
                raise serializers.ValidationError({field: 'Must be zero or greater'})
        return attrs


class InvoiceDetailSerializer(InvoiceSerializer):
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta(InvoiceSerializer.Meta):
        fields = InvoiceSerializer.Meta.fields + ['payments']


class ContractDetailSerializer(ContractSerializer):
    """Contract with the counterpart's invoices and their payments"""
    invoices = serializers.SerializerMethodField()
    tokens = ContractTokenSerializer(many=True, read_only=True)

    class Meta(ContractSerializer.Meta):
        fields = ContractSerializer.Meta.fields + ['invoices', 'tokens']

    def get_invoices(self, obj):
        if not obj.user_id:
            return []
        invoices = Invoice.objects.filter(user_id=obj.user_id).prefetch_related('payments')
        return InvoiceDetailSerializer(invoices, many=True).data
