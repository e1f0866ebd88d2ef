from rest_framework import serializers
from .models import Email


class EmailSerializer(serializers.ModelSerializer):
    sent_by_name = serializers.CharField(source='sent_by.display_name', read_only=True, default=None)

    class Meta:
        model = Email
        fields = ['id', 'resend_id', 'direction', 'from_address', 'to_addresses', 'cc', 'bcc', 'subject',
                  'html_body', 'text_body', 'status', 'is_read', 'is_starred', 'folder', 'sent_by',
                  'sent_by_name', 'created_at', 'updated_at']
        read_only_fields = fields


class AddressListField(serializers.Field):
    """Accepts a single address, a comma separated string or a list"""

    def to_internal_value(self, data):
        if data in (None, ''):
            return []
        if isinstance(data, str):
            data = data.split(',')
        if not isinstance(data, (list, tuple)):
            raise serializers.ValidationError('Expected an address or a list of addresses')
        addresses = [str(item).strip() for item in data if str(item).strip()]
        validator = serializers.EmailField()
        for address in addresses:
            # "Name <addr>" is accepted as-is
            if '<' not in address:
                validator.run_validation(address)
        return addresses

    def to_representation(self, value):
        return value


class SendEmailSerializer(serializers.Serializer):
    to = AddressListField()
    cc = AddressListField(required=False, default=list)
    bcc = AddressListField(required=False, default=list)
    subject = serializers.CharField(max_length=500)
    html = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    text = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    from_address = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    reply_to = AddressListField(required=False, default=list)

    def to_internal_value(self, data):
        # The mail composer posts camelCase replyTo
        if hasattr(data, 'get') and 'reply_to' not in data and data.get('replyTo') is not None:
            data = {**data, 'reply_to': data.get('replyTo')}
        return super().to_internal_value(data)

    def validate_to(self, value):
        if not value:
            raise serializers.ValidationError('At least one recipient is required')
        return value
