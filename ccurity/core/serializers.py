from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, CompanySettings, AuditLog


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'full_name', 'phone', 'company', 'address',
                  'avatar_url', 'role', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['username', 'created_at', 'updated_at']


class UserSummarySerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role']


class UserCreateSerializer(serializers.ModelSerializer):
    """Self-service sign up; only CLIENT and COLAB may be chosen"""
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(
        choices=[User.ROLE_CLIENT, User.ROLE_COLAB], default=User.ROLE_CLIENT, required=False
    )

    class Meta:
        model = User
        fields = ['email', 'password', 'password_confirm', 'full_name', 'phone', 'company', 'role']
        extra_kwargs = {'email': {'required': True, 'allow_blank': False}}

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Ya existe un usuario con este correo.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User(username=validated_data['email'], is_active=True, **validated_data)
        user.set_password(password)
        user.save()
        return user


class UserInviteSerializer(serializers.Serializer):
    email = serializers.EmailField()
    full_name = serializers.CharField(max_length=200)
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES, default=User.ROLE_CLIENT)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Ya existe un usuario con este correo.')
        return value

    def create(self, validated_data):
        user = User(username=validated_data['email'], is_active=True, **validated_data)
        user.set_unusable_password()
        user.save()
        return user


class InlineClientSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Ya existe un usuario con este correo.')
        return value

    def create(self, validated_data):
        user = User(
            username=validated_data['email'],
            email=validated_data['email'],
            full_name=validated_data['name'].strip(),
            phone=validated_data.get('phone') or None,
            role=User.ROLE_CLIENT,
            is_active=True,
        )
        user.set_unusable_password()
        user.save()
        return user


class CompanySettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompanySettings
        fields = ['id', 'name', 'legal_name', 'rfc', 'address', 'phone', 'email', 'logo_url',
                  'website', 'privacy_notice', 'default_terms', 'updated_at']
        read_only_fields = ['id', 'updated_at']


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
