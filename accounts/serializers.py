from rest_framework import serializers

from core.utils import PHONE_NUMBER_RE

from .models import Profile, UserRole

PHONE_NUMBER_ERROR = "Phone number must be 10 digits starting with 0 (e.g. 0712345678)."


class PhoneNumberField(serializers.RegexField):
    def __init__(self, **kwargs):
        kwargs.setdefault('error_messages', {'invalid': PHONE_NUMBER_ERROR})
        super().__init__(PHONE_NUMBER_RE, **kwargs)


class PhoneNumberSerializer(serializers.Serializer):
    phone_number = PhoneNumberField()


class LoginSerializer(serializers.Serializer):
    phone_number = PhoneNumberField(required=False)
    email = serializers.EmailField(required=False)
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    tenant = serializers.CharField(required=False, allow_blank=True)

    def validate(self, data):
        if not data.get('phone_number') and not data.get('email'):
            raise serializers.ValidationError("Provide a phone number or an email.")
        return data


class SignupSerializer(serializers.Serializer):
    business_name = serializers.CharField(max_length=200)
    full_name = serializers.CharField(max_length=200)
    phone_number = PhoneNumberField()
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    password = serializers.CharField(min_length=6, max_length=255, write_only=True, trim_whitespace=False)


class CreateClientUserSerializer(serializers.Serializer):
    """Body of POST /api/functions/create-client-user/"""
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(min_length=6, max_length=255, trim_whitespace=False)
    phoneNumber = PhoneNumberField()
    tenantId = serializers.UUIDField()
    metadata = serializers.DictField(required=False, default=dict)


class TransactionSmsSerializer(serializers.Serializer):
    """Body of POST /api/functions/send-transaction-sms/"""
    TYPE_CHOICES = ['sale', 'payment']

    clientId = serializers.IntegerField()
    type = serializers.ChoiceField(choices=TYPE_CHOICES)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    invoiceNumber = serializers.CharField(required=False, allow_blank=True)
    productName = serializers.CharField(required=False, allow_blank=True)
    newBalance = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)


class ProfileSerializer(serializers.ModelSerializer):
    email = serializers.EmailField(source='user.email', read_only=True)
    role = serializers.SerializerMethodField()
    tenant_name = serializers.CharField(source='tenant.business_name', read_only=True)

    class Meta:
        model = Profile
        fields = ['id', 'full_name', 'phone_number', 'email', 'role', 'tenant', 'tenant_name', 'created_at']
        read_only_fields = fields

    def get_role(self, obj):
        return UserRole.primary_role(obj.user)
