"""
Serializers for account endpoints.
"""
import re

from rest_framework import serializers

from .models import User
from .roles import Role

PHONE_PATTERN = re.compile(r'^\+?\d{10,15}$')


def validate_phone_number(value):
    phone = ''.join(value.split())
    if not PHONE_PATTERN.match(phone):
        raise serializers.ValidationError('Enter a valid phone number')
    return phone


class UserSerializer(serializers.ModelSerializer):
    """Public user representation (never exposes credentials)."""

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'phone', 'role', 'address', 'company_name',
            'is_phone_verified', 'is_email_verified', 'is_active', 'date_joined'
        ]
        read_only_fields = fields


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested user representation."""

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'phone']


class SignupSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=20)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    address = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_phone(self, value):
        return validate_phone_number(value)


class UserCreateSerializer(SignupSerializer):
    """Admin-only account creation for any role."""
    role = serializers.ChoiceField(choices=Role.choices)
    company_name = serializers.CharField(required=False, allow_blank=True, default='')


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    phone = serializers.CharField(required=False)
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        if not attrs.get('email') and not attrs.get('phone'):
            raise serializers.ValidationError('Email or phone is required')
        return attrs


class RefreshTokenSerializer(serializers.Serializer):
    refresh_token = serializers.CharField()


class OtpGenerateSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=20)

    def validate_phone(self, value):
        return validate_phone_number(value)


class OtpVerifySerializer(OtpGenerateSerializer):
    otp = serializers.RegexField(r'^\d{6}$')


def token_response(user, pair, message):
    return {
        'message': message,
        'user': UserSerializer(user).data,
        'access_token': pair.access_token,
        'refresh_token': pair.refresh_token,
    }
