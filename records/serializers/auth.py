from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from records.models import User
from records.serializers.fields import CleanCharField


class LoginSerializer(serializers.Serializer):
    """Username or e-mail plus password."""
    username = serializers.CharField(required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    password = serializers.CharField()

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v

    def validate(self, attrs):
        login = (attrs.get('username') or attrs.get('email') or '').strip()
        if not login:
            raise serializers.ValidationError({'username': 'Username or e-mail is required'})
        attrs['login'] = login
        return attrs


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=255)
    password = serializers.CharField(write_only=True)
    fullName = CleanCharField(max_length=100)
    role = serializers.ChoiceField(choices=[c for c, _ in User.ROLE_CHOICES], required=False)

    def validate_email(self, v):
        v = v.strip().lower()
        if User.objects.filter(username__iexact=v).exists() or User.objects.filter(email__iexact=v).exists():
            raise serializers.ValidationError('An account with this e-mail already exists')
        return v

    def validate_password(self, v):
        try:
            validate_password(v)
        except DjangoValidationError as e:
            raise serializers.ValidationError(e.messages)
        return v
