from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed

from .models import CustomUser


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Serializer for user login and token generation.

    Fields:
        - email (required)
        - password (required)
    Adds the account type to the token so clients can route posters and workers.
    """
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['account_type'] = user.account_type
        return token

    def validate(self, attrs):
        user = CustomUser.objects.filter(email=attrs.get('email')).first()
        if user is not None and not user.is_active:
            raise AuthenticationFailed("Your account is deactivated.")
        return super().validate(attrs)


class UserSummarySerializer(serializers.ModelSerializer):
    """
    Serializer for lightweight user references.

    Used when embedding poster/worker details in job and application payloads.
    """
    class Meta:
        model = CustomUser
        fields = ['id', 'first_name', 'last_name', 'email', 'account_type']
        read_only_fields = fields


class ConnectStatusSerializer(serializers.ModelSerializer):
    can_receive_payouts = serializers.BooleanField(read_only=True)

    class Meta:
        model = CustomUser
        fields = ['stripe_connect_account_id', 'connect_account_status', 'connect_status_checked_at', 'can_receive_payouts']
        read_only_fields = fields


class ConnectOnboardingSerializer(serializers.Serializer):
    stripe_connect_account_id = serializers.CharField(read_only=True)
    connect_account_status = serializers.CharField(read_only=True)
    url = serializers.URLField(read_only=True)
    expires_at = serializers.IntegerField(read_only=True, allow_null=True)
