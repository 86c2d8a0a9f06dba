from django.contrib.auth import get_user_model, password_validation
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from core.models import AuditLog, Branch, StoreSettings

User = get_user_model()


class UserRegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)
    email = serializers.EmailField()

    class Meta:
        model = User
        fields = ["id", "username", "email", "password", "first_name", "last_name", "date_joined"]
        read_only_fields = ["id", "date_joined"]

    def validate_email(self, value):
        normalized_email = value.strip().lower()
        if User.objects.filter(email__iexact=normalized_email).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return normalized_email

    def validate_password(self, value):
        password_validation.validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data["username"],
            email=validated_data["email"],
            password=validated_data["password"],
            first_name=validated_data.get("first_name", ""),
            last_name=validated_data.get("last_name", ""),
        )


class EmailOrUsernameTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["email"] = user.email
        token["name"] = user.get_full_name() or user.get_username()
        return token

    def validate(self, attrs):
        username = attrs.get("username", "")
        if username and "@" in username:
            user = User.objects.filter(email__iexact=username.strip()).first()
            if user is not None:
                attrs["username"] = user.get_username()
        return super().validate(attrs)


class BranchSerializer(serializers.ModelSerializer):
    class Meta:
        model = Branch
        fields = ["id", "owner", "name", "location", "size", "manager", "created_at", "updated_at"]
        read_only_fields = ["id", "owner", "created_at", "updated_at"]


class NotificationPreferencesSerializer(serializers.Serializer):
    low_stock_email = serializers.BooleanField(required=False)
    low_stock_sms = serializers.BooleanField(required=False)
    daily_sales_email = serializers.BooleanField(required=False)
    weekly_sales_email = serializers.BooleanField(required=False)


class StoreSettingsSerializer(serializers.ModelSerializer):
    notifications = NotificationPreferencesSerializer(source="*", required=False)
    tax_rate = serializers.DecimalField(max_digits=6, decimal_places=2, min_value=0, max_value=100, required=False)

    class Meta:
        model = StoreSettings
        fields = [
            "id",
            "owner",
            "tax_rate",
            "currency_symbol",
            "prices_include_tax",
            "admin_email",
            "notifications",
            "updated_at",
        ]
        read_only_fields = ["id", "owner", "updated_at"]

    def validate_admin_email(self, value):
        return (value or "").strip().lower()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if instance._state.adding:
            data["id"] = None
        return data


class AuditLogSerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source="actor.username", read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "actor",
            "actor_username",
            "action",
            "entity",
            "entity_id",
            "before_snapshot",
            "after_snapshot",
            "request_id",
            "created_at",
        ]
        read_only_fields = fields
