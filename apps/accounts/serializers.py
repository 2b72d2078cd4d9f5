from django.contrib.auth import password_validation
from rest_framework import serializers

from apps.rbac.utils import has_role

from .models import User


class CurrentUserSerializer(serializers.ModelSerializer):
    department_name = serializers.CharField(source="department.name", read_only=True, default=None)

    class Meta:
        model = User
        fields = ("id", "username", "email", "display_name", "role", "department", "department_name", "is_staff")
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """Directory/admin view of a user. Only admins may change `role` or `is_active`."""

    password = serializers.CharField(write_only=True, required=False, style={"input_type": "password"})

    class Meta:
        model = User
        fields = (
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "display_name",
            "role",
            "department",
            "is_active",
            "password",
            "date_joined",
            "last_login",
        )
        read_only_fields = ("id", "date_joined", "last_login")

    def _is_admin(self) -> bool:
        request = self.context.get("request")
        return bool(request) and has_role(request.user, "admin")

    def validate(self, attrs):
        if not self._is_admin():
            for field in ("role", "is_active"):
                if field in attrs and (self.instance is None or attrs[field] != getattr(self.instance, field)):
                    raise serializers.ValidationError({field: "Only administrators can change this field."})
        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "A password is required for new users."})
        if attrs.get("password"):
            password_validation.validate_password(attrs["password"], self.instance)
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        instance = super().update(instance, validated_data)
        if password:
            instance.set_password(password)
            instance.save(update_fields=["password"])
        return instance


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, style={"input_type": "password"})

    class Meta:
        model = User
        fields = ("id", "username", "email", "first_name", "last_name", "display_name", "password")
        read_only_fields = ("id",)
        extra_kwargs = {"email": {"required": True}}

    def validate_email(self, value: str) -> str:
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value

    def validate(self, attrs):
        candidate = User(username=attrs.get("username"), email=attrs.get("email"))
        password_validation.validate_password(attrs["password"], candidate)
        return attrs

    def create(self, validated_data):
        # Self-registration never grants an elevated role.
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, role="user", **validated_data)


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField(style={"input_type": "password"})
    new_password = serializers.CharField(style={"input_type": "password"})

    def validate_old_password(self, value):
        user = self.context["request"].user
        if not user.check_password(value):
            raise serializers.ValidationError("Current password is incorrect.")
        return value

    def validate(self, attrs):
        password_validation.validate_password(attrs["new_password"], self.context["request"].user)
        return attrs
