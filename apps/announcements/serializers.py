from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.accounts.models import User
from apps.departments.models import Department

from .models import Announcement

ROLE_VALUES = [value for value, _ in User.ROLE_CHOICES]


class AnnouncementSerializer(serializers.ModelSerializer):
    target_roles = serializers.ListField(
        child=serializers.ChoiceField(choices=ROLE_VALUES), required=False
    )
    target_departments = serializers.PrimaryKeyRelatedField(
        many=True, queryset=Department.objects.all(), required=False
    )
    target_users = serializers.PrimaryKeyRelatedField(
        many=True, queryset=get_user_model().objects.all(), required=False
    )
    is_active = serializers.BooleanField(read_only=True)
    is_read = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Announcement
        fields = [
            "id",
            "title",
            "content",
            "author",
            "status",
            "priority",
            "start_date",
            "end_date",
            "is_pinned",
            "target_all",
            "target_roles",
            "target_departments",
            "target_users",
            "is_active",
            "is_read",
            "created_at",
            "updated_at",
        ]
        # status moves only through publish/archive
        read_only_fields = ["id", "author", "status", "is_active", "is_read", "created_at", "updated_at"]

    def get_is_read(self, obj: Announcement) -> bool:
        flag = getattr(obj, "read_by_caller", None)
        if flag is not None:
            return bool(flag)
        request = self.context.get("request")
        if request is None or not request.user.is_authenticated:
            return False
        return obj.is_read_by(request.user)

    def validate(self, attrs):
        def current(name, default=None):
            if name in attrs:
                return attrs[name]
            if self.instance is None:
                return default
            value = getattr(self.instance, name)
            return list(value.all()) if hasattr(value, "all") else value

        start = current("start_date")
        end = current("end_date")
        if start and end and end <= start:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})

        audience = [
            current("target_all", True),
            current("target_roles", []),
            current("target_departments", []),
            current("target_users", []),
        ]
        if not any(audience):
            raise serializers.ValidationError("At least one target audience must be specified.")
        return attrs

    def validate_target_roles(self, value):
        out = []
        for role in value:
            if role not in out:
                out.append(role)
        return out
