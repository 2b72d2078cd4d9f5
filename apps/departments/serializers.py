from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Department


class DepartmentSerializer(serializers.ModelSerializer):
    member_count = serializers.SerializerMethodField(read_only=True)
    members = serializers.PrimaryKeyRelatedField(
        many=True, queryset=get_user_model().objects.all(), required=False
    )

    class Meta:
        model = Department
        fields = [
            "id",
            "name",
            "description",
            "head",
            "members",
            "member_count",
            "is_active",
            "contact_email",
            "contact_phone",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "member_count", "created_at", "updated_at"]

    def get_member_count(self, obj: Department) -> int:
        n = getattr(obj, "n_members", None)
        return n if n is not None else obj.member_count

    def validate_name(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Department name is required.")
        return value

    def create(self, validated_data):
        dept = super().create(validated_data)
        dept.ensure_head_is_member()
        return dept

    def update(self, instance, validated_data):
        dept = super().update(instance, validated_data)
        # A members=[...] replace may have dropped the head.
        dept.ensure_head_is_member()
        return dept


class MemberChangeSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=get_user_model().objects.all())
