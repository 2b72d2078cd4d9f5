from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "title",
            "message",
            "type",
            "related_type",
            "related_id",
            "is_read",
            "read_at",
            "action_url",
            "priority",
            "expires_at",
            "data",
            "created_at",
        ]
        # Only the read flag is writable from the API.
        read_only_fields = [f for f in fields if f != "is_read"]


class MarkReadSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    all = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs.get("all") and not attrs.get("ids"):
            raise serializers.ValidationError("Pass `ids` or `all: true`.")
        return attrs
