from rest_framework import serializers

from .models import Message, MessageRecipient


class RecipientSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True)

    class Meta:
        model = MessageRecipient
        fields = ["user", "username", "is_read", "read_at", "is_starred", "is_deleted"]
        read_only_fields = fields


class MessageSerializer(serializers.ModelSerializer):
    sender_username = serializers.CharField(source="sender.username", read_only=True)
    recipients = RecipientSerializer(many=True, read_only=True)
    preview = serializers.CharField(read_only=True)
    reply_count = serializers.IntegerField(read_only=True)
    # the caller's own recipient entry, when they have one
    is_read = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "sender",
            "sender_username",
            "recipients",
            "subject",
            "body",
            "preview",
            "parent_message",
            "thread",
            "is_thread",
            "reply_count",
            "is_draft",
            "is_pinned",
            "is_starred",
            "labels",
            "scheduled_at",
            "metadata",
            "is_read",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_is_read(self, obj: Message):
        request = self.context.get("request")
        if request is None:
            return None
        if obj.sender_id == request.user.pk:
            return True
        entry = next((r for r in obj.recipients.all() if r.user_id == request.user.pk), None)
        return entry.is_read if entry else None


class SendMessageSerializer(serializers.Serializer):
    recipients = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    body = serializers.CharField(required=False, allow_blank=True, default="")
    is_draft = serializers.BooleanField(required=False, default=False)
    parent_message_id = serializers.IntegerField(required=False, allow_null=True)
    labels = serializers.ListField(child=serializers.CharField(max_length=50), required=False, default=list)
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True)
    metadata = serializers.JSONField(required=False, default=dict)


class UpdateMessageSerializer(serializers.Serializer):
    # sender fields
    subject = serializers.CharField(max_length=200, required=False, allow_blank=True)
    body = serializers.CharField(required=False, allow_blank=True)
    is_draft = serializers.BooleanField(required=False)
    is_pinned = serializers.BooleanField(required=False)
    labels = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    recipients = serializers.ListField(child=serializers.IntegerField(), required=False)
    # shared / recipient fields
    is_starred = serializers.BooleanField(required=False)
    is_read = serializers.BooleanField(required=False)
    is_deleted = serializers.BooleanField(required=False)
