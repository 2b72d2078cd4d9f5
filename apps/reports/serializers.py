from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.accounts.models import User

from .models import Report, ReportTemplate
from .scheduling import FREQUENCIES, InvalidScheduleError, ScheduleSpec

ROLE_VALUES = [value for value, _ in User.ROLE_CHOICES]


class ScheduleSerializer(serializers.Serializer):
    """Flat schedule_* model fields, exposed as one nested object."""

    frequency = serializers.ChoiceField(
        source="schedule_frequency", choices=FREQUENCIES, allow_blank=True, required=False
    )
    day_of_week = serializers.IntegerField(
        source="schedule_day_of_week", min_value=0, max_value=6, allow_null=True, required=False,
        help_text="0 = Sunday ... 6 = Saturday",
    )
    day_of_month = serializers.IntegerField(
        source="schedule_day_of_month", min_value=1, max_value=31, allow_null=True, required=False
    )
    time_of_day = serializers.CharField(source="schedule_time", max_length=5, allow_blank=True, required=False)
    timezone = serializers.CharField(source="schedule_timezone", max_length=64, required=False)
    active = serializers.BooleanField(source="schedule_active", required=False)
    next_run = serializers.DateTimeField(read_only=True)
    last_run = serializers.DateTimeField(read_only=True)


class ReportSerializer(serializers.ModelSerializer):
    schedule = ScheduleSerializer(source="*", required=False)
    recipient_users = serializers.PrimaryKeyRelatedField(
        many=True, queryset=get_user_model().objects.all(), required=False
    )
    recipient_roles = serializers.ListField(child=serializers.ChoiceField(choices=ROLE_VALUES), required=False)
    recipient_emails = serializers.ListField(child=serializers.EmailField(), required=False)
    template = serializers.PrimaryKeyRelatedField(
        queryset=ReportTemplate.objects.active(), required=False, allow_null=True
    )
    download_url = serializers.CharField(read_only=True, allow_null=True)

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "description",
            "type",
            "format",
            "status",
            "filters",
            "template",
            "schedule",
            "generated_by",
            "file_size",
            "mime_type",
            "error",
            "metadata",
            "is_public",
            "recipient_users",
            "recipient_roles",
            "recipient_emails",
            "download_url",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "status",
            "generated_by",
            "file_size",
            "mime_type",
            "error",
            "metadata",
            "download_url",
            "created_at",
            "updated_at",
        ]
        extra_kwargs = {"title": {"required": False}, "type": {"required": False}}

    def validate_title(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Report title is required.")
        return value

    def validate_filters(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Filters must be an object.")
        return value

    def validate_recipient_emails(self, value):
        return sorted({e.strip().lower() for e in value})

    def validate_template(self, value):
        request = self.context.get("request")
        if value is not None and request is not None:
            if not ReportTemplate.objects.visible_to(request.user).filter(pk=value.pk).exists():
                raise serializers.ValidationError("Unknown template.")
        return value

    def _apply_template(self, attrs):
        """New reports take name, type and format from their template unless given."""
        template = attrs.get("template")
        if self.instance is not None:
            return
        if template is not None:
            attrs.setdefault("title", template.name)
            attrs.setdefault("type", template.type)
            if "format" not in self.initial_data:
                attrs["format"] = template.format
        errors = {f: "This field is required." for f in ("title", "type") if not attrs.get(f)}
        if errors:
            raise serializers.ValidationError(errors)

    def validate(self, attrs):
        self._apply_template(attrs)

        def current(name, default=None):
            if name in attrs:
                return attrs[name]
            return getattr(self.instance, name, default) if self.instance is not None else default

        frequency = current("schedule_frequency", "")
        if frequency:
            spec = ScheduleSpec(
                frequency=frequency,
                time_of_day=current("schedule_time", ""),
                day_of_week=current("schedule_day_of_week"),
                day_of_month=current("schedule_day_of_month"),
                timezone=current("schedule_timezone", "UTC") or "UTC",
                active=current("schedule_active", True),
            )
            try:
                spec.validate()
            except InvalidScheduleError as e:
                raise serializers.ValidationError({"schedule": [str(e)]})
        return attrs


class ReportTemplateSerializer(serializers.ModelSerializer):
    tags = serializers.ListField(child=serializers.CharField(max_length=40), required=False)

    class Meta:
        model = ReportTemplate
        fields = [
            "id",
            "name",
            "description",
            "type",
            "format",
            "layout",
            "default_filters",
            "tags",
            "is_public",
            "is_active",
            "version",
            "created_by",
            "updated_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["version", "created_by", "updated_by", "created_at", "updated_at"]

    def validate_name(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise serializers.ValidationError("Template name is required.")
        return value

    def validate_layout(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Layout must be an object.")
        columns = value.get("columns")
        if columns is not None and (
            not isinstance(columns, list) or not all(isinstance(c, str) for c in columns)
        ):
            raise serializers.ValidationError("Layout columns must be a list of column names.")
        return value

    def validate_default_filters(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Default filters must be an object.")
        return value
