# apps/events/serializers.py
from __future__ import annotations

from rest_framework import serializers

from .models import Attendance, Event


class EventSerializer(serializers.ModelSerializer):
    # Computed so clients don't do date math or count attendees themselves.
    duration_hours = serializers.SerializerMethodField(read_only=True)
    attendee_count = serializers.SerializerMethodField(read_only=True)
    registration_open = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Event
        fields = [
            "id",
            "title",
            "description",
            "start",
            "end",
            "location",
            "organizer",
            "department",
            "status",
            "max_attendees",
            "registration_deadline",
            "attendee_count",
            "registration_open",
            "duration_hours",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "organizer", "created_at", "updated_at"]

    def get_duration_hours(self, obj: Event) -> int:
        return obj.duration_hours

    def get_attendee_count(self, obj: Event) -> int:
        n = getattr(obj, "n_attendees", None)
        return n if n is not None else obj.attendees.count()

    def get_registration_open(self, obj: Event) -> bool:
        return obj.is_registration_open()

    def validate(self, attrs):
        start = attrs.get("start", getattr(self.instance, "start", None))
        end = attrs.get("end", getattr(self.instance, "end", None))
        if start and end and end <= start:
            raise serializers.ValidationError({"end": "End must be after start."})
        deadline = attrs.get("registration_deadline")
        if deadline and end and deadline > end:
            raise serializers.ValidationError(
                {"registration_deadline": "Registration must close before the event ends."}
            )
        return attrs


class AttendeeSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()
    display_name = serializers.CharField(allow_blank=True)
    email = serializers.EmailField(allow_blank=True)


class AttendanceSerializer(serializers.ModelSerializer):
    duration_minutes = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = Attendance
        fields = [
            "id",
            "event",
            "user",
            "status",
            "check_in",
            "check_out",
            "notes",
            "marked_by",
            "duration_minutes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "marked_by", "duration_minutes", "created_at", "updated_at"]

    def get_duration_minutes(self, obj: Attendance) -> int:
        return obj.duration_minutes

    def validate(self, attrs):
        check_in = attrs.get("check_in", getattr(self.instance, "check_in", None))
        check_out = attrs.get("check_out", getattr(self.instance, "check_out", None))
        if check_in and check_out and check_out < check_in:
            raise serializers.ValidationError({"check_out": "Check-out must be after check-in."})
        if self.instance is not None:
            # Records are keyed by (event, user); moving them is a new record.
            for field in ("event", "user"):
                if field in attrs and attrs[field] != getattr(self.instance, field):
                    raise serializers.ValidationError({field: "Cannot be changed once recorded."})
        return attrs


class AttendanceSummarySerializer(serializers.Serializer):
    event = serializers.IntegerField()
    registered = serializers.IntegerField()
    recorded = serializers.IntegerField()
    present = serializers.IntegerField()
    late = serializers.IntegerField()
    absent = serializers.IntegerField()
    excused = serializers.IntegerField()
    attendance_rate = serializers.FloatField()
