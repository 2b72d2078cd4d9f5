# apps/events/models.py
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Event(models.Model):
    STATUS_CHOICES = [
        ("upcoming", "Upcoming"),
        ("ongoing", "Ongoing"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    ]

    title = models.CharField(max_length=100)
    description = models.TextField()
    start = models.DateTimeField()
    end = models.DateTimeField()
    location = models.CharField(max_length=255)

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="organized_events",
    )
    department = models.ForeignKey(
        "departments.Department",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="events",
    )
    attendees = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="registered_events",
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="upcoming")
    max_attendees = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)]
    )
    registration_deadline = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["start"]),
            models.Index(fields=["status"]),
        ]
        constraints = [
            models.CheckConstraint(
                name="event_end_after_start",
                condition=Q(end__gt=F("start")),
            ),
        ]
        ordering = ["start", "id"]

    def __str__(self) -> str:
        return f"{self.title} @ {self.start:%Y-%m-%d %H:%M}"

    @property
    def duration_hours(self) -> int:
        return round((self.end - self.start).total_seconds() / 3600)

    def is_registration_open(self, now=None) -> bool:
        if self.status in {"completed", "cancelled"}:
            return False
        if self.registration_deadline:
            return (now or timezone.now()) < self.registration_deadline
        return True

    def is_full(self) -> bool:
        if self.max_attendees:
            return self.attendees.count() >= self.max_attendees
        return False


class Attendance(models.Model):
    STATUS_CHOICES = [
        ("present", "Present"),
        ("absent", "Absent"),
        ("late", "Late"),
        ("excused", "Excused"),
    ]
    CLOSING_STATUSES = {"absent", "excused"}

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="attendance_records")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="attendance_records",
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="present")
    check_in = models.DateTimeField(default=timezone.now)
    check_out = models.DateTimeField(null=True, blank=True)
    notes = models.CharField(max_length=500, blank=True, default="")
    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="attendance_marked",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(name="uniq_attendance_per_event", fields=["event", "user"]),
        ]
        indexes = [
            models.Index(fields=["user", "-check_in"]),
            models.Index(fields=["marked_by", "-check_in"]),
        ]
        ordering = ["-check_in", "id"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._loaded_status = self.status if self.pk else None

    def __str__(self) -> str:
        return f"{self.user} @ {self.event_id}: {self.status}"

    def clean(self):
        if self.check_out and self.check_in and self.check_out < self.check_in:
            raise ValidationError({"check_out": "Check-out must be after check-in."})

    def save(self, *args, **kwargs):
        # Absent/excused closes the record the moment the status flips.
        if self.status in self.CLOSING_STATUSES and self.status != self._loaded_status and not self.check_out:
            self.check_out = timezone.now()
            if self.check_in and self.check_out < self.check_in:
                self.check_out = self.check_in
            if kwargs.get("update_fields") is not None:
                kwargs["update_fields"] = {*kwargs["update_fields"], "check_out"}
        self.clean()
        super().save(*args, **kwargs)
        self._loaded_status = self.status

    @property
    def duration_minutes(self) -> int:
        if not (self.check_in and self.check_out):
            return 0
        return round((self.check_out - self.check_in).total_seconds() / 60)
