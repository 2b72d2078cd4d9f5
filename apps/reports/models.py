# apps/reports/models.py
import copy

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.urls import reverse

from apps.rbac.policy import REPORT_VIEWERS
from apps.rbac.utils import has_role

from .scheduling import FREQUENCIES, ScheduleSpec, next_run

SCHEDULE_FIELDS = (
    "schedule_frequency",
    "schedule_day_of_week",
    "schedule_day_of_month",
    "schedule_time",
    "schedule_timezone",
    "schedule_active",
)


def report_upload_to(instance, filename: str) -> str:
    return f"{settings.REPORTS_UPLOAD_DIR}/{instance.pk or 'new'}/{filename}"


class ReportQuerySet(models.QuerySet):
    def scheduled(self):
        return self.filter(schedule_active=True).exclude(schedule_frequency="")

    def due(self, now):
        return self.scheduled().filter(next_run__isnull=False, next_run__lte=now)

    def visible_to(self, user):
        if has_role(user, *REPORT_VIEWERS):
            return self
        q = models.Q(generated_by=user) | models.Q(is_public=True) | models.Q(recipient_users=user)
        role = (getattr(user, "role", "") or "").strip().lower()
        if role:
            # roles are stored as a JSON list; quote to avoid partial matches
            q |= models.Q(recipient_roles__icontains=f'"{role}"')
        return self.filter(q).distinct()


class Report(models.Model):
    TYPE_CHOICES = [
        ("financial", "Financial"),
        ("attendance", "Attendance"),
        ("event", "Event"),
        ("user", "User"),
        ("custom", "Custom"),
    ]
    FORMAT_CHOICES = [
        ("pdf", "PDF"),
        ("csv", "CSV"),
        ("json", "JSON"),
    ]
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("processing", "Processing"),
        ("completed", "Completed"),
        ("failed", "Failed"),
    ]
    FREQUENCY_CHOICES = [(f, f.title()) for f in FREQUENCIES]

    title = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    format = models.CharField(max_length=10, choices=FORMAT_CHOICES, default="pdf")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending", db_index=True)
    filters = models.JSONField(default=dict, blank=True)

    # schedule (blank frequency = not scheduled)
    schedule_frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES, blank=True, default="")
    schedule_day_of_week = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MaxValueValidator(6)],
        help_text="0 = Sunday ... 6 = Saturday",
    )
    schedule_day_of_month = models.PositiveSmallIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1), MaxValueValidator(31)]
    )
    schedule_time = models.CharField(max_length=5, blank=True, default="", help_text="HH:MM, 24-hour")
    schedule_timezone = models.CharField(max_length=64, default="UTC")
    schedule_active = models.BooleanField(default=True)
    next_run = models.DateTimeField(null=True, blank=True, db_index=True)
    last_run = models.DateTimeField(null=True, blank=True)

    generated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reports",
    )
    template = models.ForeignKey(
        "ReportTemplate",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="reports",
    )
    file = models.FileField(upload_to=report_upload_to, blank=True, default="")
    file_size = models.PositiveIntegerField(null=True, blank=True)
    mime_type = models.CharField(max_length=100, blank=True, default="")
    error = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    is_public = models.BooleanField(default=False)

    recipient_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="received_reports",
    )
    recipient_roles = models.JSONField(default=list, blank=True)
    recipient_emails = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReportQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["generated_by", "-created_at"]),
            models.Index(fields=["type", "status"]),
            models.Index(fields=["schedule_active", "next_run"]),
        ]
        ordering = ["-created_at", "-id"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._loaded_schedule = self._schedule_values() if self.pk else None

    def __str__(self) -> str:
        return f"{self.title} ({self.type}/{self.format})"

    def _schedule_values(self):
        return tuple(getattr(self, f) for f in SCHEDULE_FIELDS)

    @property
    def is_scheduled(self) -> bool:
        return bool(self.schedule_frequency)

    def schedule_spec(self):
        """ScheduleSpec for this report, or None when it isn't scheduled."""
        if not self.schedule_frequency:
            return None
        return ScheduleSpec(
            frequency=self.schedule_frequency,
            time_of_day=self.schedule_time,
            day_of_week=self.schedule_day_of_week,
            day_of_month=self.schedule_day_of_month,
            timezone=self.schedule_timezone or "UTC",
            active=self.schedule_active,
        )

    def refresh_next_run(self, now=None) -> bool:
        """
        Recompute or clear next_run. Returns True when the value changed.
        Raises InvalidScheduleError for a malformed schedule.
        """
        before = self.next_run
        spec = self.schedule_spec()
        if spec is None or not spec.active:
            self.next_run = None
        else:
            self.next_run = next_run(spec, now)
        return self.next_run != before

    def save(self, *args, **kwargs):
        schedule_changed = self._schedule_values() != self._loaded_schedule
        missing = self.schedule_active and self.is_scheduled and self.next_run is None
        inactive = self.next_run is not None and not (self.schedule_active and self.is_scheduled)
        if schedule_changed or missing or inactive:
            self.refresh_next_run()
            if kwargs.get("update_fields") is not None:
                kwargs["update_fields"] = {*kwargs["update_fields"], "next_run"}
        super().save(*args, **kwargs)
        self._loaded_schedule = self._schedule_values()

    @property
    def download_url(self):
        if not self.file:
            return None
        return reverse("reports_api:report-download", args=[self.pk])


class ReportTemplateQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def visible_to(self, user):
        if has_role(user, *REPORT_VIEWERS):
            return self
        return self.filter(models.Q(created_by=user) | models.Q(is_public=True))


class ReportTemplate(models.Model):
    """
    Reusable report definition. ``layout`` may carry ``title`` and a
    ``columns`` list that selects and orders dataset columns; reports built
    from the template start from ``default_filters``.
    """

    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    type = models.CharField(max_length=20, choices=Report.TYPE_CHOICES)
    format = models.CharField(max_length=10, choices=Report.FORMAT_CHOICES, default="pdf")
    layout = models.JSONField(default=dict, blank=True)
    default_filters = models.JSONField(default=dict, blank=True)
    tags = models.JSONField(default=list, blank=True)
    is_public = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    version = models.PositiveIntegerField(default=1)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="report_templates",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReportTemplateQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["type", "is_public"]),
            models.Index(fields=["is_active"]),
        ]
        ordering = ["name", "id"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._loaded_content = self._content() if self.pk else None

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"

    def _content(self):
        return copy.deepcopy((self.layout, self.default_filters))

    def save(self, *args, **kwargs):
        # layout or default filter edits bump the version
        if self._loaded_content is not None and self._content() != self._loaded_content:
            self.version += 1
            if kwargs.get("update_fields") is not None:
                kwargs["update_fields"] = {*kwargs["update_fields"], "version"}
        self.tags = sorted({(t or "").strip().lower() for t in self.tags or () if (t or "").strip()})
        super().save(*args, **kwargs)
        self._loaded_content = self._content()
