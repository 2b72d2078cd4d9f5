# apps/announcements/models.py
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone


class AnnouncementQuerySet(models.QuerySet):
    def current(self, now=None):
        """Published, started and not yet ended."""
        now = now or timezone.now()
        return self.filter(status="published", start_date__lte=now).filter(
            Q(end_date__isnull=True) | Q(end_date__gte=now)
        )

    def targeting(self, user):
        q = Q(target_all=True) | Q(target_users=user)
        role = (getattr(user, "role", "") or "").strip().lower()
        if role:
            # target_roles is a JSON list; match the quoted role so "manager"
            # doesn't hit "finance_manager".
            q |= Q(target_roles__icontains=f'"{role}"')
        dept_ids = set(user.member_departments.values_list("pk", flat=True))
        if user.department_id:
            dept_ids.add(user.department_id)
        if dept_ids:
            q |= Q(target_departments__in=dept_ids)
        return self.filter(q).distinct()

    def active_for(self, user, now=None):
        return self.current(now).targeting(user).order_by("-is_pinned", "-start_date", "-id")


class Announcement(models.Model):
    STATUS_CHOICES = [
        ("draft", "Draft"),
        ("published", "Published"),
        ("archived", "Archived"),
    ]
    PRIORITY_CHOICES = [
        ("low", "Low"),
        ("medium", "Medium"),
        ("high", "High"),
        ("critical", "Critical"),
    ]

    title = models.CharField(max_length=200)
    content = models.TextField()
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="announcements",
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="draft", db_index=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default="medium")
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    is_pinned = models.BooleanField(default=False)

    target_all = models.BooleanField(default=True)
    target_roles = models.JSONField(default=list, blank=True)
    target_departments = models.ManyToManyField(
        "departments.Department",
        blank=True,
        related_name="announcements",
    )
    target_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="targeted_announcements",
    )
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AnnouncementQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["status", "-start_date"]),
            models.Index(fields=["-is_pinned", "-start_date"]),
        ]
        ordering = ["-is_pinned", "-start_date", "-id"]

    def __str__(self) -> str:
        return self.title

    def clean(self):
        if self.end_date and self.start_date and self.end_date <= self.start_date:
            raise ValidationError({"end_date": "End date must be after start date."})

    @property
    def is_active(self) -> bool:
        if self.status != "published":
            return False
        now = timezone.now()
        return self.start_date <= now and (self.end_date is None or self.end_date >= now)

    def has_audience(self) -> bool:
        if self.target_all or self.target_roles:
            return True
        if self.pk is None:
            return False
        return self.target_departments.exists() or self.target_users.exists()

    def audience(self):
        """Active users this announcement reaches."""
        users = get_user_model().objects.filter(is_active=True)
        if self.target_all:
            return users
        q = Q(pk__in=self.target_users.values("pk"))
        if self.target_roles:
            q |= Q(role__in=self.target_roles)
        dept_ids = list(self.target_departments.values_list("pk", flat=True))
        if dept_ids:
            q |= Q(department_id__in=dept_ids) | Q(member_departments__in=dept_ids)
        return users.filter(q).distinct()

    def is_read_by(self, user) -> bool:
        return self.reads.filter(user=user).exists()


class AnnouncementRead(models.Model):
    announcement = models.ForeignKey(Announcement, on_delete=models.CASCADE, related_name="reads")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="announcement_reads",
    )
    read_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(name="uniq_announcement_read", fields=["announcement", "user"]),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} read {self.announcement_id}"
