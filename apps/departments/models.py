# apps/departments/models.py
from django.conf import settings
from django.db import models
from django.db.models import Count, Q


class DepartmentQuerySet(models.QuerySet):
    def active(self) -> "DepartmentQuerySet":
        return self.filter(is_active=True)

    def with_member_count(self) -> "DepartmentQuerySet":
        return self.annotate(n_members=Count("members", distinct=True))

    def search(self, text: str) -> "DepartmentQuerySet":
        text = (text or "").strip()
        if not text:
            return self
        return self.filter(Q(name__icontains=text) | Q(description__icontains=text))


class Department(models.Model):
    name = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=500, blank=True, default="")
    head = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="headed_departments",
    )
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="member_departments",
    )
    is_active = models.BooleanField(default=True, db_index=True)
    contact_email = models.EmailField(blank=True, default="")
    contact_phone = models.CharField(max_length=50, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DepartmentQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        super().save(*args, **kwargs)
        self.ensure_head_is_member()

    def ensure_head_is_member(self) -> None:
        # M2M needs a pk, so this runs after the row exists.
        if self.head_id and not self.members.filter(pk=self.head_id).exists():
            self.members.add(self.head_id)

    @property
    def member_count(self) -> int:
        return self.members.count()

    def is_department_head(self, user) -> bool:
        return self.head_id == getattr(user, "pk", user)

    def is_member(self, user) -> bool:
        return self.members.filter(pk=getattr(user, "pk", user)).exists()
