# apps/accounts/admin.py
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import User


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    """
    Custom admin for AUTH_USER_MODEL:
    - Keep Django auth features
    - Add display_name, role and home department
    """
    list_display = ("id", "username", "email", "display_name", "role", "department", "is_active")
    list_filter = ("role", "is_active", "is_staff", "department")
    search_fields = ("username", "email", "first_name", "last_name", "display_name")
    ordering = ("id",)

    fieldsets = (
        (None, {"fields": ("username", "password")}),
        (_("Personal info"), {"fields": ("first_name", "last_name", "email", "display_name")}),
        (_("Organization"), {"fields": ("role", "department")}),
        (_("Permissions"), {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        (_("Important dates"), {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (None, {
            "classes": ("wide",),
            "fields": ("username", "password1", "password2", "email", "display_name", "role", "department"),
        }),
    )
