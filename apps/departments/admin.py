from django.contrib import admin

from .models import Department


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "head", "is_active", "contact_email")
    list_filter = ("is_active",)
    search_fields = ("name", "description", "head__username")
    filter_horizontal = ("members",)
