from django.contrib import admin

from .models import Report, ReportTemplate
from .tasks import generate_report


@admin.action(description="Generate selected reports now")
def generate_now(modeladmin, request, queryset):
    for report in queryset:
        generate_report.delay(report.pk)


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "type", "format", "status", "schedule_frequency", "next_run", "generated_by")
    list_filter = ("type", "format", "status", "schedule_frequency", "schedule_active")
    search_fields = ("title", "description")
    readonly_fields = ("next_run", "last_run", "file_size", "mime_type", "error", "created_at", "updated_at")
    filter_horizontal = ("recipient_users",)
    raw_id_fields = ("generated_by", "template")
    actions = [generate_now]


@admin.register(ReportTemplate)
class ReportTemplateAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "type", "format", "version", "is_public", "is_active", "created_by")
    list_filter = ("type", "format", "is_public", "is_active")
    search_fields = ("name", "description")
    readonly_fields = ("version", "created_at", "updated_at")
    raw_id_fields = ("created_by", "updated_by")
