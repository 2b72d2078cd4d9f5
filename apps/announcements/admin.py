from django.contrib import admin

from .models import Announcement, AnnouncementRead


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "status", "priority", "is_pinned", "start_date", "end_date", "author")
    list_filter = ("status", "priority", "is_pinned", "target_all")
    search_fields = ("title", "content")
    filter_horizontal = ("target_departments", "target_users")


@admin.register(AnnouncementRead)
class AnnouncementReadAdmin(admin.ModelAdmin):
    list_display = ("id", "announcement", "user", "read_at")
    raw_id_fields = ("announcement", "user")
