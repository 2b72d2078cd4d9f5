from django.contrib import admin

from .models import Attendance, Event


class AttendanceInline(admin.TabularInline):
    model = Attendance
    extra = 0
    fk_name = "event"
    raw_id_fields = ("user", "marked_by")


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "start", "end", "status", "organizer", "department")
    list_filter = ("status", "department")
    search_fields = ("title", "description", "location")
    date_hierarchy = "start"
    filter_horizontal = ("attendees",)
    inlines = [AttendanceInline]


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    list_display = ("id", "event", "user", "status", "check_in", "check_out", "marked_by")
    list_filter = ("status",)
    search_fields = ("user__username", "event__title")
    raw_id_fields = ("event", "user", "marked_by")
