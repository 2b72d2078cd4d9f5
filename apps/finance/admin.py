from django.contrib import admin

from .models import Transaction


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "date", "type", "category", "amount", "status", "approved", "created_by")
    list_filter = ("type", "status", "approved", "payment_method")
    search_fields = ("category", "description", "reference")
    date_hierarchy = "date"
    raw_id_fields = ("created_by", "approved_by", "event", "department")
