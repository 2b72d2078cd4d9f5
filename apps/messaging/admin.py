from django.contrib import admin

from .models import Message, MessageRecipient


class RecipientInline(admin.TabularInline):
    model = MessageRecipient
    extra = 0
    raw_id_fields = ("user",)


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "subject", "sender", "is_draft", "is_thread", "thread_id", "created_at")
    list_filter = ("is_draft", "is_thread", "deleted_by_sender")
    search_fields = ("subject", "body", "sender__username")
    raw_id_fields = ("sender", "parent_message", "thread")
    inlines = [RecipientInline]
