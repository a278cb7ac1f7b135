from django.contrib import admin

from .models import Complaint, ComplaintAttachment, ComplaintUpdate


class ComplaintUpdateInline(admin.TabularInline):
    model = ComplaintUpdate
    extra = 0
    readonly_fields = ("message", "update_type", "is_internal",
                       "created_by", "created_at")


class ComplaintAttachmentInline(admin.TabularInline):
    model = ComplaintAttachment
    extra = 0


@admin.register(Complaint)
class ComplaintAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "category", "status", "priority",
                    "department", "assigned_to", "is_archived", "created_at")
    list_filter = ("status", "category", "priority", "is_emergency",
                   "is_archived")
    search_fields = ("title", "description", "address")
    readonly_fields = ("resolved_at", "actual_resolution_time", "rating",
                       "feedback", "view_count")
    inlines = [ComplaintUpdateInline, ComplaintAttachmentInline]


@admin.register(ComplaintUpdate)
class ComplaintUpdateAdmin(admin.ModelAdmin):
    list_display = ("complaint", "update_type", "is_internal",
                    "created_by", "created_at")
    list_filter = ("update_type", "is_internal")
