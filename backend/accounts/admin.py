from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "phone_number", "first_name",
                    "last_name", "role", "department", "is_active")
    search_fields = ("username", "email", "phone_number")
    list_filter = ("is_active", "role", "department")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Complaint Tracker", {"fields": ("phone_number", "role", "department")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Complaint Tracker", {"fields": ("email", "phone_number", "first_name",
                                          "last_name", "role")}),
    )
