from django.contrib import admin

from .models import Department, DepartmentCategory, DepartmentStaff


class DepartmentCategoryInline(admin.TabularInline):
    model = DepartmentCategory
    extra = 0


class DepartmentStaffInline(admin.TabularInline):
    model = DepartmentStaff
    extra = 0
    readonly_fields = ("joined_at",)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "head", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "code", "description")
    inlines = [DepartmentCategoryInline, DepartmentStaffInline]


@admin.register(DepartmentStaff)
class DepartmentStaffAdmin(admin.ModelAdmin):
    list_display = ("department", "user", "position", "is_active", "joined_at")
    list_filter = ("is_active", "department")
