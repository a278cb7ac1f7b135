from django.contrib import admin

from .models import Review


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("id", "review_type", "rating", "user", "complaint",
                    "department", "created_at")
    list_filter = ("review_type", "rating", "category")
    search_fields = ("title", "content")
