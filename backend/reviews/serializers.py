"""
Reviews app serializers.

Structure
---------
1. Filter / query-param serializers
2. Review read serializers
3. Review write serializers
"""

from __future__ import annotations

import re
from typing import Any

from rest_framework import serializers

from complaints.models import ComplaintCategory
from core.constants import MAX_RATING, MAX_TAG_LENGTH, MAX_TAGS_PER_COMPLAINT, MIN_RATING

from .models import Review, ReviewType

_RATING_RANGE_REGEX = re.compile(r"^([1-5])(?:-([1-5]))?$")


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ReviewFilterSerializer(serializers.Serializer):
    """
    Query parameters for ``GET /api/reviews/``.

    ``rating`` is either a single star value (``"4"``) or an inclusive
    range (``"3-5"``); it is turned into ``rating_min`` / ``rating_max``.
    """

    department = serializers.IntegerField(required=False, min_value=1)
    complaint = serializers.IntegerField(required=False, min_value=1)
    category = serializers.ChoiceField(choices=ComplaintCategory.choices, required=False)
    review_type = serializers.ChoiceField(choices=ReviewType.choices, required=False)
    rating = serializers.CharField(required=False, max_length=3)
    search = serializers.CharField(required=False, max_length=255)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        rating = attrs.pop("rating", None)
        if rating is not None:
            match = _RATING_RANGE_REGEX.match(rating.strip())
            if not match:
                raise serializers.ValidationError(
                    {"rating": "Use a star value 1-5 or a range such as '3-5'."}
                )
            low = int(match.group(1))
            high = int(match.group(2) or low)
            if low > high:
                raise serializers.ValidationError({"rating": "Range start exceeds range end."})
            attrs["rating_min"], attrs["rating_max"] = low, high
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  2. Review Read Serializers
# ═══════════════════════════════════════════════════════════════════


class ReviewSerializer(serializers.ModelSerializer):
    """Anonymous reviews hide the author."""

    author = serializers.SerializerMethodField()
    department_name = serializers.CharField(source="department.name", read_only=True, default=None)

    class Meta:
        model = Review
        fields = [
            "id",
            "review_type",
            "complaint",
            "department",
            "department_name",
            "service_provider",
            "author",
            "rating",
            "title",
            "content",
            "category",
            "is_anonymous",
            "tags",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_author(self, obj: Review) -> str | None:
        if obj.is_anonymous:
            return None
        return obj.user.get_full_name() or obj.user.username


# ═══════════════════════════════════════════════════════════════════
#  3. Review Write Serializers
# ═══════════════════════════════════════════════════════════════════


class _ReviewFieldsMixin(serializers.Serializer):
    rating = serializers.IntegerField(min_value=MIN_RATING, max_value=MAX_RATING)
    title = serializers.CharField(required=False, allow_blank=True, max_length=200)
    content = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    is_anonymous = serializers.BooleanField(required=False)
    tags = serializers.ListField(
        child=serializers.CharField(max_length=MAX_TAG_LENGTH),
        required=False,
        max_length=MAX_TAGS_PER_COMPLAINT,
    )

    def validate_tags(self, value: list[str]) -> list[str]:
        return list(dict.fromkeys(t.strip().lower() for t in value if t.strip()))


class ReviewCreateSerializer(_ReviewFieldsMixin):
    """
    ``POST /api/reviews/``

    ``review_type=complaint`` (default) requires ``complaint``;
    ``review_type=system`` requires ``category``.
    """

    review_type = serializers.ChoiceField(
        choices=ReviewType.choices, required=False, default=ReviewType.COMPLAINT,
    )
    complaint = serializers.IntegerField(required=False, min_value=1)
    category = serializers.ChoiceField(choices=ComplaintCategory.choices, required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["review_type"] == ReviewType.COMPLAINT and "complaint" not in attrs:
            raise serializers.ValidationError({"complaint": "Required for complaint reviews."})
        if attrs["review_type"] == ReviewType.SYSTEM:
            if "category" not in attrs:
                raise serializers.ValidationError({"category": "Required for system reviews."})
            attrs.pop("complaint", None)
        return attrs


class ReviewUpdateSerializer(_ReviewFieldsMixin):
    rating = serializers.IntegerField(min_value=MIN_RATING, max_value=MAX_RATING, required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs
