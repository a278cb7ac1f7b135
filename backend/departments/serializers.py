"""
Departments app serializers.

Request and Response serializers for the Departments API.  Field-level
validation only; uniqueness, staffing rules and deactivation guards live
in ``services.py``.

Structure
---------
1. Filter / query-param serializers
2. Department read serializers
3. Department write serializers
4. Staff / head action serializers
"""

from __future__ import annotations

import re
from typing import Any

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from complaints.models import ComplaintCategory

from .models import Department, DepartmentStaff

_TIME_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_PHONE_REGEX = re.compile(r"^\+?\d{7,15}$")

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday",
)


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class DepartmentFilterSerializer(serializers.Serializer):
    """
    Query parameters for ``GET /api/departments/``.  ``is_active`` is
    honoured for administrators only; everyone else sees active
    departments.
    """

    category = serializers.ChoiceField(choices=ComplaintCategory.choices, required=False)
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)
    search = serializers.CharField(required=False, max_length=255)


class RoutingPreviewSerializer(serializers.Serializer):
    """Query parameters for ``GET /api/departments/resolve/``."""

    category = serializers.ChoiceField(choices=ComplaintCategory.choices)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if ("longitude" in attrs) != ("latitude" in attrs):
            raise serializers.ValidationError(
                "longitude and latitude must be given together."
            )
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  2. Department Read Serializers
# ═══════════════════════════════════════════════════════════════════


class DepartmentStaffSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = DepartmentStaff
        fields = ["id", "user", "position", "joined_at", "is_active"]
        read_only_fields = fields


class DepartmentListSerializer(serializers.ModelSerializer):
    """Compact representation for listings and nested references."""

    categories = serializers.ListField(
        source="category_values",
        child=serializers.CharField(),
        read_only=True,
    )

    class Meta:
        model = Department
        fields = ["id", "name", "code", "categories", "is_active"]
        read_only_fields = fields


class DepartmentDetailSerializer(serializers.ModelSerializer):
    """
    Full department payload: contact info, hours, service areas, head
    and active staff.
    """

    categories = serializers.ListField(
        source="category_values",
        child=serializers.CharField(),
        read_only=True,
    )
    head = UserSummarySerializer(read_only=True)
    staff = serializers.SerializerMethodField()

    class Meta:
        model = Department
        fields = [
            "id",
            "name",
            "code",
            "description",
            "categories",
            "email",
            "phone",
            "address",
            "website",
            "emergency_contact",
            "working_hours",
            "service_areas",
            "head",
            "staff",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_staff(self, obj: Department) -> list[dict]:
        members = [m for m in obj.staff.all() if m.is_active]
        return DepartmentStaffSerializer(members, many=True).data


# ═══════════════════════════════════════════════════════════════════
#  3. Department Write Serializers
# ═══════════════════════════════════════════════════════════════════


class DepartmentWriteSerializer(serializers.Serializer):
    """
    Validates create (``POST``) and partial update (``PATCH``) payloads.
    Used with ``partial=True`` for updates.
    """

    name = serializers.CharField(max_length=100)
    code = serializers.RegexField(
        r"^[A-Za-z0-9_-]{2,10}$",
        error_messages={"invalid": "Code must be 2-10 letters, digits, '-' or '_'."},
    )
    description = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    categories = serializers.ListField(
        child=serializers.ChoiceField(choices=ComplaintCategory.choices),
        allow_empty=False,
    )
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    address = serializers.CharField(required=False, allow_blank=True, max_length=500)
    website = serializers.URLField(required=False, allow_blank=True)
    emergency_contact = serializers.CharField(required=False, allow_blank=True, max_length=20)
    working_hours = serializers.DictField(required=False)
    service_areas = serializers.ListField(child=serializers.DictField(), required=False)

    def validate_phone(self, value: str) -> str:
        if value and not _PHONE_REGEX.match(value):
            raise serializers.ValidationError("Enter a valid phone number.")
        return value

    def validate_emergency_contact(self, value: str) -> str:
        return self.validate_phone(value)

    def validate_code(self, value: str) -> str:
        return value.upper()

    def validate_working_hours(self, value: dict[str, Any]) -> dict[str, Any]:
        """
        Each key is a weekday; each value is
        ``{"start": "HH:MM", "end": "HH:MM", "is_closed": bool}``.
        """
        cleaned = {}
        for day, hours in value.items():
            day_key = str(day).lower()
            if day_key not in WEEKDAYS:
                raise serializers.ValidationError(f"'{day}' is not a weekday.")
            if not isinstance(hours, dict):
                raise serializers.ValidationError(f"Hours for {day_key} must be an object.")

            is_closed = bool(hours.get("is_closed", False))
            start, end = hours.get("start"), hours.get("end")
            if not is_closed:
                if not (isinstance(start, str) and _TIME_REGEX.match(start)):
                    raise serializers.ValidationError(f"{day_key}: start must be HH:MM.")
                if not (isinstance(end, str) and _TIME_REGEX.match(end)):
                    raise serializers.ValidationError(f"{day_key}: end must be HH:MM.")
                if start >= end:
                    raise serializers.ValidationError(f"{day_key}: start must be before end.")
            cleaned[day_key] = {"start": start, "end": end, "is_closed": is_closed}
        return cleaned

    def validate_service_areas(self, value: list[dict]) -> list[dict]:
        for area in value:
            polygon = area.get("polygon") or {}
            if not area.get("name"):
                raise serializers.ValidationError("Every service area needs a name.")
            if polygon.get("type") != "Polygon" or not polygon.get("coordinates"):
                raise serializers.ValidationError(
                    f"Service area '{area.get('name')}' must carry a GeoJSON Polygon."
                )
        return value


# ═══════════════════════════════════════════════════════════════════
#  4. Staff / Head Action Serializers
# ═══════════════════════════════════════════════════════════════════


class AddStaffSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    position = serializers.CharField(required=False, allow_blank=True, max_length=100, default="")


class SetHeadSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
