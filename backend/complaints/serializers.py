"""
Complaints app serializers.

Contains all Request and Response serializers for the Complaints API.
Serializers handle field definitions, read/write constraints, and
field-level validation only.  **No business logic, routing or lifecycle
rules live here**; those belong in ``services.py``.

Structure
---------
1. Filter / query-param serializers
2. Complaint read serializers (list, detail, nearby)
3. Complaint write serializers (create, update)
4. Workflow action serializers (transition, assign, reassign, rate)
5. Sub-resource serializers (updates, attachments)
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from core.constants import (
    MAX_ATTACHMENT_SIZE_BYTES,
    MAX_ATTACHMENTS_PER_COMPLAINT,
    MAX_RATING,
    MAX_TAG_LENGTH,
    MAX_TAGS_PER_COMPLAINT,
    MIN_RATING,
    NEARBY_DEFAULT_RADIUS_KM,
    NEARBY_MAX_RADIUS_KM,
)
from departments.serializers import DepartmentListSerializer

from .models import (
    AttachmentType,
    Complaint,
    ComplaintAttachment,
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    ComplaintUpdate,
    UpdateType,
)


def _clean_tags(value: list[str]) -> list[str]:
    """Lower-case, strip and de-duplicate tags, keeping first-seen order."""
    cleaned: list[str] = []
    for tag in value:
        tag = tag.strip().lower()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise serializers.ValidationError(
                f"Tags may be at most {MAX_TAG_LENGTH} characters."
            )
        if tag not in cleaned:
            cleaned.append(tag)
    if len(cleaned) > MAX_TAGS_PER_COMPLAINT:
        raise serializers.ValidationError(
            f"A complaint may carry at most {MAX_TAGS_PER_COMPLAINT} tags."
        )
    return cleaned


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintFilterSerializer(serializers.Serializer):
    """
    Validates and cleans query-parameter filters for ``GET /api/complaints/``.

    All fields are optional.  The view passes the validated dict directly
    to ``ComplaintQueryService.get_filtered_queryset``.

    Query Parameters
    ----------------
    ``status``           : str   — one of ``ComplaintStatus`` values
    ``category``         : str   — one of ``ComplaintCategory`` values
    ``priority``         : str   — one of ``ComplaintPriority`` values
    ``department``       : int   — PK of the owning department
    ``assigned_to``      : int   — PK of the assigned provider
    ``is_emergency``     : bool
    ``tag``              : str
    ``search``           : str   — title / description / address
    ``created_after``    : date
    ``created_before``   : date
    ``include_archived`` : bool  — administrators only
    """

    status = serializers.ChoiceField(choices=ComplaintStatus.choices, required=False)
    category = serializers.ChoiceField(choices=ComplaintCategory.choices, required=False)
    priority = serializers.ChoiceField(choices=ComplaintPriority.choices, required=False)
    department = serializers.IntegerField(required=False, min_value=1)
    assigned_to = serializers.IntegerField(required=False, min_value=1)
    is_emergency = serializers.BooleanField(required=False, allow_null=True, default=None)
    tag = serializers.CharField(required=False, max_length=MAX_TAG_LENGTH)
    search = serializers.CharField(required=False, max_length=255)
    created_after = serializers.DateField(required=False)
    created_before = serializers.DateField(required=False)
    include_archived = serializers.BooleanField(required=False, default=False)

    def validate_tag(self, value: str) -> str:
        return value.strip().lower()

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        after = attrs.get("created_after")
        before = attrs.get("created_before")
        if after and before and after > before:
            raise serializers.ValidationError(
                "created_after must be earlier than created_before."
            )
        return attrs


class AssignedFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ComplaintStatus.choices, required=False)


class NearbyQuerySerializer(serializers.Serializer):
    """Query parameters for ``GET /api/complaints/nearby/``."""

    longitude = serializers.FloatField(min_value=-180, max_value=180)
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    radius_km = serializers.FloatField(
        required=False,
        default=NEARBY_DEFAULT_RADIUS_KM,
        min_value=0.01,
        max_value=NEARBY_MAX_RADIUS_KM,
    )


# ═══════════════════════════════════════════════════════════════════
#  2. Complaint Read Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintUpdateSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = ComplaintUpdate
        fields = [
            "id", "message", "update_type", "is_internal",
            "created_by", "created_at",
        ]
        read_only_fields = fields


class ComplaintAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = ComplaintAttachment
        fields = [
            "id", "filename", "url", "file_type", "size",
            "uploaded_by", "created_at",
        ]
        read_only_fields = fields


class ComplaintListSerializer(serializers.ModelSerializer):
    """
    Compact representation for list endpoints.

    Excludes history and attachments to keep list payloads small.
    """

    status_display = serializers.CharField(source="get_status_display", read_only=True)
    department_code = serializers.CharField(source="department.code", read_only=True)
    assigned_to_name = serializers.SerializerMethodField()

    class Meta:
        model = Complaint
        fields = [
            "id",
            "title",
            "category",
            "status",
            "status_display",
            "priority",
            "is_emergency",
            "department",
            "department_code",
            "assigned_to",
            "assigned_to_name",
            "address",
            "city",
            "longitude",
            "latitude",
            "rating",
            "tags",
            "is_public",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_assigned_to_name(self, obj: Complaint) -> str | None:
        if obj.assigned_to is None:
            return None
        return obj.assigned_to.get_full_name() or obj.assigned_to.username


class NearbyComplaintSerializer(ComplaintListSerializer):
    distance_km = serializers.FloatField(read_only=True)

    class Meta(ComplaintListSerializer.Meta):
        fields = ComplaintListSerializer.Meta.fields + ["distance_km"]
        read_only_fields = fields


class ComplaintDetailSerializer(serializers.ModelSerializer):
    """
    Full complaint payload including location, resolution bookkeeping,
    public history and attachments.

    Internal notes are included only when the serializer context carries
    ``show_internal=True``.
    """

    status_display = serializers.CharField(source="get_status_display", read_only=True)
    submitted_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True)
    department = DepartmentListSerializer(read_only=True)
    updates = serializers.SerializerMethodField()
    attachments = ComplaintAttachmentSerializer(many=True, read_only=True)
    upvote_count = serializers.SerializerMethodField()

    class Meta:
        model = Complaint
        fields = [
            "id",
            "title",
            "description",
            "category",
            "status",
            "status_display",
            "priority",
            "is_emergency",
            "longitude",
            "latitude",
            "address",
            "city",
            "region",
            "postal_code",
            "submitted_by",
            "department",
            "assigned_to",
            "resolved_at",
            "actual_resolution_time",
            "estimated_resolution_time",
            "rating",
            "feedback",
            "tags",
            "is_public",
            "is_archived",
            "view_count",
            "upvote_count",
            "updates",
            "attachments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_updates(self, obj: Complaint) -> list[dict]:
        show_internal = self.context.get("show_internal", False)
        updates = [u for u in obj.updates.all() if show_internal or not u.is_internal]
        return ComplaintUpdateSerializer(updates, many=True).data

    def get_upvote_count(self, obj: Complaint) -> int:
        return len(obj.upvoters.all())


# ═══════════════════════════════════════════════════════════════════
#  3. Complaint Write Serializers
# ═══════════════════════════════════════════════════════════════════


class AttachmentCreateSerializer(serializers.Serializer):
    """A reference to a file already uploaded to blob storage."""

    filename = serializers.CharField(max_length=255)
    url = serializers.URLField(max_length=500)
    file_type = serializers.ChoiceField(choices=AttachmentType.choices)
    size = serializers.IntegerField(min_value=1, max_value=MAX_ATTACHMENT_SIZE_BYTES)


class ComplaintCreateSerializer(serializers.Serializer):
    """
    Validates ``POST /api/complaints/``.

    ``status``, ``department`` and ``submitted_by`` are never accepted
    from the client; the service sets them.
    """

    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=5000)
    category = serializers.ChoiceField(choices=ComplaintCategory.choices)
    priority = serializers.ChoiceField(
        choices=ComplaintPriority.choices,
        required=False,
        default=ComplaintPriority.MEDIUM,
    )
    is_emergency = serializers.BooleanField(required=False, default=False)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    address = serializers.CharField(max_length=500)
    city = serializers.CharField(required=False, allow_blank=True, max_length=100, default="")
    region = serializers.CharField(required=False, allow_blank=True, max_length=100, default="")
    postal_code = serializers.CharField(required=False, allow_blank=True, max_length=20, default="")
    tags = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
        default=list,
    )
    is_public = serializers.BooleanField(required=False, default=True)
    attachments = AttachmentCreateSerializer(many=True, required=False, default=list)

    def validate_title(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title may not be blank.")
        return value

    def validate_tags(self, value: list[str]) -> list[str]:
        return _clean_tags(value)

    def validate_attachments(self, value: list[dict]) -> list[dict]:
        if len(value) > MAX_ATTACHMENTS_PER_COMPLAINT:
            raise serializers.ValidationError(
                f"At most {MAX_ATTACHMENTS_PER_COMPLAINT} attachments are allowed."
            )
        return value


class ComplaintUpdateFieldsSerializer(serializers.Serializer):
    """
    Validates ``PATCH /api/complaints/{id}/``.

    Who may change which field is decided in the service layer.
    """

    tags = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    is_public = serializers.BooleanField(required=False)
    priority = serializers.ChoiceField(choices=ComplaintPriority.choices, required=False)
    estimated_resolution_time = serializers.IntegerField(
        required=False, allow_null=True, min_value=0,
        help_text="Expected hours until resolution.",
    )

    def validate_tags(self, value: list[str]) -> list[str]:
        return _clean_tags(value)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if not attrs:
            raise serializers.ValidationError("Provide at least one field to update.")
        return attrs


# ═══════════════════════════════════════════════════════════════════
#  4. Workflow Action Serializers
# ═══════════════════════════════════════════════════════════════════


class TransitionSerializer(serializers.Serializer):
    """
    ``POST /api/complaints/{id}/transition/``

    ``new_status`` is accepted as a free string so that an unknown value
    reaches the lifecycle controller and is reported as ``InvalidStatus``.
    """

    new_status = serializers.CharField(max_length=20)
    message = serializers.CharField(required=False, allow_blank=True, max_length=2000, default="")


class AssignSerializer(serializers.Serializer):
    provider_id = serializers.IntegerField(min_value=1)


class ReassignDepartmentSerializer(serializers.Serializer):
    department_id = serializers.IntegerField(min_value=1)


class RateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=MIN_RATING, max_value=MAX_RATING)
    feedback = serializers.CharField(required=False, allow_blank=True, max_length=2000, default="")


# ═══════════════════════════════════════════════════════════════════
#  5. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class AddUpdateSerializer(serializers.Serializer):
    message = serializers.CharField(max_length=2000)
    update_type = serializers.ChoiceField(
        choices=[
            (UpdateType.PROGRESS_UPDATE, UpdateType.PROGRESS_UPDATE.label),
            (UpdateType.MESSAGE, UpdateType.MESSAGE.label),
        ],
        required=False,
        allow_null=True,
        default=None,
    )
    is_internal = serializers.BooleanField(required=False, default=False)
