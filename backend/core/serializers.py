"""
Core app serializers.

Response serializers for the system constants endpoint and the query
serializer of the event stream.
"""

from __future__ import annotations

from rest_framework import serializers


class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "under_review", "label": "Under Review"}
    """

    value = serializers.CharField()
    label = serializers.CharField()


class StatusTransitionSerializer(serializers.Serializer):
    from_status = serializers.CharField()
    to_status = serializers.CharField()


class LimitsSerializer(serializers.Serializer):
    max_tags_per_complaint = serializers.IntegerField()
    max_attachments_per_complaint = serializers.IntegerField()
    max_attachment_size_bytes = serializers.IntegerField()
    min_rating = serializers.IntegerField()
    max_rating = serializers.IntegerField()
    nearby_default_radius_km = serializers.FloatField()
    nearby_max_radius_km = serializers.FloatField()


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Provides all system-wide choice enumerations so the frontend can
    build dropdowns, filters and labels without hardcoding values.

    Response shape::

        {
            "complaint_categories": [{"value": "water", "label": "Water"}, ...],
            "complaint_statuses": [...],
            "complaint_priorities": [...],
            "update_types": [...],
            "attachment_types": [...],
            "user_roles": [...],
            "review_types": [...],
            "status_transitions": [
                {"from_status": "submitted", "to_status": "under_review"},
                ...
            ],
            "limits": {"max_tags_per_complaint": 10, ...}
        }
    """

    complaint_categories = ChoiceItemSerializer(many=True)
    complaint_statuses = ChoiceItemSerializer(many=True)
    complaint_priorities = ChoiceItemSerializer(many=True)
    update_types = ChoiceItemSerializer(many=True)
    attachment_types = ChoiceItemSerializer(many=True)
    user_roles = ChoiceItemSerializer(many=True)
    review_types = ChoiceItemSerializer(many=True)
    status_transitions = StatusTransitionSerializer(
        many=True,
        help_text="The forward lifecycle; only admins may leave it.",
    )
    limits = LimitsSerializer()


class EventStreamQuerySerializer(serializers.Serializer):
    """``?complaint=1&complaint=2``: complaint channels to join."""

    complaint = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        default=list,
        max_length=50,
    )
