"""
Reviews app Service Layer.

Architecture
------------
- ``ReviewQueryService`` — Listing and detail.
- ``ReviewService``      — Creating, editing and deleting reviews.

Complaint-type reviews are gated by ``ComplaintRatingService``: the
complaint must be resolved and the reviewer must have submitted it.
Every write to such a review is mirrored onto ``Complaint.rating`` /
``feedback`` inside the same transaction.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet

from complaints.models import Complaint
from complaints.services import ComplaintRatingService
from core.domain.access import is_admin
from core.domain.exceptions import (
    DomainError,
    DuplicateReview,
    NotFound,
    PermissionDenied,
)
from core.domain.transactions import lock_for_update

from .models import Review, ReviewType

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Review Query Service
# ═══════════════════════════════════════════════════════════════════


class ReviewQueryService:

    @staticmethod
    def get_filtered_queryset(filters: dict[str, Any]) -> QuerySet[Review]:
        """
        Return reviews matching the given filters, newest first.

        Supported filters: ``department``, ``complaint``, ``category``,
        ``review_type``, ``rating_min`` / ``rating_max`` (inclusive) and
        ``search`` over title and content.
        """
        qs = Review.objects.select_related(
            "user", "department", "complaint", "service_provider",
        )

        if filters.get("department") is not None:
            qs = qs.filter(department_id=filters["department"])
        if filters.get("complaint") is not None:
            qs = qs.filter(complaint_id=filters["complaint"])
        if filters.get("category"):
            qs = qs.filter(category=filters["category"])
        if filters.get("review_type"):
            qs = qs.filter(review_type=filters["review_type"])
        if filters.get("rating_min") is not None:
            qs = qs.filter(rating__gte=filters["rating_min"])
        if filters.get("rating_max") is not None:
            qs = qs.filter(rating__lte=filters["rating_max"])

        search = filters.get("search")
        if search:
            qs = qs.filter(Q(title__icontains=search) | Q(content__icontains=search))

        return qs

    @staticmethod
    def get_review(review_id: Any) -> Review:
        try:
            return Review.objects.select_related(
                "user", "department", "complaint", "service_provider",
            ).get(pk=review_id)
        except (Review.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Review with id {review_id} not found.")


# ═══════════════════════════════════════════════════════════════════
#  Review Service
# ═══════════════════════════════════════════════════════════════════


class ReviewService:
    """Creation, owner edits and deletion of reviews."""

    @staticmethod
    @transaction.atomic
    def create_complaint_review(
        complaint_id: Any,
        user: Any,
        validated_data: dict[str, Any],
    ) -> Review:
        """
        Review a resolved complaint the user submitted.

        Raises
        ------
        NotFound
            The complaint does not exist.
        NotResolvableYet
            The complaint is not ``resolved``.
        NotOwner
            The user did not submit the complaint.
        DuplicateReview
            The user already reviewed this complaint.
        """
        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
        ComplaintRatingService.check_can_rate(complaint, user)

        if Review.objects.filter(
            complaint=complaint, user=user, review_type=ReviewType.COMPLAINT,
        ).exists():
            raise DuplicateReview(complaint.pk, user.pk)

        try:
            with transaction.atomic():
                review = Review.objects.create(
                    user=user,
                    complaint=complaint,
                    review_type=ReviewType.COMPLAINT,
                    department_id=complaint.department_id,
                    service_provider_id=complaint.assigned_to_id,
                    category=complaint.category,
                    rating=validated_data["rating"],
                    title=validated_data.get("title", ""),
                    content=validated_data.get("content", ""),
                    is_anonymous=validated_data.get("is_anonymous", False),
                    tags=validated_data.get("tags", []),
                )
        except IntegrityError:
            raise DuplicateReview(complaint.pk, user.pk)

        ComplaintRatingService.apply_review(complaint, review)

        logger.info(
            "Review %s (%s stars) created for complaint %s by %s",
            review.pk, review.rating, complaint.pk, user.pk,
        )
        return review

    @staticmethod
    def create_system_review(user: Any, validated_data: dict[str, Any]) -> Review:
        """A review of the service in general, tagged with a category."""
        if not validated_data.get("category"):
            raise DomainError("A category is required for system reviews.")

        review = Review.objects.create(
            user=user,
            review_type=ReviewType.SYSTEM,
            category=validated_data["category"],
            rating=validated_data["rating"],
            title=validated_data.get("title", ""),
            content=validated_data.get("content", ""),
            is_anonymous=validated_data.get("is_anonymous", False),
            tags=validated_data.get("tags", []),
        )
        logger.info("System review %s created by %s", review.pk, user.pk)
        return review

    @staticmethod
    def create_review(user: Any, validated_data: dict[str, Any]) -> Review:
        """Dispatch on ``review_type``."""
        if validated_data.get("review_type") == ReviewType.SYSTEM:
            return ReviewService.create_system_review(user, validated_data)

        complaint_id = validated_data.get("complaint")
        if complaint_id is None:
            raise DomainError("A complaint id is required for complaint reviews.")
        return ReviewService.create_complaint_review(complaint_id, user, validated_data)

    @staticmethod
    @transaction.atomic
    def update_review(review_id: Any, user: Any, validated_data: dict[str, Any]) -> Review:
        """
        Edit one's own review.

        Only the author may edit.  For a complaint-type review the new
        rating and content are mirrored onto the complaint, which must
        still be ``resolved`` (``NotResolvableYet`` otherwise).
        """
        review = lock_for_update(Review, review_id, label="Review")
        if review.user_id != user.pk:
            raise PermissionDenied("Only the author may edit this review.")

        complaint = None
        if (
            review.review_type == ReviewType.COMPLAINT
            and review.complaint_id
            and {"rating", "content"} & validated_data.keys()
        ):
            complaint = lock_for_update(Complaint, review.complaint_id, label="Complaint")
            ComplaintRatingService.check_can_rate(complaint, user)

        for field, value in validated_data.items():
            setattr(review, field, value)
        review.save(update_fields=[*validated_data, "updated_at"])

        if complaint is not None:
            ComplaintRatingService.apply_review(complaint, review)

        logger.info("Review %s updated by %s", review.pk, user.pk)
        return review

    @staticmethod
    @transaction.atomic
    def delete_review(review_id: Any, user: Any) -> None:
        """Delete a review (author or admin); clears the complaint's rating copy."""
        review = lock_for_update(Review, review_id, label="Review")
        if review.user_id != user.pk and not is_admin(user):
            raise PermissionDenied("Only the author or an administrator may delete this review.")

        complaint_id = review.complaint_id
        is_complaint_review = review.review_type == ReviewType.COMPLAINT
        review.delete()

        if is_complaint_review and complaint_id:
            complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
            ComplaintRatingService.clear_review(complaint)

        logger.info("Review %s deleted by %s", review_id, user.pk)
