"""
Reviews app models.

A ``Review`` is either about one resolved complaint (written by the
citizen who submitted it) or about the service in general ("system"
review, tagged with a complaint category).  The complaint-type review is
the record behind ``Complaint.rating``.
"""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from core.constants import MAX_RATING, MIN_RATING
from core.models import TimeStampedModel


class ReviewType(models.TextChoices):
    COMPLAINT = "complaint", "Complaint"
    SYSTEM = "system", "System"


class Review(TimeStampedModel):
    """
    A 1-5 star review.

    ``department`` and ``service_provider`` are copied from the complaint
    when the review is written so that aggregates survive reassignment.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reviews",
        verbose_name="Author",
    )
    complaint = models.ForeignKey(
        "complaints.Complaint",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="reviews",
        verbose_name="Complaint",
    )
    review_type = models.CharField(
        max_length=10,
        choices=ReviewType.choices,
        default=ReviewType.COMPLAINT,
        db_index=True,
        verbose_name="Type",
    )
    department = models.ForeignKey(
        "departments.Department",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviews",
        verbose_name="Department",
    )
    service_provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="received_reviews",
        verbose_name="Service Provider",
    )
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(MIN_RATING), MaxValueValidator(MAX_RATING)],
        verbose_name="Rating",
    )
    title = models.CharField(max_length=200, blank=True, default="", verbose_name="Title")
    content = models.TextField(blank=True, default="", verbose_name="Content")
    category = models.CharField(
        max_length=30,
        blank=True,
        default="",
        verbose_name="Category",
        help_text="Complaint category the review concerns.",
    )
    is_anonymous = models.BooleanField(default=False, verbose_name="Anonymous")
    tags = models.JSONField(default=list, blank=True, verbose_name="Tags")

    class Meta:
        verbose_name = "Review"
        verbose_name_plural = "Reviews"
        ordering = ["-created_at", "-pk"]
        constraints = [
            models.UniqueConstraint(
                fields=["complaint", "user"],
                condition=Q(review_type="complaint"),
                name="unique_complaint_review_per_user",
            ),
        ]

    def __str__(self) -> str:
        target = f"complaint #{self.complaint_id}" if self.complaint_id else "system"
        return f"{self.rating}★ by {self.user_id} on {target}"
