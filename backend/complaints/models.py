"""
Complaints app models.

Covers a citizen complaint from submission, through routing to a
department and assignment to a provider, to resolution, closure and
rating.  Progress notes and attachment references hang off the
complaint as ordered child rows.
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ComplaintCategory(models.TextChoices):
    """Public-service area a complaint is about; drives routing."""

    ELECTRICITY = "electricity", "Electricity"
    WATER = "water", "Water Supply"
    ROADS = "roads", "Roads"
    SANITATION = "sanitation", "Sanitation"
    STREET_LIGHTS = "street_lights", "Street Lights"
    DRAINAGE = "drainage", "Drainage"
    PUBLIC_TRANSPORT = "public_transport", "Public Transport"
    OTHER = "other", "Other"


class ComplaintStatus(models.TextChoices):
    """
    Linear lifecycle.  Declaration order is the transition order:
    each status may only be followed by the next one (administrators
    may force any move).
    """

    SUBMITTED = "submitted", "Submitted"
    UNDER_REVIEW = "under_review", "Under Review"
    IN_PROGRESS = "in_progress", "In Progress"
    RESOLVED = "resolved", "Resolved"
    CLOSED = "closed", "Closed"


class ComplaintPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class UpdateType(models.TextChoices):
    STATUS_CHANGE = "status_change", "Status Change"
    PROGRESS_UPDATE = "progress_update", "Progress Update"
    MESSAGE = "message", "Message"


class AttachmentType(models.TextChoices):
    IMAGE = "image", "Image"
    VIDEO = "video", "Video"
    DOCUMENT = "document", "Document"


# Statuses that still need work; departments referenced by these
# complaints cannot be deactivated.
OPEN_STATUSES = (
    ComplaintStatus.SUBMITTED,
    ComplaintStatus.UNDER_REVIEW,
    ComplaintStatus.IN_PROGRESS,
)


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Complaint(TimeStampedModel):
    """
    A service issue reported by a citizen.

    * ``department`` is chosen by the routing resolver at creation and
      never left empty.
    * ``resolved_at`` and ``actual_resolution_time`` are set exactly
      while ``status`` is ``resolved``.
    * ``rating`` / ``feedback`` mirror the submitter's complaint review
      and are written only by the rating gate.
    * Complaints are never deleted; ``is_archived`` hides them.
    """

    title = models.CharField(
        max_length=200,
        verbose_name="Title",
    )
    description = models.TextField(
        verbose_name="Description",
    )
    category = models.CharField(
        max_length=20,
        choices=ComplaintCategory.choices,
        verbose_name="Category",
        db_index=True,
    )
    status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        default=ComplaintStatus.SUBMITTED,
        verbose_name="Status",
        db_index=True,
    )
    priority = models.CharField(
        max_length=10,
        choices=ComplaintPriority.choices,
        default=ComplaintPriority.MEDIUM,
        verbose_name="Priority",
        db_index=True,
    )
    is_emergency = models.BooleanField(
        default=False,
        verbose_name="Emergency",
        help_text="Forces critical priority at creation.",
    )

    # ── Location ────────────────────────────────────────────────────
    longitude = models.FloatField(verbose_name="Longitude")
    latitude = models.FloatField(verbose_name="Latitude")
    address = models.CharField(max_length=500, verbose_name="Address")
    city = models.CharField(max_length=100, blank=True, default="", verbose_name="City")
    region = models.CharField(max_length=100, blank=True, default="", verbose_name="Region")
    postal_code = models.CharField(max_length=20, blank=True, default="", verbose_name="Postal Code")

    # ── Routing / assignment ────────────────────────────────────────
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="submitted_complaints",
        verbose_name="Submitted By",
    )
    department = models.ForeignKey(
        "departments.Department",
        on_delete=models.PROTECT,
        related_name="complaints",
        verbose_name="Department",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_complaints",
        verbose_name="Assigned Provider",
    )

    # ── Resolution ──────────────────────────────────────────────────
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Resolved At",
    )
    actual_resolution_time = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name="Actual Resolution Time (hours)",
    )
    estimated_resolution_time = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name="Estimated Resolution Time (hours)",
    )
    rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name="Rating",
    )
    feedback = models.TextField(
        blank=True,
        default="",
        verbose_name="Feedback",
    )

    # ── Visibility / engagement ─────────────────────────────────────
    tags = models.JSONField(default=list, blank=True, verbose_name="Tags")
    is_public = models.BooleanField(default=True, verbose_name="Public")
    is_archived = models.BooleanField(default=False, verbose_name="Archived", db_index=True)
    view_count = models.PositiveIntegerField(default=0, verbose_name="View Count")
    upvoters = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="upvoted_complaints",
        verbose_name="Upvoted By",
    )

    class Meta:
        verbose_name = "Complaint"
        verbose_name_plural = "Complaints"
        ordering = ["-created_at", "-pk"]
        indexes = [
            models.Index(fields=["status", "category"]),
            models.Index(fields=["department", "status"]),
        ]

    def __str__(self):
        return f"Complaint #{self.pk} — {self.title}"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


class ComplaintUpdate(TimeStampedModel):
    """
    Append-only history entry on a complaint: every status transition
    plus free-text progress notes.  Internal notes are visible to staff
    only and are never broadcast.
    """

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="updates",
        verbose_name="Complaint",
    )
    message = models.TextField(verbose_name="Message")
    update_type = models.CharField(
        max_length=20,
        choices=UpdateType.choices,
        default=UpdateType.MESSAGE,
        verbose_name="Type",
    )
    is_internal = models.BooleanField(default=False, verbose_name="Internal")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="complaint_updates",
        verbose_name="Created By",
    )

    class Meta:
        verbose_name = "Complaint Update"
        verbose_name_plural = "Complaint Updates"
        ordering = ["created_at", "pk"]

    def __str__(self):
        return f"Complaint #{self.complaint_id} [{self.update_type}]: {self.message[:40]}"


class ComplaintAttachment(TimeStampedModel):
    """
    Reference to a file held by external blob storage.  Only the URL and
    metadata are stored here, never the bytes.
    """

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="attachments",
        verbose_name="Complaint",
    )
    filename = models.CharField(max_length=255, verbose_name="File Name")
    url = models.URLField(max_length=500, verbose_name="URL")
    file_type = models.CharField(
        max_length=10,
        choices=AttachmentType.choices,
        verbose_name="File Type",
    )
    size = models.PositiveIntegerField(verbose_name="Size (bytes)")
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="complaint_attachments",
        verbose_name="Uploaded By",
    )

    class Meta:
        verbose_name = "Complaint Attachment"
        verbose_name_plural = "Complaint Attachments"
        ordering = ["created_at", "pk"]

    def __str__(self):
        return f"{self.filename} on Complaint #{self.complaint_id}"
