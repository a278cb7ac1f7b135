"""
Departments app models.

A department is the organisational unit a complaint is routed to.  It
declares the complaint categories it services, its contact details and
opening hours, and the providers on its staff.
"""

from django.conf import settings
from django.db import models

from complaints.models import ComplaintCategory
from core.models import TimeStampedModel


class Department(TimeStampedModel):
    """
    Organisational unit responsible for one or more complaint categories.

    * ``code`` is stored upper-cased.
    * Departments are deactivated, never deleted; inactive departments
      are ignored by routing.
    * ``service_areas`` (named GeoJSON polygons) is recorded but not
      consulted by routing.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Name",
    )
    code = models.CharField(
        max_length=10,
        unique=True,
        verbose_name="Code",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )

    # ── Contact info ────────────────────────────────────────────────
    email = models.EmailField(blank=True, default="", verbose_name="Email")
    phone = models.CharField(max_length=20, blank=True, default="", verbose_name="Phone")
    address = models.CharField(max_length=500, blank=True, default="", verbose_name="Address")
    website = models.URLField(blank=True, default="", verbose_name="Website")
    emergency_contact = models.CharField(
        max_length=20,
        blank=True,
        default="",
        verbose_name="Emergency Contact",
    )

    working_hours = models.JSONField(
        default=dict,
        blank=True,
        verbose_name="Working Hours",
        help_text='Day → {"start": "09:00", "end": "17:00", "is_closed": false}.',
    )
    service_areas = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Service Areas",
        help_text='List of {"name": ..., "polygon": {GeoJSON Polygon}}.',
    )

    head = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="headed_departments",
        verbose_name="Head",
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name="Active",
        db_index=True,
    )

    class Meta:
        verbose_name = "Department"
        verbose_name_plural = "Departments"
        ordering = ["pk"]

    def __str__(self):
        return f"{self.code} — {self.name}"

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def category_values(self) -> list[str]:
        return sorted(c.category for c in self.categories.all())


class DepartmentCategory(models.Model):
    """One complaint category serviced by a department."""

    department = models.ForeignKey(
        Department,
        on_delete=models.CASCADE,
        related_name="categories",
        verbose_name="Department",
    )
    category = models.CharField(
        max_length=20,
        choices=ComplaintCategory.choices,
        verbose_name="Category",
        db_index=True,
    )

    class Meta:
        verbose_name = "Department Category"
        verbose_name_plural = "Department Categories"
        unique_together = [("department", "category")]

    def __str__(self):
        return f"{self.department.code}: {self.category}"


class DepartmentStaff(models.Model):
    """
    Membership of a user in a department's staff.

    Removing a member flips ``is_active`` rather than deleting the row so
    the staffing history survives.
    """

    department = models.ForeignKey(
        Department,
        on_delete=models.CASCADE,
        related_name="staff",
        verbose_name="Department",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="staff_memberships",
        verbose_name="User",
    )
    position = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="Position",
    )
    joined_at = models.DateTimeField(auto_now_add=True, verbose_name="Joined At")
    is_active = models.BooleanField(default=True, verbose_name="Active")

    class Meta:
        verbose_name = "Department Staff Member"
        verbose_name_plural = "Department Staff"
        unique_together = [("department", "user")]
        ordering = ["joined_at", "pk"]

    def __str__(self):
        return f"{self.user} @ {self.department.code}"
