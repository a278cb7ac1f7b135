"""
Accounts app models.

Defines the custom User model that extends Django's ``AbstractUser``.
Every user holds exactly one of three capability roles; providers are
additionally affiliated with the department whose staff they belong to.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    CITIZEN = "citizen", "Citizen"
    PROVIDER = "provider", "Service Provider"
    ADMIN = "admin", "Administrator"


class User(AbstractUser):
    """
    Custom user model for the complaint tracker.

    Registration requires username, password, email, first_name and
    last_name; ``phone_number`` is optional but unique when given.
    Login is supported via the username *or* the email together with the
    password.

    New users always register as ``citizen``.  A citizen becomes a
    ``provider`` when an administrator adds them to a department's staff,
    and reverts to ``citizen`` once removed from every department.
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    phone_number = models.CharField(
        max_length=15,
        unique=True,
        null=True,
        blank=True,
        verbose_name="Phone Number",
    )
    role = models.CharField(
        max_length=10,
        choices=UserRole.choices,
        default=UserRole.CITIZEN,
        db_index=True,
        verbose_name="Role",
    )
    department = models.ForeignKey(
        "departments.Department",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="providers",
        verbose_name="Department",
        help_text="Only meaningful for providers.",
    )

    REQUIRED_FIELDS = ["email", "first_name", "last_name"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_full_name()}) - {self.role}"

    # ── Helper predicates for role checks ────────────────────────────

    @property
    def is_citizen(self) -> bool:
        return self.role == UserRole.CITIZEN

    @property
    def is_provider(self) -> bool:
        return self.role == UserRole.PROVIDER

    @property
    def is_admin(self) -> bool:
        return self.is_superuser or self.role == UserRole.ADMIN
