"""
Departments app Service Layer.

This module is the **single source of truth** for all business logic
in the ``departments`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``DepartmentRoutingService`` — Picks the department responsible for a
  complaint category (the routing resolver).
- ``DepartmentQueryService``   — Filtered listing and retrieval.
- ``DepartmentService``        — Admin CRUD and guarded deactivation.
- ``DepartmentStaffService``   — Staff membership and head assignment,
  including the citizen ↔ provider role changes they imply.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet

from accounts.models import UserRole
from complaints.models import OPEN_STATUSES
from core.domain.access import is_admin, require_role
from core.domain.exceptions import (
    Conflict,
    DomainError,
    NoDepartmentForCategory,
    NotFound,
)
from core.domain.transactions import lock_for_update

from .models import Department, DepartmentCategory, DepartmentStaff

logger = logging.getLogger(__name__)

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  Routing Resolver
# ═══════════════════════════════════════════════════════════════════


class DepartmentRoutingService:
    """
    Selects the department that owns a new complaint.

    Candidates are the active departments whose category set contains
    the complaint's category.  Selection is first match in primary-key
    order, so repeated calls against the same data always return the
    same department.  ``location_hint`` is accepted but not consulted;
    ``select_department`` is the single place a location-aware
    tie-break would go.
    """

    @staticmethod
    def candidates(category: str) -> QuerySet[Department]:
        return (
            Department.objects
            .filter(is_active=True, categories__category=category)
            .distinct()
            .order_by("pk")
        )

    @staticmethod
    def select_department(
        candidates: QuerySet[Department],
        location_hint: tuple[float, float] | None = None,
    ) -> Department | None:
        return candidates.first()

    @staticmethod
    def resolve_department(
        category: str,
        location_hint: tuple[float, float] | None = None,
    ) -> Department:
        """
        Return the department responsible for ``category``.

        Parameters
        ----------
        category : str
            A ``ComplaintCategory`` value.
        location_hint : (longitude, latitude), optional
            Where the complaint is; currently unused by selection.

        Raises
        ------
        NoDepartmentForCategory
            When no active department services the category.
        """
        department = DepartmentRoutingService.select_department(
            DepartmentRoutingService.candidates(category),
            location_hint,
        )
        if department is None:
            raise NoDepartmentForCategory(category)

        logger.debug("Routed category %s to department %s", category, department.code)
        return department


# ═══════════════════════════════════════════════════════════════════
#  Query Service
# ═══════════════════════════════════════════════════════════════════


class DepartmentQueryService:
    """Listing and retrieval; non-admins only ever see active departments."""

    @staticmethod
    def _base_queryset() -> QuerySet[Department]:
        return Department.objects.select_related("head").prefetch_related(
            "categories", "staff__user",
        )

    @staticmethod
    def get_filtered_queryset(
        requesting_user: Any,
        filters: dict[str, Any],
    ) -> QuerySet[Department]:
        qs = DepartmentQueryService._base_queryset()

        is_active = filters.get("is_active")
        if not is_admin(requesting_user):
            qs = qs.filter(is_active=True)
        elif is_active is not None:
            qs = qs.filter(is_active=is_active)

        category = filters.get("category")
        if category:
            qs = qs.filter(categories__category=category)

        search = filters.get("search")
        if search:
            qs = qs.filter(
                Q(name__icontains=search)
                | Q(code__icontains=search)
                | Q(description__icontains=search)
            )

        return qs.distinct().order_by("pk")

    @staticmethod
    def get_department(requesting_user: Any, department_id: Any) -> Department:
        qs = DepartmentQueryService._base_queryset()
        if not is_admin(requesting_user):
            qs = qs.filter(is_active=True)
        try:
            return qs.get(pk=department_id)
        except (Department.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Department with id {department_id} not found.")


# ═══════════════════════════════════════════════════════════════════
#  Department CRUD
# ═══════════════════════════════════════════════════════════════════


class DepartmentService:
    """
    Administrator-only creation, editing and deactivation.
    """

    @staticmethod
    def _check_unique(name: str | None, code: str | None, exclude_pk: Any = None) -> None:
        qs = Department.objects.all()
        if exclude_pk is not None:
            qs = qs.exclude(pk=exclude_pk)
        conflicts = []
        if name and qs.filter(name__iexact=name).exists():
            conflicts.append("name")
        if code and qs.filter(code__iexact=code.strip()).exists():
            conflicts.append("code")
        if conflicts:
            raise Conflict(
                f"A department with the same {', '.join(conflicts)} already exists."
            )

    @staticmethod
    def _set_categories(department: Department, categories: list[str]) -> None:
        department.categories.exclude(category__in=categories).delete()
        existing = set(department.categories.values_list("category", flat=True))
        DepartmentCategory.objects.bulk_create(
            DepartmentCategory(department=department, category=c)
            for c in dict.fromkeys(categories)
            if c not in existing
        )

    @staticmethod
    @transaction.atomic
    def create_department(validated_data: dict[str, Any], performed_by: Any) -> Department:
        """
        Create a department with its category set.

        Raises
        ------
        PermissionDenied
            If the requester is not an administrator.
        Conflict
            If the name or code is already in use.
        """
        require_role(performed_by, UserRole.ADMIN)

        data = dict(validated_data)
        categories = data.pop("categories", [])
        DepartmentService._check_unique(data.get("name"), data.get("code"))

        try:
            department = Department.objects.create(**data)
        except IntegrityError:
            raise Conflict("A department with the same name or code already exists.")
        DepartmentService._set_categories(department, categories)

        logger.info(
            "Department %s created by %s (categories: %s)",
            department.code, performed_by.pk, ", ".join(categories),
        )
        return DepartmentQueryService.get_department(performed_by, department.pk)

    @staticmethod
    @transaction.atomic
    def update_department(
        department_id: Any,
        validated_data: dict[str, Any],
        performed_by: Any,
    ) -> Department:
        """
        Partially update a department.  ``categories``, when given,
        replaces the whole category set.
        """
        require_role(performed_by, UserRole.ADMIN)
        department = lock_for_update(Department, department_id, label="Department")

        data = dict(validated_data)
        categories = data.pop("categories", None)
        DepartmentService._check_unique(
            data.get("name"), data.get("code"), exclude_pk=department.pk,
        )

        for field, value in data.items():
            setattr(department, field, value)
        department.save()

        if categories is not None:
            DepartmentService._set_categories(department, categories)

        logger.info("Department %s updated by %s", department.code, performed_by.pk)
        return DepartmentQueryService.get_department(performed_by, department.pk)

    @staticmethod
    @transaction.atomic
    def deactivate_department(department_id: Any, performed_by: Any) -> Department:
        """
        Soft-delete a department.

        Raises
        ------
        Conflict
            While any complaint routed to the department is still
            submitted, under review or in progress.
        """
        require_role(performed_by, UserRole.ADMIN)
        department = lock_for_update(Department, department_id, label="Department")

        open_count = department.complaints.filter(status__in=OPEN_STATUSES).count()
        if open_count:
            raise Conflict(
                f"Department {department.code} still has {open_count} open "
                f"complaint(s) and cannot be deactivated."
            )

        department.is_active = False
        department.save(update_fields=["is_active", "updated_at"])

        logger.info("Department %s deactivated by %s", department.code, performed_by.pk)
        return department


# ═══════════════════════════════════════════════════════════════════
#  Staff Management
# ═══════════════════════════════════════════════════════════════════


class DepartmentStaffService:
    """
    Staff membership drives the provider role:

    * adding a citizen to a department's staff promotes them to
      ``provider`` and affiliates them with that department;
    * removing a provider from the last department they staff demotes
      them back to ``citizen`` unless they head an active department.
    """

    @staticmethod
    def _get_active_user(user_id: Any) -> User:
        try:
            user = User.objects.get(pk=user_id)
        except (User.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"User with id {user_id} not found.")
        if not user.is_active:
            raise DomainError(f"User {user_id} is inactive.")
        if user.role == UserRole.ADMIN or user.is_superuser:
            raise DomainError("Administrators cannot be department staff.")
        return user

    @staticmethod
    @transaction.atomic
    def add_staff(
        department_id: Any,
        user_id: Any,
        performed_by: Any,
        *,
        position: str = "",
    ) -> DepartmentStaff:
        """
        Add ``user_id`` to the department's staff.

        Raises
        ------
        NotFound
            Department or user missing.
        DomainError
            Department inactive, user inactive, or user is an admin.
        Conflict
            User is already active staff of this department.
        """
        require_role(performed_by, UserRole.ADMIN)
        department = lock_for_update(Department, department_id, label="Department")
        if not department.is_active:
            raise DomainError(f"Department {department.code} is inactive.")

        user = DepartmentStaffService._get_active_user(user_id)

        membership, created = DepartmentStaff.objects.get_or_create(
            department=department,
            user=user,
            defaults={"position": position},
        )
        if not created:
            if membership.is_active:
                raise Conflict(
                    f"User {user.pk} is already on the staff of {department.code}."
                )
            membership.is_active = True
            membership.position = position
            membership.save(update_fields=["is_active", "position"])

        user.role = UserRole.PROVIDER
        user.department = department
        user.save(update_fields=["role", "department"])

        logger.info(
            "User %s added to %s staff by %s", user.pk, department.code, performed_by.pk,
        )
        return membership

    @staticmethod
    @transaction.atomic
    def remove_staff(department_id: Any, user_id: Any, performed_by: Any) -> User:
        """
        Remove ``user_id`` from the department's active staff and settle
        their role and affiliation.

        Returns the updated user.
        """
        require_role(performed_by, UserRole.ADMIN)
        department = lock_for_update(Department, department_id, label="Department")

        try:
            membership = DepartmentStaff.objects.select_related("user").get(
                department=department, user_id=user_id, is_active=True,
            )
        except (DepartmentStaff.DoesNotExist, ValueError, TypeError):
            raise NotFound(
                f"User {user_id} is not on the staff of department {department.code}."
            )

        membership.is_active = False
        membership.save(update_fields=["is_active"])

        user = membership.user
        DepartmentStaffService._settle_role(user)

        logger.info(
            "User %s removed from %s staff by %s (now %s)",
            user.pk, department.code, performed_by.pk, user.role,
        )
        return user

    @staticmethod
    def _settle_role(user: User) -> None:
        """Re-derive role and department from remaining memberships."""
        remaining = (
            DepartmentStaff.objects
            .filter(user=user, is_active=True, department__is_active=True)
            .order_by("joined_at", "pk")
            .values_list("department_id", flat=True)
        )
        headed = (
            Department.objects
            .filter(head=user, is_active=True)
            .order_by("pk")
            .values_list("pk", flat=True)
        )

        if user.department_id in remaining:
            return
        fallback = next(iter(remaining), None) or next(iter(headed), None)
        if fallback is not None:
            user.department_id = fallback
            user.save(update_fields=["department"])
            return

        user.role = UserRole.CITIZEN
        user.department = None
        user.save(update_fields=["role", "department"])

    @staticmethod
    @transaction.atomic
    def set_head(department_id: Any, user_id: Any, performed_by: Any) -> Department:
        """
        Make ``user_id`` the department head.  A head who is not yet on
        the staff is added to it (and promoted to provider).
        """
        require_role(performed_by, UserRole.ADMIN)
        department = lock_for_update(Department, department_id, label="Department")
        if not department.is_active:
            raise DomainError(f"Department {department.code} is inactive.")

        user = DepartmentStaffService._get_active_user(user_id)

        is_staff = DepartmentStaff.objects.filter(
            department=department, user=user, is_active=True,
        ).exists()
        if not is_staff:
            DepartmentStaffService.add_staff(
                department.pk, user.pk, performed_by, position="Head of Department",
            )

        department.head = user
        department.save(update_fields=["head", "updated_at"])

        logger.info("User %s set as head of %s by %s", user.pk, department.code, performed_by.pk)
        return DepartmentQueryService.get_department(performed_by, department.pk)
