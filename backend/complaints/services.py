"""
Complaints app Service Layer.

This module is the **single source of truth** for all business logic
in the ``complaints`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``ComplaintQueryService``      — Role-scoped listing, detail, "mine",
  "assigned" and radius search.
- ``ComplaintCreationService``   — Routing + initial state + broadcast.
- ``ComplaintLifecycleService``  — Status transitions and resolution
  bookkeeping.
- ``ComplaintAssignmentService`` — Provider assignment and department
  reassignment.
- ``ComplaintUpdateService``     — Progress notes.
- ``ComplaintAttachmentService`` — Blob reference registration.
- ``ComplaintEngagementService`` — Edits, archive and upvotes.
- ``ComplaintRatingService``     — The resolved-only rating gate.

Every state change runs inside ``transaction.atomic`` with the complaint
row locked, and publishes its event through the notification publisher;
delivery happens after commit.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from accounts.models import UserRole
from core.constants import (
    EARTH_RADIUS_KM,
    MAX_ATTACHMENTS_PER_COMPLAINT,
)
from core.domain.access import (
    ScopeRules,
    apply_role_scope,
    get_user_role_name,
    is_admin,
    require_role,
)
from core.domain.events import (
    AssignmentChanged,
    ComplaintCreated,
    StatusChanged,
    UpdateAdded,
)
from core.domain.exceptions import (
    DomainError,
    InvalidProvider,
    InvalidStatus,
    InvalidTransition,
    NotFound,
    NotOwner,
    NotResolvableYet,
    PermissionDenied,
)
from core.domain.notifications import get_publisher
from core.domain.transactions import lock_for_update
from departments.models import Department
from departments.services import DepartmentRoutingService
from reviews.models import Review, ReviewType

from .models import (
    Complaint,
    ComplaintAttachment,
    ComplaintPriority,
    ComplaintStatus,
    ComplaintUpdate,
    UpdateType,
)

logger = logging.getLogger(__name__)

User = get_user_model()

# ── Lifecycle ───────────────────────────────────────────────────────
# Each status may only be followed by the next one; ``closed`` is final.
NEXT_STATUS: dict[str, str] = {
    ComplaintStatus.SUBMITTED: ComplaintStatus.UNDER_REVIEW,
    ComplaintStatus.UNDER_REVIEW: ComplaintStatus.IN_PROGRESS,
    ComplaintStatus.IN_PROGRESS: ComplaintStatus.RESOLVED,
    ComplaintStatus.RESOLVED: ComplaintStatus.CLOSED,
}

# Position of each status in the lifecycle, in declaration order.
STATUS_RANK: dict[str, int] = {value: rank for rank, value in enumerate(ComplaintStatus.values)}

STAFF_ROLES = (UserRole.PROVIDER, UserRole.ADMIN)

# ── Role-scoped visibility ──────────────────────────────────────────
_COMPLAINT_SCOPE_RULES: ScopeRules = {
    UserRole.ADMIN: lambda qs, u: qs,
    UserRole.PROVIDER: lambda qs, u: qs.filter(
        Q(department_id=u.department_id) | Q(assigned_to=u) | Q(submitted_by=u)
    ),
    UserRole.CITIZEN: lambda qs, u: qs.filter(Q(submitted_by=u) | Q(is_public=True)),
}


def _has_staff_access(actor: Any, complaint: Complaint) -> bool:
    """Admins always; providers for their department's or their own assignments."""
    role = get_user_role_name(actor)
    if role == UserRole.ADMIN:
        return True
    if role != UserRole.PROVIDER:
        return False
    return (
        complaint.assigned_to_id == actor.pk
        or (actor.department_id is not None and complaint.department_id == actor.department_id)
    )


def _require_staff_access(actor: Any, complaint: Complaint) -> None:
    require_role(actor, *STAFF_ROLES)
    if not _has_staff_access(actor, complaint):
        raise PermissionDenied(
            f"Complaint {complaint.pk} belongs to another department."
        )


def haversine_km(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    """Great-circle distance between two (longitude, latitude) points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


# ═══════════════════════════════════════════════════════════════════
#  Complaint Query Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintQueryService:
    """
    Constructs filtered, role-scoped querysets for listing complaints.

    Visibility
    ----------
    * admin    — everything, archived included on request.
    * provider — their department's complaints, their assignments, and
      their own submissions.
    * citizen  — their own complaints plus public ones.
    """

    @staticmethod
    def _base_queryset() -> QuerySet[Complaint]:
        return Complaint.objects.select_related(
            "submitted_by", "assigned_to", "department",
        )

    @staticmethod
    def get_filtered_queryset(
        requesting_user: Any,
        filters: dict[str, Any],
    ) -> QuerySet[Complaint]:
        qs = apply_role_scope(
            ComplaintQueryService._base_queryset(),
            requesting_user,
            scope_rules=_COMPLAINT_SCOPE_RULES,
            default="none",
        )

        if not (filters.get("include_archived") and is_admin(requesting_user)):
            qs = qs.filter(is_archived=False)

        for field in ("status", "category", "priority"):
            value = filters.get(field)
            if value:
                qs = qs.filter(**{field: value})

        department = filters.get("department")
        if department is not None:
            qs = qs.filter(department_id=department)

        assigned_to = filters.get("assigned_to")
        if assigned_to is not None:
            qs = qs.filter(assigned_to_id=assigned_to)

        is_emergency = filters.get("is_emergency")
        if is_emergency is not None:
            qs = qs.filter(is_emergency=is_emergency)

        tag = filters.get("tag")
        if tag:
            # JSON containment is not available on SQLite; filter in Python
            # only over the candidate ids.
            ids = [pk for pk, tags in qs.values_list("pk", "tags") if tag in (tags or [])]
            qs = qs.filter(pk__in=ids)

        search = filters.get("search")
        if search:
            qs = qs.filter(
                Q(title__icontains=search)
                | Q(description__icontains=search)
                | Q(address__icontains=search)
            )

        created_after = filters.get("created_after")
        if created_after is not None:
            qs = qs.filter(created_at__date__gte=created_after)

        created_before = filters.get("created_before")
        if created_before is not None:
            qs = qs.filter(created_at__date__lte=created_before)

        return qs

    @staticmethod
    def get_complaint_detail(
        requesting_user: Any,
        complaint_id: Any,
        *,
        count_view: bool = False,
    ) -> Complaint:
        """
        Return a complaint visible to the requesting user.

        When ``count_view`` is set and the viewer is not the submitter,
        ``view_count`` is incremented atomically.

        Raises
        ------
        NotFound
            Missing, archived (for non-admins), or outside the user's scope.
        """
        qs = apply_role_scope(
            ComplaintQueryService._base_queryset().prefetch_related(
                "updates__created_by", "attachments", "upvoters",
            ),
            requesting_user,
            scope_rules=_COMPLAINT_SCOPE_RULES,
        )
        if not is_admin(requesting_user):
            qs = qs.filter(is_archived=False)

        try:
            complaint = qs.get(pk=complaint_id)
        except (Complaint.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Complaint with id {complaint_id} not found.")

        if count_view and complaint.submitted_by_id != requesting_user.pk:
            Complaint.objects.filter(pk=complaint.pk).update(view_count=F("view_count") + 1)
            complaint.view_count += 1

        return complaint

    @staticmethod
    def can_view_internal(requesting_user: Any, complaint: Complaint) -> bool:
        return _has_staff_access(requesting_user, complaint)

    @staticmethod
    def get_my_complaints(requesting_user: Any) -> QuerySet[Complaint]:
        return ComplaintQueryService._base_queryset().filter(
            submitted_by=requesting_user, is_archived=False,
        )

    @staticmethod
    def get_assigned_complaints(
        requesting_user: Any,
        status: str | None = None,
    ) -> QuerySet[Complaint]:
        """The provider's work queue."""
        require_role(requesting_user, *STAFF_ROLES)
        qs = ComplaintQueryService._base_queryset().filter(
            assigned_to=requesting_user, is_archived=False,
        )
        if status:
            qs = qs.filter(status=status)
        return qs

    @staticmethod
    def get_nearby(
        requesting_user: Any,
        *,
        longitude: float,
        latitude: float,
        radius_km: float,
    ) -> list[Complaint]:
        """
        Visible complaints within ``radius_km`` of a point, nearest first.

        A bounding box narrows the candidates in the database; the exact
        haversine distance is computed for the survivors and attached as
        ``distance_km``.
        """
        d_lat = math.degrees(radius_km / EARTH_RADIUS_KM)
        cos_lat = max(math.cos(math.radians(latitude)), 1e-6)
        d_lon = min(math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat)), 180.0)

        qs = ComplaintQueryService.get_filtered_queryset(requesting_user, {}).filter(
            latitude__gte=latitude - d_lat,
            latitude__lte=latitude + d_lat,
        )
        if d_lon < 180.0:
            qs = qs.filter(
                longitude__gte=longitude - d_lon,
                longitude__lte=longitude + d_lon,
            )

        results = []
        for complaint in qs:
            distance = haversine_km(longitude, latitude, complaint.longitude, complaint.latitude)
            if distance <= radius_km:
                complaint.distance_km = round(distance, 3)
                results.append(complaint)
        results.sort(key=lambda c: (c.distance_km, -c.pk))
        return results


# ═══════════════════════════════════════════════════════════════════
#  Complaint Creation Service
# ═══════════════════════════════════════════════════════════════════


class ComplaintCreationService:
    """
    Handles the creation of new complaints.

    Flow: routing resolver picks the department → the complaint is
    stored as ``submitted`` with its first history entry → admins (and
    providers, for emergencies) are notified.
    """

    @staticmethod
    @transaction.atomic
    def create_complaint(validated_data: dict[str, Any], requesting_user: Any) -> Complaint:
        """
        Create a complaint on behalf of ``requesting_user``.

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``ComplaintCreateSerializer``: ``title``,
            ``description``, ``category``, location fields, optional
            ``priority``, ``is_emergency``, ``tags``, ``is_public``,
            ``attachments``.
        requesting_user : User

        Returns
        -------
        Complaint

        Raises
        ------
        NoDepartmentForCategory
            Nothing is written when routing fails.
        """
        data = dict(validated_data)
        attachments = data.pop("attachments", [])

        department = DepartmentRoutingService.resolve_department(
            data["category"],
            (data["longitude"], data["latitude"]),
        )

        if data.get("is_emergency"):
            data["priority"] = ComplaintPriority.CRITICAL

        complaint = Complaint.objects.create(
            **data,
            status=ComplaintStatus.SUBMITTED,
            department=department,
            submitted_by=requesting_user,
        )
        ComplaintUpdate.objects.create(
            complaint=complaint,
            message="Complaint submitted",
            update_type=UpdateType.STATUS_CHANGE,
            created_by=requesting_user,
        )
        for attachment in attachments:
            ComplaintAttachment.objects.create(
                complaint=complaint, uploaded_by=requesting_user, **attachment,
            )

        get_publisher().publish(
            ComplaintCreated(
                complaint_id=complaint.pk,
                title=complaint.title,
                category=complaint.category,
                priority=complaint.priority,
                is_emergency=complaint.is_emergency,
                department_id=department.pk,
                submitted_by=requesting_user.pk,
            )
        )

        logger.info(
            "Complaint %s created by %s (category=%s, department=%s, priority=%s)",
            complaint.pk, requesting_user.pk, complaint.category,
            department.code, complaint.priority,
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Lifecycle Controller
# ═══════════════════════════════════════════════════════════════════


class ComplaintLifecycleService:
    """
    Enforces the linear status lifecycle::

        submitted → under_review → in_progress → resolved → closed

    Providers may only move a complaint one step forward.  Administrators
    may force any other move; forced moves are logged at WARNING.

    Entering ``resolved`` stamps ``resolved_at`` and the whole-hour
    ``actual_resolution_time``; any other status clears both, so the two
    fields are set exactly while the complaint is resolved.
    """

    @staticmethod
    def can_transition(current: str, target: str) -> bool:
        return NEXT_STATUS.get(current) == target

    @staticmethod
    @transaction.atomic
    def transition(
        complaint_id: Any,
        new_status: str,
        actor: Any,
        message: str = "",
    ) -> Complaint:
        """
        Move a complaint to ``new_status``.

        Raises
        ------
        InvalidStatus
            ``new_status`` is not a ``ComplaintStatus`` value.
        NotFound
            The complaint does not exist.
        PermissionDenied
            Actor is not staff for this complaint.
        InvalidTransition
            Not the next status and the actor is not an administrator.
        """
        if new_status not in ComplaintStatus.values:
            raise InvalidStatus(new_status)
        require_role(actor, *STAFF_ROLES)

        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
        _require_staff_access(actor, complaint)
        return ComplaintLifecycleService.apply_transition(
            complaint, new_status, actor, message,
        )

    @staticmethod
    def apply_transition(
        complaint: Complaint,
        new_status: str,
        actor: Any,
        message: str = "",
    ) -> Complaint:
        """
        Apply a transition to an already-locked complaint.

        Must run inside the caller's ``atomic`` block.
        """
        old_status = complaint.status
        if new_status == old_status:
            raise InvalidTransition(
                current=old_status,
                target=new_status,
                reason="the complaint is already in that status",
            )

        if not ComplaintLifecycleService.can_transition(old_status, new_status):
            if not is_admin(actor):
                expected = NEXT_STATUS.get(old_status)
                reason = (
                    f"only '{expected}' may follow '{old_status}'"
                    if expected else f"'{old_status}' is final"
                )
                raise InvalidTransition(
                    current=old_status, target=new_status, reason=reason,
                )
            logger.warning(
                "Admin %s forced complaint %s from %s to %s",
                actor.pk, complaint.pk, old_status, new_status,
            )

        complaint.status = new_status
        if new_status == ComplaintStatus.RESOLVED:
            if complaint.resolved_at is None:
                complaint.resolved_at = timezone.now()
            elapsed = complaint.resolved_at - complaint.created_at
            complaint.actual_resolution_time = max(
                int(elapsed.total_seconds() // 3600), 0,
            )
        else:
            complaint.resolved_at = None
            complaint.actual_resolution_time = None

        complaint.save(update_fields=[
            "status", "resolved_at", "actual_resolution_time", "updated_at",
        ])

        if (
            STATUS_RANK[old_status] >= STATUS_RANK[ComplaintStatus.RESOLVED]
            > STATUS_RANK[new_status]
        ):
            ComplaintRatingService.withdraw_rating(complaint)

        ComplaintUpdate.objects.create(
            complaint=complaint,
            message=message or f"Status changed from {old_status} to {new_status}",
            update_type=UpdateType.STATUS_CHANGE,
            created_by=actor,
        )

        get_publisher().publish(
            StatusChanged(
                complaint_id=complaint.pk,
                old_status=old_status,
                new_status=new_status,
                actor_id=actor.pk,
            )
        )

        logger.info(
            "Complaint %s: %s -> %s by %s",
            complaint.pk, old_status, new_status, actor.pk,
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Assignment Manager
# ═══════════════════════════════════════════════════════════════════


class ComplaintAssignmentService:
    """
    Binds complaints to providers.

    Assigning the current assignee again is a no-op and publishes
    nothing.  A ``submitted`` complaint moves to ``under_review`` on
    assignment.  The complaint follows the provider into their department.
    """

    @staticmethod
    def _get_provider(provider_id: Any) -> User:
        try:
            provider = User.objects.get(pk=provider_id)
        except (User.DoesNotExist, ValueError, TypeError):
            raise InvalidProvider(provider_id)
        if not provider.is_active or provider.role != UserRole.PROVIDER:
            raise InvalidProvider(provider_id)
        return provider

    @staticmethod
    @transaction.atomic
    def assign(complaint_id: Any, provider_id: Any, actor: Any) -> Complaint:
        """
        Assign ``provider_id`` to the complaint.

        Raises
        ------
        NotFound
            The complaint does not exist.
        InvalidProvider
            The target is missing, inactive or not a provider.
        PermissionDenied
            Actor is not staff for this complaint.
        DomainError
            The complaint is already closed.
        """
        require_role(actor, *STAFF_ROLES)
        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
        provider = ComplaintAssignmentService._get_provider(provider_id)
        _require_staff_access(actor, complaint)

        if complaint.assigned_to_id == provider.pk:
            logger.debug(
                "Complaint %s already assigned to %s", complaint.pk, provider.pk,
            )
            return complaint

        if complaint.status == ComplaintStatus.CLOSED:
            raise DomainError(f"Complaint {complaint.pk} is closed and cannot be reassigned.")

        complaint.assigned_to = provider
        update_fields = ["assigned_to", "updated_at"]
        if provider.department_id and provider.department_id != complaint.department_id:
            complaint.department_id = provider.department_id
            update_fields.append("department")
        complaint.save(update_fields=update_fields)

        if complaint.status == ComplaintStatus.SUBMITTED:
            ComplaintLifecycleService.apply_transition(
                complaint,
                ComplaintStatus.UNDER_REVIEW,
                actor,
                message=f"Assigned to {provider.get_full_name() or provider.username}",
            )

        get_publisher().publish(
            AssignmentChanged(
                complaint_id=complaint.pk,
                provider_id=provider.pk,
                actor_id=actor.pk,
            )
        )

        logger.info(
            "Complaint %s assigned to provider %s by %s",
            complaint.pk, provider.pk, actor.pk,
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def reassign_department(complaint_id: Any, department_id: Any, actor: Any) -> Complaint:
        """
        Move a complaint to another department (administrators only).

        The current assignee is dropped unless they are affiliated with
        the new department.  An internal history note records the move.
        """
        require_role(actor, UserRole.ADMIN)
        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")

        try:
            department = Department.objects.get(pk=department_id)
        except (Department.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Department with id {department_id} not found.")
        if not department.is_active:
            raise DomainError(f"Department {department.code} is inactive.")

        if complaint.department_id == department.pk:
            return complaint

        old_department_id = complaint.department_id
        complaint.department = department
        if complaint.assigned_to_id and complaint.assigned_to.department_id != department.pk:
            complaint.assigned_to = None
        complaint.save(update_fields=["department", "assigned_to", "updated_at"])

        ComplaintUpdate.objects.create(
            complaint=complaint,
            message=f"Reassigned from department {old_department_id} to {department.code}",
            update_type=UpdateType.MESSAGE,
            is_internal=True,
            created_by=actor,
        )

        logger.info(
            "Complaint %s moved from department %s to %s by %s",
            complaint.pk, old_department_id, department.pk, actor.pk,
        )
        return complaint


# ═══════════════════════════════════════════════════════════════════
#  Updates (progress notes)
# ═══════════════════════════════════════════════════════════════════


class ComplaintUpdateService:
    """
    Progress notes on a complaint.

    Staff may post progress updates and messages, optionally internal.
    The submitter may post public messages only.  ``status_change``
    entries are written exclusively by the lifecycle controller.
    """

    @staticmethod
    def list_updates(requesting_user: Any, complaint_id: Any) -> QuerySet[ComplaintUpdate]:
        complaint = ComplaintQueryService.get_complaint_detail(requesting_user, complaint_id)
        qs = complaint.updates.select_related("created_by").order_by("created_at", "pk")
        if not _has_staff_access(requesting_user, complaint):
            qs = qs.filter(is_internal=False)
        return qs

    @staticmethod
    @transaction.atomic
    def add_update(
        complaint_id: Any,
        actor: Any,
        *,
        message: str,
        update_type: str | None = None,
        is_internal: bool = False,
    ) -> ComplaintUpdate:
        """
        Append a note to the complaint history.

        ``update_type`` defaults to ``progress_update`` for staff and
        ``message`` for the submitter.
        """
        if update_type == UpdateType.STATUS_CHANGE:
            raise DomainError("Status changes are recorded by transitions only.")

        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")

        is_staff = _has_staff_access(actor, complaint)
        if update_type is None:
            update_type = UpdateType.PROGRESS_UPDATE if is_staff else UpdateType.MESSAGE

        if not is_staff:
            if complaint.submitted_by_id != actor.pk:
                raise NotOwner(complaint.pk)
            if is_internal or update_type != UpdateType.MESSAGE:
                raise PermissionDenied("Citizens may only post public messages.")

        update = ComplaintUpdate.objects.create(
            complaint=complaint,
            message=message,
            update_type=update_type,
            is_internal=is_internal,
            created_by=actor,
        )
        complaint.save(update_fields=["updated_at"])

        if not is_internal:
            get_publisher().publish(
                UpdateAdded(
                    complaint_id=complaint.pk,
                    update_id=update.pk,
                    message=update.message,
                    update_type=update.update_type,
                    actor_id=actor.pk,
                )
            )

        logger.info(
            "Update %s (%s%s) added to complaint %s by %s",
            update.pk, update_type, ", internal" if is_internal else "",
            complaint.pk, actor.pk,
        )
        return update


# ═══════════════════════════════════════════════════════════════════
#  Attachments
# ═══════════════════════════════════════════════════════════════════


class ComplaintAttachmentService:
    """Registers references to files already uploaded to blob storage."""

    @staticmethod
    def list_attachments(requesting_user: Any, complaint_id: Any) -> QuerySet[ComplaintAttachment]:
        complaint = ComplaintQueryService.get_complaint_detail(requesting_user, complaint_id)
        return complaint.attachments.order_by("created_at", "pk")

    @staticmethod
    @transaction.atomic
    def add_attachment(
        complaint_id: Any,
        actor: Any,
        validated_data: dict[str, Any],
    ) -> ComplaintAttachment:
        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
        if complaint.submitted_by_id != actor.pk and not _has_staff_access(actor, complaint):
            raise NotOwner(complaint.pk)

        if complaint.attachments.count() >= MAX_ATTACHMENTS_PER_COMPLAINT:
            raise DomainError(
                f"Complaint {complaint.pk} already has the maximum of "
                f"{MAX_ATTACHMENTS_PER_COMPLAINT} attachments."
            )

        attachment = ComplaintAttachment.objects.create(
            complaint=complaint, uploaded_by=actor, **validated_data,
        )
        logger.info("Attachment %s added to complaint %s", attachment.pk, complaint.pk)
        return attachment


# ═══════════════════════════════════════════════════════════════════
#  Engagement: edits, archive, upvotes
# ═══════════════════════════════════════════════════════════════════


class ComplaintEngagementService:
    """
    Mutations outside the lifecycle.

    * Owner or admin: ``tags``, ``is_public``.
    * Staff: ``priority``, ``estimated_resolution_time``.
    * Owner or admin: archive (the only form of delete).
    * Any user who can see the complaint: upvote toggle.
    """

    OWNER_FIELDS = frozenset({"tags", "is_public"})
    STAFF_FIELDS = frozenset({"priority", "estimated_resolution_time"})

    @staticmethod
    @transaction.atomic
    def update_complaint(
        complaint_id: Any,
        actor: Any,
        validated_data: dict[str, Any],
    ) -> Complaint:
        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
        is_owner = complaint.submitted_by_id == actor.pk

        fields = set(validated_data)
        if fields & ComplaintEngagementService.OWNER_FIELDS and not (is_owner or is_admin(actor)):
            raise NotOwner(complaint.pk)
        if fields & ComplaintEngagementService.STAFF_FIELDS:
            _require_staff_access(actor, complaint)

        for field, value in validated_data.items():
            setattr(complaint, field, value)
        complaint.save(update_fields=[*validated_data, "updated_at"])

        logger.info(
            "Complaint %s updated by %s (%s)",
            complaint.pk, actor.pk, ", ".join(sorted(fields)),
        )
        return complaint

    @staticmethod
    @transaction.atomic
    def archive_complaint(complaint_id: Any, actor: Any) -> Complaint:
        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
        if complaint.submitted_by_id != actor.pk and not is_admin(actor):
            raise NotOwner(complaint.pk)

        complaint.is_archived = True
        complaint.save(update_fields=["is_archived", "updated_at"])
        logger.info("Complaint %s archived by %s", complaint.pk, actor.pk)
        return complaint

    @staticmethod
    @transaction.atomic
    def toggle_upvote(complaint_id: Any, user: Any) -> tuple[Complaint, bool]:
        """Add or remove the user's upvote; returns ``(complaint, upvoted)``."""
        complaint = ComplaintQueryService.get_complaint_detail(user, complaint_id)
        if complaint.upvoters.filter(pk=user.pk).exists():
            complaint.upvoters.remove(user)
            upvoted = False
        else:
            complaint.upvoters.add(user)
            upvoted = True
        return complaint, upvoted


# ═══════════════════════════════════════════════════════════════════
#  Rating Gate
# ═══════════════════════════════════════════════════════════════════


class ComplaintRatingService:
    """
    Ratings are allowed only on resolved complaints and only by the
    citizen who submitted them.

    The submitter's complaint-type ``Review`` is the record of the
    rating; ``Complaint.rating`` / ``feedback`` are a denormalised copy
    kept for listings and written only through ``apply_review``.
    """

    @staticmethod
    def check_can_rate(complaint: Complaint, user: Any) -> None:
        if complaint.status != ComplaintStatus.RESOLVED:
            raise NotResolvableYet(complaint.pk, complaint.status)
        if complaint.submitted_by_id != user.pk:
            raise NotOwner(complaint.pk)

    @staticmethod
    def apply_review(complaint: Complaint, review: Review) -> None:
        complaint.rating = review.rating
        complaint.feedback = review.content
        complaint.save(update_fields=["rating", "feedback", "updated_at"])

    @staticmethod
    def clear_review(complaint: Complaint) -> None:
        complaint.rating = None
        complaint.feedback = ""
        complaint.save(update_fields=["rating", "feedback", "updated_at"])

    @staticmethod
    def withdraw_rating(complaint: Complaint) -> None:
        """
        Drop the submitter's rating when a complaint is reopened.

        The rating judged a resolution that no longer stands, so the
        complaint-type reviews and the derived copy are both removed.
        """
        deleted, _ = Review.objects.filter(
            complaint=complaint, review_type=ReviewType.COMPLAINT,
        ).delete()
        if deleted or complaint.rating is not None or complaint.feedback:
            ComplaintRatingService.clear_review(complaint)
            logger.info(
                "Rating of complaint %s withdrawn on reopen (%d reviews removed)",
                complaint.pk, deleted,
            )

    @staticmethod
    @transaction.atomic
    def submit_rating(
        complaint_id: Any,
        user: Any,
        rating: int,
        feedback: str = "",
    ) -> Complaint:
        """
        Record (or replace) the submitter's rating of a resolved complaint.

        Raises
        ------
        NotFound
            The complaint does not exist.
        NotResolvableYet
            The complaint is not resolved.
        NotOwner
            The user did not submit the complaint.
        """
        complaint = lock_for_update(Complaint, complaint_id, label="Complaint")
        ComplaintRatingService.check_can_rate(complaint, user)

        review, created = Review.objects.update_or_create(
            complaint=complaint,
            user=user,
            review_type=ReviewType.COMPLAINT,
            defaults={
                "rating": rating,
                "content": feedback,
                "category": complaint.category,
                "department_id": complaint.department_id,
                "service_provider_id": complaint.assigned_to_id,
            },
        )
        if created and not review.title:
            review.title = f"Rating for complaint #{complaint.pk}"
            review.save(update_fields=["title"])

        ComplaintRatingService.apply_review(complaint, review)

        logger.info(
            "Complaint %s rated %s by %s", complaint.pk, rating, user.pk,
        )
        return complaint
