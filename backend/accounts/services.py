"""
Accounts Service Layer.

Registration, token issuance and user administration.  The role of a
user (citizen, provider, admin) is only ever changed here or by the
department staff service.

- ``UserRegistrationService``  — citizen self-registration.
- ``AuthenticationService``    — username/email login + JWT issuance.
- ``UserManagementService``    — role changes, activate / deactivate,
  provider directory.
- ``CurrentUserService``       — "Me" endpoint helpers.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet
from rest_framework_simplejwt.tokens import RefreshToken

from core.domain.access import require_role
from core.domain.exceptions import Conflict, DomainError, NotFound

from .models import UserRole

logger = logging.getLogger(__name__)

User = get_user_model()


def add_token_claims(token: Any, user: User) -> Any:
    """Embed the role and department affiliation in a JWT payload."""
    token["role"] = "admin" if user.is_superuser else user.role
    token["department_id"] = user.department_id
    return token


# ═══════════════════════════════════════════════════════════════════
#  Registration Service
# ═══════════════════════════════════════════════════════════════════


class UserRegistrationService:
    """
    Encapsulates the citizen self-registration flow.
    """

    @staticmethod
    def register_user(validated_data: dict[str, Any]) -> User:
        """
        Create a new user with the ``citizen`` role.

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``RegisterRequestSerializer`` containing
            ``username``, ``password``, ``email``, ``first_name``,
            ``last_name`` and optionally ``phone_number``.
            ``password_confirm`` has already been consumed during
            serializer validation.

        Returns
        -------
        User
            The newly created (and saved) ``User`` instance.

        Notes
        -----
        Any ``role`` in the payload is ignored: elevated roles are only
        granted through department staffing or by an administrator.

        Raises
        ------
        core.domain.exceptions.Conflict
            If a unique field (username, email, phone_number) is already
            taken.
        """
        validated_data.pop("password_confirm", None)
        validated_data.pop("role", None)
        password = validated_data.pop("password")

        if not validated_data.get("phone_number"):
            validated_data["phone_number"] = None

        # Pre-check uniqueness to report the clashing field
        conflicts = []
        if User.objects.filter(username=validated_data.get("username")).exists():
            conflicts.append("username")
        if User.objects.filter(email__iexact=validated_data.get("email")).exists():
            conflicts.append("email")
        phone = validated_data.get("phone_number")
        if phone and User.objects.filter(phone_number=phone).exists():
            conflicts.append("phone_number")

        if conflicts:
            raise Conflict(
                f"The following field(s) already exist: {', '.join(conflicts)}."
            )

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    password=password,
                    role=UserRole.CITIZEN,
                    **validated_data,
                )
        except IntegrityError:
            raise Conflict(
                "A user with one of the provided unique fields already exists."
            )

        logger.info("Registered citizen %s (id=%s)", user.username, user.pk)
        return user


# ═══════════════════════════════════════════════════════════════════
#  Authentication Service
# ═══════════════════════════════════════════════════════════════════


class AuthenticationService:
    """
    JWT issuance outside the login endpoint (e.g. right after
    registration).  Login itself goes through
    ``CustomTokenObtainPairSerializer``.
    """

    @staticmethod
    def generate_tokens(user: User) -> dict[str, str]:
        """
        Issue a JWT access/refresh token pair for the given user.

        Returns
        -------
        dict
            ``{"access": "<token>", "refresh": "<token>"}``.
        """
        refresh = add_token_claims(RefreshToken.for_user(user), user)
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


# ═══════════════════════════════════════════════════════════════════
#  User Management Service
# ═══════════════════════════════════════════════════════════════════


class UserManagementService:
    """
    Administrative operations on users: listing, role changes,
    activation, and deactivation.  Every mutating method requires the
    ``admin`` role.
    """

    @staticmethod
    def list_users(
        requested_by: User,
        *,
        role: str | None = None,
        department_id: int | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> QuerySet[User]:
        """
        Return a filtered queryset of users.

        Parameters
        ----------
        role : str, optional
            Filter by role value (``citizen`` / ``provider`` / ``admin``).
        department_id : int, optional
            Filter by department affiliation.
        is_active : bool, optional
            Filter by ``is_active`` status.
        search : str, optional
            Case-insensitive search across ``username``, ``email``,
            ``phone_number``, ``first_name``, ``last_name``.
        """
        require_role(requested_by, UserRole.ADMIN)
        qs = User.objects.select_related("department").order_by("pk")

        if role is not None:
            qs = qs.filter(role=role)
        if department_id is not None:
            qs = qs.filter(department_id=department_id)
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        if search:
            qs = qs.filter(
                Q(username__icontains=search)
                | Q(email__icontains=search)
                | Q(phone_number__icontains=search)
                | Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
            )

        return qs

    @staticmethod
    def list_providers(
        requested_by: User, *, department_id: int | None = None,
    ) -> QuerySet[User]:
        """
        Active providers, optionally restricted to one department.

        Open to providers as well as administrators so that staff can
        pick a colleague when handing a complaint over.
        """
        require_role(requested_by, UserRole.PROVIDER, UserRole.ADMIN)
        qs = User.objects.select_related("department").filter(
            role=UserRole.PROVIDER, is_active=True,
        )
        if department_id is not None:
            qs = qs.filter(department_id=department_id)
        return qs.order_by("pk")

    @staticmethod
    def get_user(user_id: int) -> User:
        try:
            return User.objects.select_related("department").get(pk=user_id)
        except (User.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"User with id {user_id} not found.")

    @staticmethod
    @transaction.atomic
    def change_role(*, user_id: int, role: str, performed_by: User) -> User:
        """
        Change a user's role.

        A user leaving the ``provider`` role loses their department
        affiliation.  Administrators cannot demote themselves.

        Raises
        ------
        PermissionDenied
            If the requester is not an administrator.
        NotFound
            If the target user does not exist.
        DomainError
            On self-demotion or an unknown role value.
        """
        require_role(performed_by, UserRole.ADMIN)

        if role not in UserRole.values:
            raise DomainError(f"'{role}' is not a valid role.")

        target_user = UserManagementService.get_user(user_id)
        if target_user.pk == performed_by.pk and role != UserRole.ADMIN:
            raise DomainError("You cannot change your own role.")

        old_role = target_user.role
        target_user.role = role
        update_fields = ["role"]
        if role != UserRole.PROVIDER and target_user.department_id is not None:
            target_user.department = None
            update_fields.append("department")
        target_user.save(update_fields=update_fields)

        logger.info(
            "User %s role changed %s -> %s by %s",
            target_user.pk, old_role, role, performed_by.pk,
        )
        return target_user

    @staticmethod
    def activate_user(user_id: int, performed_by: User) -> User:
        require_role(performed_by, UserRole.ADMIN)
        target_user = UserManagementService.get_user(user_id)

        target_user.is_active = True
        target_user.save(update_fields=["is_active"])
        logger.info("User %s activated by %s", target_user.pk, performed_by.pk)
        return target_user

    @staticmethod
    def deactivate_user(user_id: int, performed_by: User) -> User:
        """
        Set ``is_active=False`` on the target user.

        Deactivated providers stay recorded as assignees of their past
        complaints but can no longer receive new assignments.

        Raises
        ------
        DomainError
            On self-deactivation.
        """
        require_role(performed_by, UserRole.ADMIN)
        target_user = UserManagementService.get_user(user_id)

        if target_user.pk == performed_by.pk:
            raise DomainError("You cannot deactivate your own account.")

        target_user.is_active = False
        target_user.save(update_fields=["is_active"])
        logger.info("User %s deactivated by %s", target_user.pk, performed_by.pk)
        return target_user


# ═══════════════════════════════════════════════════════════════════
#  Current User (Me) Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """
    Helpers for the "Me" endpoint, the way the frontend discovers who is
    logged in, which role they hold and which department they serve.
    """

    @staticmethod
    def get_profile(user: User) -> User:
        return User.objects.select_related("department").get(pk=user.pk)

    @staticmethod
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Update the authenticated user's own profile fields.

        The user may NOT change their own ``role``, ``department``,
        ``is_active`` or ``username`` via this endpoint.

        Raises
        ------
        Conflict
            If the new email or phone number belongs to another user.
        """
        email = validated_data.get("email")
        if email and User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
            raise Conflict("The following field(s) already exist: email.")
        phone = validated_data.get("phone_number")
        if phone and User.objects.filter(phone_number=phone).exclude(pk=user.pk).exists():
            raise Conflict("The following field(s) already exist: phone_number.")

        for field, value in validated_data.items():
            setattr(user, field, value)
        user.save(update_fields=list(validated_data.keys()))

        return CurrentUserService.get_profile(user)
