"""
core.domain.access — Role-scoped queryset selectors (shared patterns).

The three roles (citizen, provider, admin) decide what a caller may
see.  Each app keeps its own scope-rules mapping in ``services.py``;
this module only dispatches on the role name (``apply_role_scope``)
and guards operations by role (``require_role``).  Superusers are
treated as admins everywhere.

Usage in an app's service layer::

    from core.domain.access import apply_role_scope

    COMPLAINT_SCOPE_RULES = {
        "admin":    lambda qs, u: qs,
        "provider": lambda qs, u: qs.filter(department=u.department),
        "citizen":  lambda qs, u: qs.filter(submitted_by=u),
    }

    qs = apply_role_scope(Complaint.objects.all(), user,
                          scope_rules=COMPLAINT_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# Role name → filter applied for users holding that role.
ScopeRules = dict[str, ScopeFilter]


def get_user_role_name(user: User) -> str | None:
    """
    Return the role name for a user, or ``None`` for anonymous users.

    Superusers are always reported as ``"admin"`` regardless of the
    stored role so that ``createsuperuser`` accounts can operate the
    system without a data fix.
    """
    if not getattr(user, "is_authenticated", False):
        return None
    if user.is_superuser:
        return "admin"
    return getattr(user, "role", None)


def apply_role_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: ScopeRules,
    default: str = "none",
) -> QuerySet:
    """
    Apply the scope rule registered for the user's role.

    Args:
        queryset:     Base (unfiltered) queryset.
        user:         The authenticated user.
        scope_rules:  Mapping of role name → ``filter_fn(qs, user)``.
        default:      What to do when the role has no rule.
                      ``"none"`` (default) → empty queryset.
                      ``"all"`` → return unfiltered.

    Returns:
        The (possibly filtered) queryset.
    """
    role_name = get_user_role_name(user)
    if role_name in scope_rules:
        return scope_rules[role_name](queryset, user)

    if default == "none":
        return queryset.none()
    return queryset


def require_role(user: User, *allowed_roles: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` if the user's role is not
    among ``allowed_roles``.

    Raises:
        core.domain.exceptions.PermissionDenied

    Example::

        require_role(actor, "provider", "admin")
    """
    role_name = get_user_role_name(user)
    if role_name not in allowed_roles:
        raise PermissionDenied(
            message
            or f"Role '{role_name}' is not permitted for this operation. "
            f"Required: {', '.join(allowed_roles)}."
        )


def is_admin(user: User) -> bool:
    return get_user_role_name(user) == "admin"
