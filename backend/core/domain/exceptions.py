"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler
(``core.domain.exception_handler``) maps them to HTTP responses.

Mapping cheatsheet
------------------
┌─────────────────────────┬──────┐
│ Domain Exception        │ Code │
├─────────────────────────┼──────┤
│ DomainError             │ 400  │
│ InvalidStatus           │ 400  │
│ InvalidProvider         │ 400  │
│ NoDepartmentForCategory │ 400  │
│ NotResolvableYet        │ 400  │
│ InvalidTransition       │ 400  │
│ DuplicateReview         │ 400  │
│ PermissionDenied        │ 403  │
│ NotOwner                │ 403  │
│ NotFound                │ 404  │
│ Conflict                │ 409  │
│ StorageUnavailable      │ 503  │
└─────────────────────────┴──────┘

Only ``StorageUnavailable`` is worth retrying.  Every other class is
permanent for the given input.

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if target != NEXT_STATUS.get(current):
        raise InvalidTransition(current=current, target=target)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role for this
    operation.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist.

    Maps to HTTP 404.
    """

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: duplicate creation attempt, deactivating a department
    that still owns open complaints.  Maps to HTTP 409.
    """

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(DomainError):
    """
    A state-machine transition that is not allowed from the current status.

    Carries the attempted ``current`` → ``target`` pair so the message can
    be shown to the user without a second lookup.  Maps to HTTP 400.

    Example::

        raise InvalidTransition(
            current="submitted",
            target="in_progress",
            reason="Only 'under_review' may follow 'submitted'.",
        )
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            if reason:
                parts.append(f"({reason})")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class InvalidStatus(DomainError):
    """The requested status is not part of the complaint status enumeration."""

    def __init__(self, status: str) -> None:
        super().__init__(f"'{status}' is not a valid complaint status.")
        self.status = status


class InvalidProvider(DomainError):
    """The assignment target is not an active user with the provider role."""

    def __init__(self, provider_id: object) -> None:
        super().__init__(
            f"User {provider_id} is not an active service provider."
        )
        self.provider_id = provider_id


class NoDepartmentForCategory(DomainError):
    """No active department services the complaint's category."""

    def __init__(self, category: str) -> None:
        super().__init__(f"No active department handles category '{category}'.")
        self.category = category


class NotResolvableYet(DomainError):
    """Rating or reviewing a complaint that is not in the ``resolved`` state."""

    def __init__(self, complaint_id: object, status: str) -> None:
        super().__init__(
            f"Complaint {complaint_id} is '{status}'; only resolved "
            f"complaints can be rated."
        )
        self.complaint_id = complaint_id
        self.status = status


class NotOwner(PermissionDenied):
    """The acting user did not submit the complaint."""

    def __init__(self, complaint_id: object) -> None:
        super().__init__(
            f"Only the citizen who submitted complaint {complaint_id} may do this."
        )
        self.complaint_id = complaint_id


class DuplicateReview(DomainError):
    """A complaint-type review already exists for this (complaint, user) pair."""

    def __init__(self, complaint_id: object, user_id: object) -> None:
        super().__init__(
            f"User {user_id} has already reviewed complaint {complaint_id}."
        )
        self.complaint_id = complaint_id
        self.user_id = user_id


class StorageUnavailable(DomainError):
    """
    The entity store could not be reached or timed out.

    The only transient error class; callers may retry with backoff.
    Maps to HTTP 503.
    """

    def __init__(self, message: str = "The storage backend is temporarily unavailable.") -> None:
        super().__init__(message)
