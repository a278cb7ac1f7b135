"""
core.domain.exception_handler — translates service-layer errors to HTTP.

Installed as DRF's ``EXCEPTION_HANDLER``.  DRF's own exceptions
(validation, authentication, throttling) keep their default rendering;
``DomainError`` subclasses become ``{"detail": ..., "code": ...}``
bodies where ``code`` is the exception class name, so clients can
distinguish ``InvalidTransition`` from ``NoDepartmentForCategory``
without parsing messages.

Database connectivity failures (``OperationalError``,
``InterfaceError``) are the only retryable class and are reported as
``StorageUnavailable`` with a ``Retry-After`` header.
"""

from __future__ import annotations

import logging

from django.db import InterfaceError, OperationalError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    Conflict,
    DomainError,
    NotFound,
    PermissionDenied,
    StorageUnavailable,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "5"

# Checked in order; ``DomainError`` must stay last.
_HTTP_STATUS: tuple[tuple[type[DomainError], int], ...] = (
    (StorageUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
    (DomainError, status.HTTP_400_BAD_REQUEST),
)


def http_status_for(exc: DomainError) -> int:
    for exc_class, status_code in _HTTP_STATUS:
        if isinstance(exc, exc_class):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def _view_name(context: dict) -> str:
    view = context.get("view")
    return type(view).__name__ if view is not None else "unknown view"


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """Render DRF errors as usual and domain errors as coded JSON bodies."""
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, (OperationalError, InterfaceError)):
        logger.error("Storage failure in %s: %s", _view_name(context), exc)
        exc = StorageUnavailable()

    if not isinstance(exc, DomainError):
        return None

    status_code = http_status_for(exc)
    logger.warning(
        "%s in %s (HTTP %s): %s",
        type(exc).__name__, _view_name(context), status_code, exc,
    )

    response = Response(
        {"detail": str(exc), "code": type(exc).__name__},
        status=status_code,
    )
    if status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        response["Retry-After"] = RETRY_AFTER_SECONDS
    return response
