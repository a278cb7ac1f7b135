"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF ``EXCEPTION_HANDLER`` translating them into responses.
events             Tagged complaint events (created / status / assignment / update).
notifications      Topic registry and best-effort publisher for those events.
transactions       Helpers for ``transaction.atomic`` + ``select_for_update``.
access             Role-scoped queryset selectors and role guards.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.events import StatusChanged
    from core.domain.notifications import get_publisher
    from core.domain.transactions import lock_for_update
    from core.domain.access import require_role
"""
