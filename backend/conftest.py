"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture for creating test users.
  - ``auth_header`` fixture for authenticated requests (JWT).
  - ``make_department`` factory fixture for departments and their
    categories.
  - ``event_listener`` fixture subscribing a queue to notification
    channels.
  - ``make_complaint`` factory fixture inserting complaint rows.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice")
            # or with more fields:
            provider = create_user(
                username="bob",
                role="provider",
                department=water_dept,
                phone_number="+15550001111",
            )
    """
    from accounts.models import User, UserRole

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        role: str = UserRole.CITIZEN,
        department=None,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"

        return User.objects.create_user(
            username=username,
            password=password,
            email=email,
            role=role,
            department=department,
            is_active=is_active,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def auth_header(create_user):
    """
    Returns a helper that builds an ``Authorization`` header dict with
    a valid JWT access token, either for an existing user or for a new
    one created from keyword arguments.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(username="alice")
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])

    The returned dict looks like::

        {"Authorization": "Bearer eyJ..."}
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(user=None, **user_kwargs) -> dict[str, str]:
        if user is None:
            user = create_user(**user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def make_department(db):
    """
    Factory fixture that creates an active department serving the given
    categories.

    Usage::

        water = make_department("Water Board", "WTR", categories=("water",))
    """
    from departments.models import Department, DepartmentCategory

    def _factory(
        name: str,
        code: str,
        categories: tuple[str, ...] = ("water",),
        is_active: bool = True,
    ) -> Department:
        department = Department.objects.create(name=name, code=code, is_active=is_active)
        for category in categories:
            DepartmentCategory.objects.create(department=department, category=category)
        return department

    return _factory


@pytest.fixture()
def event_listener():
    """
    Subscribe an in-memory queue to notification channels.

    Returns a function ``listen(*channels) -> QueueConnection``; every
    connection is removed from the registry at teardown.
    """
    from core.domain.notifications import QueueConnection, get_publisher

    registry = get_publisher().registry
    connections = []

    def _listen(*channels: str) -> QueueConnection:
        connection = QueueConnection(label=f"test-{len(connections)}")
        for channel in channels:
            registry.join(channel, connection)
        connections.append(connection)
        return connection

    yield _listen

    for connection in connections:
        registry.leave_all(connection)


@pytest.fixture()
def make_complaint(db):
    """
    Factory fixture that inserts a complaint row directly, bypassing
    routing and lifecycle rules.  Use the services when those rules are
    under test.
    """
    from complaints.models import Complaint

    def _factory(*, submitted_by, department, **fields) -> Complaint:
        defaults = {
            "title": "Burst pipe on Main St",
            "description": "Water is flooding the pavement.",
            "category": "water",
            "longitude": 51.389,
            "latitude": 35.689,
            "address": "12 Main St",
        }
        defaults.update(fields)
        return Complaint.objects.create(
            submitted_by=submitted_by, department=department, **defaults,
        )

    return _factory
