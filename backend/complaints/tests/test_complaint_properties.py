"""
Invariants that must hold for every complaint, checked across the status
and rating space rather than for a single example.
"""

from __future__ import annotations

import itertools

import pytest

from accounts.models import UserRole
from complaints.models import Complaint, ComplaintPriority, ComplaintStatus
from complaints.services import (
    NEXT_STATUS,
    ComplaintCreationService,
    ComplaintLifecycleService,
    ComplaintRatingService,
)
from core.domain.exceptions import InvalidTransition, NoDepartmentForCategory, NotResolvableYet

pytestmark = pytest.mark.django_db

ALL_STATUSES = list(ComplaintStatus.values)
UNRESOLVED = [s for s in ALL_STATUSES if s != ComplaintStatus.RESOLVED]


@pytest.fixture()
def water(make_department):
    return make_department("Water Board", "WTR", categories=("water",))


@pytest.fixture()
def citizen(create_user):
    return create_user(username="prop_citizen")


@pytest.fixture()
def admin(create_user):
    return create_user(username="prop_admin", role=UserRole.ADMIN)


def _assert_resolution_consistent(complaint: Complaint) -> None:
    resolved = complaint.status == ComplaintStatus.RESOLVED
    assert (complaint.resolved_at is not None) is resolved
    assert (complaint.actual_resolution_time is not None) is resolved


class TestResolutionBookkeeping:

    @pytest.mark.parametrize(
        ("start", "target"),
        list(itertools.permutations(ALL_STATUSES, 2)),
    )
    def test_resolution_fields_track_status(self, start, target, admin, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water, status=start)
        if start == ComplaintStatus.RESOLVED:
            # Enter resolved through the controller so the fields are stamped.
            Complaint.objects.filter(pk=complaint.pk).update(status=ComplaintStatus.IN_PROGRESS)
            ComplaintLifecycleService.transition(complaint.pk, ComplaintStatus.RESOLVED, admin)

        moved = ComplaintLifecycleService.transition(complaint.pk, target, admin)

        moved.refresh_from_db()
        assert moved.status == target
        _assert_resolution_consistent(moved)


class TestTransitionTable:

    @pytest.mark.parametrize(("start", "target"), list(itertools.permutations(ALL_STATUSES, 2)))
    def test_provider_may_only_step_forward(
        self, start, target, citizen, water, create_user, make_complaint,
    ):
        provider = create_user(username="prop_provider", role=UserRole.PROVIDER, department=water)
        complaint = make_complaint(submitted_by=citizen, department=water, status=start)

        if NEXT_STATUS.get(start) == target:
            assert ComplaintLifecycleService.transition(complaint.pk, target, provider).status == target
        else:
            with pytest.raises(InvalidTransition):
                ComplaintLifecycleService.transition(complaint.pk, target, provider)
            complaint.refresh_from_db()
            assert complaint.status == start


class TestCreationRules:

    @pytest.mark.parametrize("priority", list(ComplaintPriority.values))
    def test_emergency_is_always_critical(self, priority, citizen, water):
        complaint = ComplaintCreationService.create_complaint(
            {
                "title": "Main burst",
                "description": "Street flooded.",
                "category": "water",
                "priority": priority,
                "is_emergency": True,
                "longitude": 0.0,
                "latitude": 0.0,
                "address": "Somewhere",
            },
            citizen,
        )

        assert complaint.priority == ComplaintPriority.CRITICAL

    @pytest.mark.parametrize("category", ["electricity", "roads", "other"])
    def test_unrouted_category_leaves_no_row(self, category, citizen, water):
        with pytest.raises(NoDepartmentForCategory):
            ComplaintCreationService.create_complaint(
                {
                    "title": "Unrouted",
                    "description": "Nobody handles this.",
                    "category": category,
                    "longitude": 0.0,
                    "latitude": 0.0,
                    "address": "Nowhere",
                },
                citizen,
            )

        assert Complaint.objects.count() == 0


class TestRatingGate:

    @pytest.mark.parametrize(
        ("status", "rating"),
        list(itertools.product(UNRESOLVED, range(1, 6))),
    )
    def test_unresolved_complaints_cannot_be_rated(
        self, status, rating, citizen, water, make_complaint,
    ):
        complaint = make_complaint(submitted_by=citizen, department=water, status=status)

        with pytest.raises(NotResolvableYet):
            ComplaintRatingService.submit_rating(complaint.pk, citizen, rating)

        complaint.refresh_from_db()
        assert complaint.rating is None
        assert not complaint.reviews.exists()
