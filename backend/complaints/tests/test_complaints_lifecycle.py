"""
Service-level tests for routing, the status lifecycle and assignment.

Covers the end-to-end flows:
  * a water complaint is routed to the department serving water and
    starts as ``submitted``;
  * providers may only step forward one status, admins may force;
  * resolving stamps the whole-hour resolution time;
  * assignment validates the target and is idempotent.

Events are checked by joining a ``QueueConnection`` to the process-wide
registry and executing the captured on-commit callbacks.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from accounts.models import UserRole
from complaints.models import (
    Complaint,
    ComplaintPriority,
    ComplaintStatus,
    ComplaintUpdate,
    UpdateType,
)
from complaints.services import (
    ComplaintAssignmentService,
    ComplaintCreationService,
    ComplaintLifecycleService,
    ComplaintRatingService,
)
from core.domain.exceptions import (
    DomainError,
    InvalidProvider,
    InvalidStatus,
    InvalidTransition,
    NoDepartmentForCategory,
    PermissionDenied,
)
from core.domain.notifications import (
    ADMIN_CHANNEL,
    CITIZEN_CHANNEL,
    PROVIDER_CHANNEL,
    QueueConnection,
    complaint_channel,
    get_publisher,
)
from departments.models import Department, DepartmentCategory
from reviews.models import Review

User = get_user_model()


def _make_department(name: str, code: str, *categories: str) -> Department:
    department = Department.objects.create(name=name, code=code)
    for category in categories:
        DepartmentCategory.objects.create(department=department, category=category)
    return department


def _complaint_data(**overrides) -> dict:
    data = {
        "title": "No water since morning",
        "description": "The whole block has no running water.",
        "category": "water",
        "longitude": 51.389,
        "latitude": 35.689,
        "address": "12 Main St",
    }
    data.update(overrides)
    return data


class _LifecycleTestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.water = _make_department("Water Board", "WTR", "water")
        cls.roads = _make_department("Roads Dept", "RDS", "roads")
        cls.citizen = User.objects.create_user(
            username="citizen_c", password="Pass12345!", email="c@test.local",
        )
        cls.provider = User.objects.create_user(
            username="provider_p", password="Pass12345!", email="p@test.local",
            role=UserRole.PROVIDER, department=cls.water,
        )
        cls.outsider = User.objects.create_user(
            username="provider_roads", password="Pass12345!", email="r@test.local",
            role=UserRole.PROVIDER, department=cls.roads,
        )
        cls.admin = User.objects.create_user(
            username="admin_a", password="Pass12345!", email="a@test.local",
            role=UserRole.ADMIN,
        )

    def setUp(self):
        self.registry = get_publisher().registry
        self.listener = QueueConnection(label="lifecycle-test")
        self.extra_listeners: list[QueueConnection] = []

    def tearDown(self):
        self.registry.leave_all(self.listener)
        for connection in self.extra_listeners:
            self.registry.leave_all(connection)

    def separate_listener(self, channel: str) -> QueueConnection:
        connection = QueueConnection(label=f"lifecycle-{channel}")
        self.registry.join(channel, connection)
        self.extra_listeners.append(connection)
        return connection

    def listen(self, *channels: str) -> None:
        for channel in channels:
            self.registry.join(channel, self.listener)

    def drain(self) -> list[tuple[str, dict]]:
        received = []
        while (item := self.listener.receive(timeout=0)) is not None:
            received.append(item)
        return received

    def submit(self, **overrides) -> Complaint:
        return ComplaintCreationService.create_complaint(_complaint_data(**overrides), self.citizen)


# ═══════════════════════════════════════════════════════════════════
#  Creation and routing
# ═══════════════════════════════════════════════════════════════════


class TestComplaintCreation(_LifecycleTestBase):

    def test_water_complaint_routed_to_water_department(self):
        complaint = self.submit()

        self.assertEqual(complaint.department_id, self.water.pk)
        self.assertEqual(complaint.status, ComplaintStatus.SUBMITTED)
        self.assertIsNone(complaint.assigned_to_id)
        self.assertIsNone(complaint.resolved_at)

    def test_creation_records_first_history_entry(self):
        complaint = self.submit()

        history = list(complaint.updates.all())
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].update_type, UpdateType.STATUS_CHANGE)
        self.assertEqual(history[0].created_by, self.citizen)

    def test_emergency_forces_critical_priority(self):
        complaint = self.submit(is_emergency=True, priority=ComplaintPriority.LOW)

        self.assertEqual(complaint.priority, ComplaintPriority.CRITICAL)

    def test_unserved_category_writes_nothing(self):
        with self.assertRaises(NoDepartmentForCategory):
            self.submit(category="public_transport")

        self.assertFalse(Complaint.objects.exists())

    def test_creation_notifies_admins_only(self):
        self.listen(ADMIN_CHANNEL, PROVIDER_CHANNEL)

        with self.captureOnCommitCallbacks(execute=True):
            complaint = self.submit()

        received = self.drain()
        self.assertEqual([channel for channel, _ in received], [ADMIN_CHANNEL])
        self.assertEqual(received[0][1]["type"], "complaint_created")
        self.assertEqual(received[0][1]["complaint_id"], complaint.pk)

    def test_emergency_creation_also_notifies_providers(self):
        admins = self.separate_listener(ADMIN_CHANNEL)
        providers = self.separate_listener(PROVIDER_CHANNEL)

        with self.captureOnCommitCallbacks(execute=True):
            self.submit(is_emergency=True)

        self.assertEqual(admins.receive(timeout=0)[0], ADMIN_CHANNEL)
        self.assertEqual(providers.receive(timeout=0)[0], PROVIDER_CHANNEL)


# ═══════════════════════════════════════════════════════════════════
#  Lifecycle
# ═══════════════════════════════════════════════════════════════════


class TestStatusLifecycle(_LifecycleTestBase):

    def test_provider_cannot_skip_a_status(self):
        complaint = self.submit()

        with self.assertRaises(InvalidTransition):
            ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.IN_PROGRESS, self.provider,
            )

        complaint.refresh_from_db()
        self.assertEqual(complaint.status, ComplaintStatus.SUBMITTED)

    def test_admin_may_force_a_skip(self):
        complaint = self.submit()

        with self.assertLogs("complaints.services", level="WARNING") as logs:
            updated = ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.IN_PROGRESS, self.admin,
            )

        self.assertEqual(updated.status, ComplaintStatus.IN_PROGRESS)
        self.assertTrue(any("forced" in line for line in logs.output))

    def test_provider_walks_the_full_lifecycle(self):
        complaint = self.submit()

        for target in (
            ComplaintStatus.UNDER_REVIEW,
            ComplaintStatus.IN_PROGRESS,
            ComplaintStatus.RESOLVED,
            ComplaintStatus.CLOSED,
        ):
            complaint = ComplaintLifecycleService.transition(complaint.pk, target, self.provider)
            self.assertEqual(complaint.status, target)

        status_entries = ComplaintUpdate.objects.filter(
            complaint=complaint, update_type=UpdateType.STATUS_CHANGE,
        )
        self.assertEqual(status_entries.count(), 5)

    def test_closed_is_final_for_providers(self):
        complaint = self.submit()
        Complaint.objects.filter(pk=complaint.pk).update(status=ComplaintStatus.CLOSED)

        with self.assertRaises(InvalidTransition) as ctx:
            ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.RESOLVED, self.provider,
            )
        self.assertIn("final", str(ctx.exception))

    def test_same_status_is_rejected(self):
        complaint = self.submit()

        with self.assertRaises(InvalidTransition):
            ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.SUBMITTED, self.admin,
            )

    def test_unknown_status_value(self):
        complaint = self.submit()

        with self.assertRaises(InvalidStatus):
            ComplaintLifecycleService.transition(complaint.pk, "archived", self.admin)

    def test_citizen_cannot_transition(self):
        complaint = self.submit()

        with self.assertRaises(PermissionDenied):
            ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.UNDER_REVIEW, self.citizen,
            )

    def test_provider_of_other_department_cannot_transition(self):
        complaint = self.submit()

        with self.assertRaises(PermissionDenied):
            ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.UNDER_REVIEW, self.outsider,
            )

    def test_resolution_time_counts_whole_hours(self):
        complaint = self.submit()
        Complaint.objects.filter(pk=complaint.pk).update(
            created_at=timezone.now() - timedelta(hours=50),
            status=ComplaintStatus.IN_PROGRESS,
        )

        resolved = ComplaintLifecycleService.transition(
            complaint.pk, ComplaintStatus.RESOLVED, self.provider,
        )

        self.assertEqual(resolved.actual_resolution_time, 50)
        self.assertIsNotNone(resolved.resolved_at)

    def test_leaving_resolved_clears_resolution_fields(self):
        complaint = self.submit()
        Complaint.objects.filter(pk=complaint.pk).update(status=ComplaintStatus.IN_PROGRESS)
        ComplaintLifecycleService.transition(complaint.pk, ComplaintStatus.RESOLVED, self.provider)

        reopened = ComplaintLifecycleService.transition(
            complaint.pk, ComplaintStatus.IN_PROGRESS, self.admin,
        )

        self.assertIsNone(reopened.resolved_at)
        self.assertIsNone(reopened.actual_resolution_time)

    def rated_resolved_complaint(self, rating: int = 5) -> Complaint:
        complaint = self.submit()
        Complaint.objects.filter(pk=complaint.pk).update(status=ComplaintStatus.IN_PROGRESS)
        ComplaintLifecycleService.transition(complaint.pk, ComplaintStatus.RESOLVED, self.provider)
        return ComplaintRatingService.submit_rating(
            complaint.pk, self.citizen, rating, feedback="Fixed in a day",
        )

    def test_reopening_withdraws_rating(self):
        complaint = self.rated_resolved_complaint()

        reopened = ComplaintLifecycleService.transition(
            complaint.pk, ComplaintStatus.IN_PROGRESS, self.admin,
        )

        self.assertEqual(reopened.status, ComplaintStatus.IN_PROGRESS)
        self.assertIsNone(reopened.rating)
        self.assertEqual(reopened.feedback, "")
        self.assertFalse(Review.objects.filter(complaint=complaint).exists())

    def test_reopening_closed_complaint_withdraws_rating(self):
        complaint = self.rated_resolved_complaint()
        ComplaintLifecycleService.transition(complaint.pk, ComplaintStatus.CLOSED, self.provider)

        reopened = ComplaintLifecycleService.transition(
            complaint.pk, ComplaintStatus.UNDER_REVIEW, self.admin,
        )

        self.assertIsNone(reopened.rating)
        self.assertFalse(Review.objects.filter(complaint=complaint).exists())

    def test_closing_keeps_rating(self):
        complaint = self.rated_resolved_complaint(rating=4)

        closed = ComplaintLifecycleService.transition(
            complaint.pk, ComplaintStatus.CLOSED, self.provider,
        )
        back = ComplaintLifecycleService.transition(
            complaint.pk, ComplaintStatus.RESOLVED, self.admin,
        )

        self.assertEqual(closed.rating, 4)
        self.assertEqual(back.rating, 4)
        self.assertEqual(Review.objects.get(complaint=complaint).rating, 4)

    def test_transition_notifies_complaint_and_citizen_channels(self):
        complaint = self.submit()
        followers = self.separate_listener(complaint_channel(complaint.pk))
        citizens = self.separate_listener(CITIZEN_CHANNEL)

        with self.captureOnCommitCallbacks(execute=True):
            ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.UNDER_REVIEW, self.provider,
            )

        channel, message = followers.receive(timeout=0)
        self.assertEqual(channel, complaint_channel(complaint.pk))
        self.assertEqual(citizens.receive(timeout=0)[0], CITIZEN_CHANNEL)
        self.assertEqual(message["type"], "status_changed")
        self.assertEqual(message["old_status"], ComplaintStatus.SUBMITTED)
        self.assertEqual(message["new_status"], ComplaintStatus.UNDER_REVIEW)

    def test_submitter_following_own_complaint_hears_status_once(self):
        complaint = self.submit()
        self.listen(complaint_channel(complaint.pk), CITIZEN_CHANNEL)

        with self.captureOnCommitCallbacks(execute=True):
            ComplaintLifecycleService.transition(
                complaint.pk, ComplaintStatus.UNDER_REVIEW, self.provider,
            )

        received = self.drain()
        self.assertEqual(len(received), 1)
        self.assertEqual(received[0][0], complaint_channel(complaint.pk))

    def test_rejected_transition_publishes_nothing(self):
        complaint = self.submit()
        self.listen(complaint_channel(complaint.pk), CITIZEN_CHANNEL)

        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(InvalidTransition):
                ComplaintLifecycleService.transition(
                    complaint.pk, ComplaintStatus.RESOLVED, self.provider,
                )

        self.assertEqual(self.drain(), [])


# ═══════════════════════════════════════════════════════════════════
#  Assignment
# ═══════════════════════════════════════════════════════════════════


class TestAssignment(_LifecycleTestBase):

    def test_assigning_to_citizen_fails_and_leaves_complaint_unchanged(self):
        complaint = self.submit()

        with self.assertRaises(InvalidProvider):
            ComplaintAssignmentService.assign(complaint.pk, self.citizen.pk, self.admin)

        complaint.refresh_from_db()
        self.assertIsNone(complaint.assigned_to_id)
        self.assertEqual(complaint.status, ComplaintStatus.SUBMITTED)

    def test_assigning_to_inactive_provider_fails(self):
        complaint = self.submit()
        dormant = User.objects.create_user(
            username="dormant_p", password="Pass12345!", email="d@test.local",
            role=UserRole.PROVIDER, department=self.water, is_active=False,
        )

        with self.assertRaises(InvalidProvider):
            ComplaintAssignmentService.assign(complaint.pk, dormant.pk, self.admin)

    def test_assignment_moves_submitted_to_under_review(self):
        complaint = self.submit()

        assigned = ComplaintAssignmentService.assign(complaint.pk, self.provider.pk, self.admin)

        self.assertEqual(assigned.assigned_to_id, self.provider.pk)
        self.assertEqual(assigned.status, ComplaintStatus.UNDER_REVIEW)

    def test_assignment_does_not_touch_later_statuses(self):
        complaint = self.submit()
        Complaint.objects.filter(pk=complaint.pk).update(status=ComplaintStatus.IN_PROGRESS)

        assigned = ComplaintAssignmentService.assign(complaint.pk, self.provider.pk, self.admin)

        self.assertEqual(assigned.status, ComplaintStatus.IN_PROGRESS)

    def test_complaint_follows_provider_department(self):
        complaint = self.submit()

        assigned = ComplaintAssignmentService.assign(complaint.pk, self.outsider.pk, self.admin)

        self.assertEqual(assigned.department_id, self.roads.pk)

    def test_repeat_assignment_is_idempotent(self):
        complaint = self.submit()
        self.listen(complaint_channel(complaint.pk))

        with self.captureOnCommitCallbacks(execute=True):
            ComplaintAssignmentService.assign(complaint.pk, self.provider.pk, self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            again = ComplaintAssignmentService.assign(complaint.pk, self.provider.pk, self.admin)

        self.assertEqual(again.assigned_to_id, self.provider.pk)
        assignment_events = [
            message for _, message in self.drain() if message["type"] == "assignment_changed"
        ]
        self.assertEqual(len(assignment_events), 1)

    def test_closed_complaint_cannot_be_reassigned(self):
        complaint = self.submit()
        Complaint.objects.filter(pk=complaint.pk).update(status=ComplaintStatus.CLOSED)

        with self.assertRaises(DomainError):
            ComplaintAssignmentService.assign(complaint.pk, self.provider.pk, self.admin)

    def test_citizen_cannot_assign(self):
        complaint = self.submit()

        with self.assertRaises(PermissionDenied):
            ComplaintAssignmentService.assign(complaint.pk, self.provider.pk, self.citizen)

    def test_reassign_department_drops_foreign_assignee(self):
        complaint = self.submit()
        ComplaintAssignmentService.assign(complaint.pk, self.provider.pk, self.admin)

        moved = ComplaintAssignmentService.reassign_department(
            complaint.pk, self.roads.pk, self.admin,
        )

        self.assertEqual(moved.department_id, self.roads.pk)
        self.assertIsNone(moved.assigned_to_id)
        self.assertTrue(
            moved.updates.filter(is_internal=True, update_type=UpdateType.MESSAGE).exists()
        )

    def test_reassign_department_requires_admin(self):
        complaint = self.submit()

        with self.assertRaises(PermissionDenied):
            ComplaintAssignmentService.reassign_department(
                complaint.pk, self.roads.pk, self.provider,
            )
