"""
HTTP-level tests for the complaint endpoints.

Each class focuses on one area: submission, role scoping, radius search,
history notes, attachments, edits / archive and upvotes.
"""

from __future__ import annotations

import pytest
from django.urls import reverse
from rest_framework import status

from accounts.models import UserRole
from complaints.models import Complaint, ComplaintStatus, UpdateType
from core.domain.notifications import complaint_channel

pytestmark = pytest.mark.django_db


@pytest.fixture()
def water(make_department):
    return make_department("Water Board", "WTR", categories=("water",))


@pytest.fixture()
def roads(make_department):
    return make_department("Roads Dept", "RDS", categories=("roads",))


@pytest.fixture()
def citizen(create_user):
    return create_user(username="citizen_one")


@pytest.fixture()
def neighbour(create_user):
    return create_user(username="citizen_two")


@pytest.fixture()
def provider(create_user, water):
    return create_user(username="water_provider", role=UserRole.PROVIDER, department=water)


@pytest.fixture()
def admin(create_user):
    return create_user(username="site_admin", role=UserRole.ADMIN)


def _payload(**overrides) -> dict:
    payload = {
        "title": "Leaking hydrant",
        "description": "Hydrant on the corner has been leaking for two days.",
        "category": "water",
        "longitude": 51.389,
        "latitude": 35.689,
        "address": "Corner of 5th and Main",
        "tags": ["Leak", "leak ", "Hydrant"],
    }
    payload.update(overrides)
    return payload


def _detail_url(complaint) -> str:
    return reverse("complaints:complaint-detail", kwargs={"pk": complaint.pk})


# ── Submission ───────────────────────────────────────────────────────


class TestSubmitComplaint:

    def test_submit_returns_routed_complaint(self, api_client, citizen, water):
        api_client.force_authenticate(user=citizen)

        response = api_client.post(reverse("complaints:complaint-list"), _payload(), format="json")

        assert response.status_code == status.HTTP_201_CREATED, response.data
        assert response.data["status"] == ComplaintStatus.SUBMITTED
        assert response.data["department"]["code"] == "WTR"
        assert response.data["submitted_by"]["id"] == citizen.pk
        assert response.data["tags"] == ["leak", "hydrant"]
        assert len(response.data["updates"]) == 1

    def test_client_cannot_choose_status_or_department(self, api_client, citizen, water, roads):
        api_client.force_authenticate(user=citizen)

        response = api_client.post(
            reverse("complaints:complaint-list"),
            _payload(status="resolved", department=roads.pk),
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == ComplaintStatus.SUBMITTED
        assert response.data["department"]["id"] == water.pk

    def test_unrouted_category_returns_400(self, api_client, citizen, water):
        api_client.force_authenticate(user=citizen)

        response = api_client.post(
            reverse("complaints:complaint-list"), _payload(category="drainage"), format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["code"] == "NoDepartmentForCategory"
        assert not Complaint.objects.exists()

    def test_out_of_range_coordinates_rejected(self, api_client, citizen, water):
        api_client.force_authenticate(user=citizen)

        response = api_client.post(
            reverse("complaints:complaint-list"), _payload(latitude=123.0), format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "latitude" in response.data

    def test_submit_with_attachments(self, api_client, citizen, water):
        api_client.force_authenticate(user=citizen)
        attachments = [
            {
                "filename": "photo.jpg",
                "url": "https://blobs.example/photo.jpg",
                "file_type": "image",
                "size": 2048,
            },
        ]

        response = api_client.post(
            reverse("complaints:complaint-list"),
            _payload(attachments=attachments),
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED, response.data
        assert [a["filename"] for a in response.data["attachments"]] == ["photo.jpg"]

    def test_submit_with_bearer_token(self, api_client, auth_header, water):
        header = auth_header(username="token_citizen")
        api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])

        response = api_client.post(reverse("complaints:complaint-list"), _payload(), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["submitted_by"]["username"] == "token_citizen"

    def test_anonymous_cannot_submit(self, api_client, water):
        response = api_client.post(reverse("complaints:complaint-list"), _payload(), format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ── Visibility ───────────────────────────────────────────────────────


class TestVisibility:

    def test_citizen_sees_own_and_public(
        self, api_client, citizen, neighbour, water, make_complaint,
    ):
        mine = make_complaint(submitted_by=citizen, department=water, is_public=False)
        public = make_complaint(submitted_by=neighbour, department=water)
        make_complaint(submitted_by=neighbour, department=water, is_public=False)
        api_client.force_authenticate(user=citizen)

        response = api_client.get(reverse("complaints:complaint-list"))

        assert response.status_code == status.HTTP_200_OK
        assert sorted(row["id"] for row in response.data) == sorted([mine.pk, public.pk])

    def test_private_complaint_of_other_citizen_is_404(
        self, api_client, citizen, neighbour, water, make_complaint,
    ):
        private = make_complaint(submitted_by=neighbour, department=water, is_public=False)
        api_client.force_authenticate(user=citizen)

        response = api_client.get(_detail_url(private))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_provider_sees_department_complaints(
        self, api_client, citizen, provider, water, roads, make_complaint,
    ):
        own_dept = make_complaint(submitted_by=citizen, department=water, is_public=False)
        make_complaint(submitted_by=citizen, department=roads, category="roads", is_public=False)
        api_client.force_authenticate(user=provider)

        response = api_client.get(reverse("complaints:complaint-list"))

        assert [row["id"] for row in response.data] == [own_dept.pk]

    def test_list_filters(self, api_client, admin, citizen, water, make_complaint):
        target = make_complaint(
            submitted_by=citizen, department=water, tags=["pothole"], is_emergency=True,
        )
        make_complaint(submitted_by=citizen, department=water, tags=["noise"])
        api_client.force_authenticate(user=admin)

        by_tag = api_client.get(reverse("complaints:complaint-list"), {"tag": "Pothole"})
        by_flag = api_client.get(reverse("complaints:complaint-list"), {"is_emergency": "true"})

        assert [row["id"] for row in by_tag.data] == [target.pk]
        assert [row["id"] for row in by_flag.data] == [target.pk]

    def test_invalid_date_range_is_rejected(self, api_client, admin):
        api_client.force_authenticate(user=admin)

        response = api_client.get(
            reverse("complaints:complaint-list"),
            {"created_after": "2024-05-02", "created_before": "2024-05-01"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_view_count_ignores_submitter(
        self, api_client, citizen, neighbour, water, make_complaint,
    ):
        complaint = make_complaint(submitted_by=citizen, department=water)

        api_client.force_authenticate(user=citizen)
        api_client.get(_detail_url(complaint))
        api_client.force_authenticate(user=neighbour)
        response = api_client.get(_detail_url(complaint))

        assert response.data["view_count"] == 1

    def test_mine_and_assigned(self, api_client, citizen, provider, water, make_complaint):
        make_complaint(submitted_by=citizen, department=water)
        assigned = make_complaint(submitted_by=citizen, department=water, assigned_to=provider)

        api_client.force_authenticate(user=citizen)
        assert len(api_client.get(reverse("complaints:complaint-mine")).data) == 2
        assert (
            api_client.get(reverse("complaints:complaint-assigned")).status_code
            == status.HTTP_403_FORBIDDEN
        )

        api_client.force_authenticate(user=provider)
        queue = api_client.get(reverse("complaints:complaint-assigned")).data
        assert [row["id"] for row in queue] == [assigned.pk]


# ── Nearby ───────────────────────────────────────────────────────────


class TestNearby:

    def test_nearby_sorted_by_distance(self, api_client, citizen, water, make_complaint):
        origin_lon, origin_lat = 51.389, 35.689
        close = make_complaint(
            submitted_by=citizen, department=water, longitude=origin_lon, latitude=origin_lat + 0.005,
        )
        closer = make_complaint(
            submitted_by=citizen, department=water, longitude=origin_lon, latitude=origin_lat,
        )
        make_complaint(
            submitted_by=citizen, department=water, longitude=origin_lon, latitude=origin_lat + 1.0,
        )
        api_client.force_authenticate(user=citizen)

        response = api_client.get(
            reverse("complaints:complaint-nearby"),
            {"longitude": origin_lon, "latitude": origin_lat, "radius_km": 2},
        )

        assert response.status_code == status.HTTP_200_OK
        assert [row["id"] for row in response.data] == [closer.pk, close.pk]
        assert response.data[0]["distance_km"] == 0.0
        assert 0.5 < response.data[1]["distance_km"] < 0.6

    def test_radius_is_capped(self, api_client, citizen):
        api_client.force_authenticate(user=citizen)

        response = api_client.get(
            reverse("complaints:complaint-nearby"),
            {"longitude": 0, "latitude": 0, "radius_km": 500},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# ── Workflow over HTTP ───────────────────────────────────────────────


class TestWorkflowEndpoints:

    def test_transition_endpoint(self, api_client, provider, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=provider)
        url = reverse("complaints:complaint-transition", kwargs={"pk": complaint.pk})

        skipped = api_client.post(url, {"new_status": "in_progress"}, format="json")
        stepped = api_client.post(url, {"new_status": "under_review"}, format="json")
        unknown = api_client.post(url, {"new_status": "paused"}, format="json")

        assert skipped.status_code == status.HTTP_400_BAD_REQUEST
        assert skipped.data["code"] == "InvalidTransition"
        assert stepped.status_code == status.HTTP_200_OK
        assert stepped.data["status"] == ComplaintStatus.UNDER_REVIEW
        assert unknown.data["code"] == "InvalidStatus"

    def test_assign_endpoint_rejects_citizen_target(
        self, api_client, admin, citizen, water, make_complaint,
    ):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=admin)

        response = api_client.post(
            reverse("complaints:complaint-assign", kwargs={"pk": complaint.pk}),
            {"provider_id": citizen.pk},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["code"] == "InvalidProvider"

    def test_rate_requires_resolved(self, api_client, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=citizen)

        response = api_client.post(
            reverse("complaints:complaint-rate", kwargs={"pk": complaint.pk}),
            {"rating": 5},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["code"] == "NotResolvableYet"

    def test_rate_resolved_complaint(self, api_client, citizen, water, make_complaint):
        complaint = make_complaint(
            submitted_by=citizen, department=water, status=ComplaintStatus.RESOLVED,
        )
        api_client.force_authenticate(user=citizen)
        url = reverse("complaints:complaint-rate", kwargs={"pk": complaint.pk})

        api_client.post(url, {"rating": 2, "feedback": "Slow"}, format="json")
        response = api_client.post(url, {"rating": 4, "feedback": "Fixed"}, format="json")

        assert response.status_code == status.HTTP_200_OK, response.data
        assert response.data["rating"] == 4
        assert response.data["feedback"] == "Fixed"
        assert complaint.reviews.count() == 1


# ── History notes ────────────────────────────────────────────────────


class TestUpdates:

    def test_staff_internal_note_hidden_from_citizen(
        self, api_client, provider, citizen, water, make_complaint,
    ):
        complaint = make_complaint(submitted_by=citizen, department=water)
        url = reverse("complaints:complaint-update-list", kwargs={"complaint_pk": complaint.pk})

        api_client.force_authenticate(user=provider)
        created = api_client.post(
            url, {"message": "Crew checked the valve.", "is_internal": True}, format="json",
        )
        api_client.post(url, {"message": "Crew scheduled for Monday."}, format="json")

        assert created.status_code == status.HTTP_201_CREATED, created.data
        assert created.data["update_type"] == UpdateType.PROGRESS_UPDATE

        api_client.force_authenticate(user=citizen)
        visible = api_client.get(url).data
        assert [u["message"] for u in visible] == ["Crew scheduled for Monday."]

        detail = api_client.get(_detail_url(complaint)).data
        assert all(not u["is_internal"] for u in detail["updates"])

    def test_only_public_notes_are_broadcast(
        self, api_client, provider, citizen, water, make_complaint,
        event_listener, django_capture_on_commit_callbacks,
    ):
        complaint = make_complaint(submitted_by=citizen, department=water)
        listener = event_listener(complaint_channel(complaint.pk))
        url = reverse("complaints:complaint-update-list", kwargs={"complaint_pk": complaint.pk})
        api_client.force_authenticate(user=provider)

        with django_capture_on_commit_callbacks(execute=True):
            api_client.post(url, {"message": "Internal only", "is_internal": True}, format="json")
            api_client.post(url, {"message": "Valve replaced"}, format="json")

        channel, message = listener.receive(timeout=0)
        assert channel == complaint_channel(complaint.pk)
        assert message["type"] == "update_added"
        assert message["message"] == "Valve replaced"
        assert listener.receive(timeout=0) is None

    def test_citizen_posts_message(self, api_client, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=citizen)

        response = api_client.post(
            reverse("complaints:complaint-update-list", kwargs={"complaint_pk": complaint.pk}),
            {"message": "Still leaking."},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED, response.data
        assert response.data["update_type"] == UpdateType.MESSAGE

    def test_citizen_cannot_post_internal(self, api_client, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=citizen)

        response = api_client.post(
            reverse("complaints:complaint-update-list", kwargs={"complaint_pk": complaint.pk}),
            {"message": "psst", "is_internal": True},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_stranger_cannot_post(self, api_client, citizen, neighbour, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=neighbour)

        response = api_client.post(
            reverse("complaints:complaint-update-list", kwargs={"complaint_pk": complaint.pk}),
            {"message": "Me too!"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["code"] == "NotOwner"


# ── Attachments ──────────────────────────────────────────────────────


class TestAttachments:

    def _attachment(self, n: int) -> dict:
        return {
            "filename": f"doc{n}.pdf",
            "url": f"https://blobs.example/doc{n}.pdf",
            "file_type": "document",
            "size": 1024,
        }

    def test_owner_adds_up_to_limit(self, api_client, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=citizen)
        url = reverse("complaints:complaint-attachment-list", kwargs={"complaint_pk": complaint.pk})

        for n in range(5):
            response = api_client.post(url, self._attachment(n), format="json")
            assert response.status_code == status.HTTP_201_CREATED, response.data

        overflow = api_client.post(url, self._attachment(5), format="json")

        assert overflow.status_code == status.HTTP_400_BAD_REQUEST
        assert len(api_client.get(url).data) == 5

    def test_oversized_attachment_rejected(self, api_client, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=citizen)
        payload = self._attachment(0) | {"size": 11 * 1024 * 1024}

        response = api_client.post(
            reverse("complaints:complaint-attachment-list", kwargs={"complaint_pk": complaint.pk}),
            payload,
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "size" in response.data


# ── Edits, archive, upvotes ──────────────────────────────────────────


class TestEngagement:

    def test_owner_edits_tags_but_not_priority(
        self, api_client, citizen, water, make_complaint,
    ):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=citizen)

        tagged = api_client.patch(_detail_url(complaint), {"tags": ["Urgent"]}, format="json")
        reprioritised = api_client.patch(_detail_url(complaint), {"priority": "high"}, format="json")

        assert tagged.status_code == status.HTTP_200_OK
        assert tagged.data["tags"] == ["urgent"]
        assert reprioritised.status_code == status.HTTP_403_FORBIDDEN

    def test_provider_sets_estimate(self, api_client, provider, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=provider)

        response = api_client.patch(
            _detail_url(complaint), {"estimated_resolution_time": 24}, format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["estimated_resolution_time"] == 24

    def test_archive_hides_complaint(self, api_client, admin, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=citizen)

        response = api_client.delete(_detail_url(complaint))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert Complaint.objects.filter(pk=complaint.pk, is_archived=True).exists()
        assert api_client.get(_detail_url(complaint)).status_code == status.HTTP_404_NOT_FOUND

        api_client.force_authenticate(user=admin)
        archived = api_client.get(
            reverse("complaints:complaint-list"), {"include_archived": "true"},
        )
        assert [row["id"] for row in archived.data] == [complaint.pk]

    def test_stranger_cannot_archive(self, api_client, neighbour, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=neighbour)

        response = api_client.delete(_detail_url(complaint))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_upvote_toggles(self, api_client, neighbour, citizen, water, make_complaint):
        complaint = make_complaint(submitted_by=citizen, department=water)
        api_client.force_authenticate(user=neighbour)
        url = reverse("complaints:complaint-upvote", kwargs={"pk": complaint.pk})

        first = api_client.post(url)
        second = api_client.post(url)

        assert first.data == {"upvoted": True, "upvote_count": 1}
        assert second.data == {"upvoted": False, "upvote_count": 0}
