"""
Complaints app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

ViewSets
--------
- ``ComplaintViewSet``           — Complaint CRUD; custom @action methods
  handle lifecycle, assignment, rating and upvotes.
- ``ComplaintUpdateViewSet``     — Nested progress notes.
- ``ComplaintAttachmentViewSet`` — Nested attachment references.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import (
    AddUpdateSerializer,
    AssignedFilterSerializer,
    AssignSerializer,
    AttachmentCreateSerializer,
    ComplaintAttachmentSerializer,
    ComplaintCreateSerializer,
    ComplaintDetailSerializer,
    ComplaintFilterSerializer,
    ComplaintListSerializer,
    ComplaintUpdateFieldsSerializer,
    ComplaintUpdateSerializer,
    NearbyComplaintSerializer,
    NearbyQuerySerializer,
    RateSerializer,
    ReassignDepartmentSerializer,
    TransitionSerializer,
)
from .services import (
    ComplaintAssignmentService,
    ComplaintAttachmentService,
    ComplaintCreationService,
    ComplaintEngagementService,
    ComplaintLifecycleService,
    ComplaintQueryService,
    ComplaintRatingService,
    ComplaintUpdateService,
)

logger = logging.getLogger(__name__)


class ComplaintViewSet(viewsets.ViewSet):
    """
    Top-level ViewSet for the complaints app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.

    Endpoints
    ---------
    GET    /complaints/                          → list
    POST   /complaints/                          → create
    GET    /complaints/mine/                     → my complaints
    GET    /complaints/assigned/                 → provider work queue
    GET    /complaints/nearby/                   → radius search
    GET    /complaints/{id}/                     → retrieve
    PATCH  /complaints/{id}/                     → partial_update
    DELETE /complaints/{id}/                     → destroy = archive
    POST   /complaints/{id}/transition/          → lifecycle move
    POST   /complaints/{id}/assign/              → assign provider
    POST   /complaints/{id}/reassign-department/ → move department (admin)
    POST   /complaints/{id}/rate/                → rate (resolved only)
    POST   /complaints/{id}/upvote/              → toggle upvote
    """

    permission_classes = [IsAuthenticated]

    def _detail_response(self, request: Request, pk, status_code: int = status.HTTP_200_OK) -> Response:
        complaint = ComplaintQueryService.get_complaint_detail(request.user, pk)
        serializer = ComplaintDetailSerializer(
            complaint,
            context={
                "request": request,
                "show_internal": ComplaintQueryService.can_view_internal(request.user, complaint),
            },
        )
        return Response(serializer.data, status=status_code)

    # ── CRUD ────────────────────────────────────────────────────────

    @extend_schema(
        summary="List complaints",
        description=(
            "Role-scoped: citizens see their own and public complaints, "
            "providers their department's and assignments, admins everything."
        ),
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="category", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="priority", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="department", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="assigned_to", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="is_emergency", type=bool, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="tag", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="created_after", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="created_before", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="include_archived", type=bool, location=OpenApiParameter.QUERY, description="Admins only."),
        ],
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ComplaintFilterSerializer(data=request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)

        qs = ComplaintQueryService.get_filtered_queryset(
            request.user, filter_serializer.validated_data,
        )
        return Response(ComplaintListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Submit a complaint",
        description="Routes the complaint to the department that handles its category.",
        request=ComplaintCreateSerializer,
        responses={
            201: ComplaintDetailSerializer,
            400: OpenApiResponse(description="Validation error or no department handles the category."),
        },
        tags=["Complaints"],
    )
    def create(self, request: Request) -> Response:
        serializer = ComplaintCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        complaint = ComplaintCreationService.create_complaint(
            serializer.validated_data, request.user,
        )
        return self._detail_response(request, complaint.pk, status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a complaint",
        responses={200: ComplaintDetailSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Complaints"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        complaint = ComplaintQueryService.get_complaint_detail(
            request.user, pk, count_view=True,
        )
        serializer = ComplaintDetailSerializer(
            complaint,
            context={
                "request": request,
                "show_internal": ComplaintQueryService.can_view_internal(request.user, complaint),
            },
        )
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Edit a complaint",
        description=(
            "Submitter or admin: tags, is_public. "
            "Staff: priority, estimated_resolution_time."
        ),
        request=ComplaintUpdateFieldsSerializer,
        responses={200: ComplaintDetailSerializer},
        tags=["Complaints"],
    )
    def partial_update(self, request: Request, pk: str = None) -> Response:
        serializer = ComplaintUpdateFieldsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ComplaintEngagementService.update_complaint(pk, request.user, serializer.validated_data)
        return self._detail_response(request, pk)

    @extend_schema(
        summary="Archive a complaint",
        description="Complaints are never hard-deleted.",
        responses={204: None},
        tags=["Complaints"],
    )
    def destroy(self, request: Request, pk: str = None) -> Response:
        ComplaintEngagementService.archive_complaint(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ── Collections ─────────────────────────────────────────────────

    @extend_schema(
        summary="My complaints",
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints"],
    )
    @action(detail=False, methods=["get"], url_path="mine")
    def mine(self, request: Request) -> Response:
        qs = ComplaintQueryService.get_my_complaints(request.user)
        return Response(ComplaintListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Complaints assigned to me",
        parameters=[OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY)],
        responses={200: ComplaintListSerializer(many=True)},
        tags=["Complaints"],
    )
    @action(detail=False, methods=["get"], url_path="assigned")
    def assigned(self, request: Request) -> Response:
        filter_serializer = AssignedFilterSerializer(data=request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)
        qs = ComplaintQueryService.get_assigned_complaints(
            request.user, filter_serializer.validated_data.get("status"),
        )
        return Response(ComplaintListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Complaints near a point",
        parameters=[
            OpenApiParameter(name="longitude", type=float, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="latitude", type=float, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="radius_km", type=float, location=OpenApiParameter.QUERY),
        ],
        responses={200: NearbyComplaintSerializer(many=True)},
        tags=["Complaints"],
    )
    @action(detail=False, methods=["get"], url_path="nearby")
    def nearby(self, request: Request) -> Response:
        serializer = NearbyQuerySerializer(data=request.query_params.dict())
        serializer.is_valid(raise_exception=True)
        complaints = ComplaintQueryService.get_nearby(request.user, **serializer.validated_data)
        return Response(NearbyComplaintSerializer(complaints, many=True).data, status=status.HTTP_200_OK)

    # ── Workflow ────────────────────────────────────────────────────

    @extend_schema(
        summary="Change complaint status",
        description=(
            "submitted → under_review → in_progress → resolved → closed. "
            "Only admins may skip or reverse steps."
        ),
        request=TransitionSerializer,
        responses={
            200: ComplaintDetailSerializer,
            400: OpenApiResponse(description="Unknown status or transition not allowed."),
            403: OpenApiResponse(description="Not staff for this complaint."),
        },
        tags=["Complaints – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request: Request, pk: str = None) -> Response:
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ComplaintLifecycleService.transition(
            pk,
            serializer.validated_data["new_status"],
            request.user,
            serializer.validated_data["message"],
        )
        return self._detail_response(request, pk)

    @extend_schema(
        summary="Assign a provider",
        request=AssignSerializer,
        responses={
            200: ComplaintDetailSerializer,
            400: OpenApiResponse(description="Target is not an active provider."),
        },
        tags=["Complaints – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: str = None) -> Response:
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ComplaintAssignmentService.assign(
            pk, serializer.validated_data["provider_id"], request.user,
        )
        return self._detail_response(request, pk)

    @extend_schema(
        summary="Move a complaint to another department",
        request=ReassignDepartmentSerializer,
        responses={200: ComplaintDetailSerializer},
        tags=["Complaints – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="reassign-department")
    def reassign_department(self, request: Request, pk: str = None) -> Response:
        serializer = ReassignDepartmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ComplaintAssignmentService.reassign_department(
            pk, serializer.validated_data["department_id"], request.user,
        )
        return self._detail_response(request, pk)

    @extend_schema(
        summary="Rate a resolved complaint",
        request=RateSerializer,
        responses={
            200: ComplaintDetailSerializer,
            400: OpenApiResponse(description="Complaint is not resolved."),
            403: OpenApiResponse(description="Only the submitter may rate."),
        },
        tags=["Complaints – Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="rate")
    def rate(self, request: Request, pk: str = None) -> Response:
        serializer = RateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ComplaintRatingService.submit_rating(
            pk,
            request.user,
            serializer.validated_data["rating"],
            serializer.validated_data["feedback"],
        )
        return self._detail_response(request, pk)

    @extend_schema(
        summary="Toggle my upvote",
        request=None,
        responses={200: OpenApiResponse(description='{"upvoted": bool, "upvote_count": int}')},
        tags=["Complaints"],
    )
    @action(detail=True, methods=["post"], url_path="upvote")
    def upvote(self, request: Request, pk: str = None) -> Response:
        complaint, upvoted = ComplaintEngagementService.toggle_upvote(pk, request.user)
        return Response(
            {"upvoted": upvoted, "upvote_count": complaint.upvoters.count()},
            status=status.HTTP_200_OK,
        )


class ComplaintUpdateViewSet(viewsets.ViewSet):
    """
    Progress notes nested under a complaint.

    GET  /complaints/{complaint_pk}/updates/ → history (internal notes for staff only)
    POST /complaints/{complaint_pk}/updates/ → add a note
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Complaint history",
        responses={200: ComplaintUpdateSerializer(many=True)},
        tags=["Complaints – Updates"],
    )
    def list(self, request: Request, complaint_pk: str = None) -> Response:
        qs = ComplaintUpdateService.list_updates(request.user, complaint_pk)
        return Response(ComplaintUpdateSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Add a note",
        description=(
            "Staff may post progress updates, messages and internal notes. "
            "The submitter may post public messages."
        ),
        request=AddUpdateSerializer,
        responses={201: ComplaintUpdateSerializer},
        tags=["Complaints – Updates"],
    )
    def create(self, request: Request, complaint_pk: str = None) -> Response:
        serializer = AddUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        update = ComplaintUpdateService.add_update(
            complaint_pk, request.user, **serializer.validated_data,
        )
        return Response(ComplaintUpdateSerializer(update).data, status=status.HTTP_201_CREATED)


class ComplaintAttachmentViewSet(viewsets.ViewSet):
    """
    Attachment references nested under a complaint.

    GET  /complaints/{complaint_pk}/attachments/ → list
    POST /complaints/{complaint_pk}/attachments/ → register (file already in blob storage)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List attachments",
        responses={200: ComplaintAttachmentSerializer(many=True)},
        tags=["Complaints – Updates"],
    )
    def list(self, request: Request, complaint_pk: str = None) -> Response:
        qs = ComplaintAttachmentService.list_attachments(request.user, complaint_pk)
        return Response(ComplaintAttachmentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Register an attachment",
        request=AttachmentCreateSerializer,
        responses={201: ComplaintAttachmentSerializer},
        tags=["Complaints – Updates"],
    )
    def create(self, request: Request, complaint_pk: str = None) -> Response:
        serializer = AttachmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        attachment = ComplaintAttachmentService.add_attachment(
            complaint_pk, request.user, serializer.validated_data,
        )
        return Response(ComplaintAttachmentSerializer(attachment).data, status=status.HTTP_201_CREATED)
