"""
Departments app ViewSets.

Views are intentionally thin: parse / validate input via a serializer,
delegate to a service class, serialize the result.  Administrator checks
live in the service layer.
"""

from __future__ import annotations

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

from accounts.serializers import UserDetailSerializer

from .serializers import (
    AddStaffSerializer,
    DepartmentDetailSerializer,
    DepartmentFilterSerializer,
    DepartmentListSerializer,
    DepartmentStaffSerializer,
    DepartmentWriteSerializer,
    RoutingPreviewSerializer,
    SetHeadSerializer,
)
from .services import (
    DepartmentQueryService,
    DepartmentRoutingService,
    DepartmentService,
    DepartmentStaffService,
)


class DepartmentViewSet(viewsets.ViewSet):
    """
    /api/departments/

    Endpoints
    ---------
    GET    /departments/                         → list
    POST   /departments/                         → create (admin)
    GET    /departments/resolve/?category=       → routing preview
    GET    /departments/{id}/                    → retrieve
    PATCH  /departments/{id}/                    → partial_update (admin)
    DELETE /departments/{id}/                    → destroy = deactivate (admin)
    POST   /departments/{id}/staff/              → add_staff (admin)
    DELETE /departments/{id}/staff/{user_id}/    → remove_staff (admin)
    POST   /departments/{id}/head/               → set_head (admin)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List departments",
        parameters=[
            OpenApiParameter(name="category", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="is_active", type=bool, location=OpenApiParameter.QUERY, description="Admins only."),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY),
        ],
        responses={200: DepartmentListSerializer(many=True)},
        tags=["Departments"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = DepartmentFilterSerializer(data=request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)

        qs = DepartmentQueryService.get_filtered_queryset(
            request.user, filter_serializer.validated_data,
        )
        return Response(DepartmentListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Create a department",
        request=DepartmentWriteSerializer,
        responses={
            201: DepartmentDetailSerializer,
            403: OpenApiResponse(description="Admins only."),
            409: OpenApiResponse(description="Name or code already in use."),
        },
        tags=["Departments"],
    )
    def create(self, request: Request) -> Response:
        serializer = DepartmentWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        department = DepartmentService.create_department(
            serializer.validated_data, request.user,
        )
        return Response(DepartmentDetailSerializer(department).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a department",
        responses={200: DepartmentDetailSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Departments"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        department = DepartmentQueryService.get_department(request.user, pk)
        return Response(DepartmentDetailSerializer(department).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Update a department",
        request=DepartmentWriteSerializer,
        responses={200: DepartmentDetailSerializer},
        tags=["Departments"],
    )
    def partial_update(self, request: Request, pk: str = None) -> Response:
        serializer = DepartmentWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        department = DepartmentService.update_department(
            pk, serializer.validated_data, request.user,
        )
        return Response(DepartmentDetailSerializer(department).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Deactivate a department",
        description="Soft delete. Refused while the department has open complaints.",
        responses={
            200: DepartmentListSerializer,
            409: OpenApiResponse(description="Open complaints still reference the department."),
        },
        tags=["Departments"],
    )
    def destroy(self, request: Request, pk: str = None) -> Response:
        department = DepartmentService.deactivate_department(pk, request.user)
        return Response(DepartmentListSerializer(department).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Preview complaint routing",
        description="Return the department a complaint of this category would be routed to.",
        parameters=[
            OpenApiParameter(name="category", type=str, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="longitude", type=float, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="latitude", type=float, location=OpenApiParameter.QUERY),
        ],
        responses={
            200: DepartmentListSerializer,
            400: OpenApiResponse(description="No active department handles the category."),
        },
        tags=["Departments"],
    )
    @action(detail=False, methods=["get"], url_path="resolve")
    def resolve(self, request: Request) -> Response:
        serializer = RoutingPreviewSerializer(data=request.query_params.dict())
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        location_hint = None
        if "longitude" in data:
            location_hint = (data["longitude"], data["latitude"])

        department = DepartmentRoutingService.resolve_department(
            data["category"], location_hint,
        )
        return Response(DepartmentListSerializer(department).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Add a staff member",
        description="Promotes a citizen to provider and affiliates them with the department.",
        request=AddStaffSerializer,
        responses={201: DepartmentStaffSerializer},
        tags=["Departments"],
    )
    @action(detail=True, methods=["post"], url_path="staff")
    def add_staff(self, request: Request, pk: str = None) -> Response:
        serializer = AddStaffSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        membership = DepartmentStaffService.add_staff(
            pk,
            serializer.validated_data["user_id"],
            request.user,
            position=serializer.validated_data["position"],
        )
        return Response(DepartmentStaffSerializer(membership).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Remove a staff member",
        description="Reverts the user to citizen when they no longer staff or head any department.",
        request=None,
        responses={200: UserDetailSerializer},
        tags=["Departments"],
    )
    @action(detail=True, methods=["delete"], url_path=r"staff/(?P<user_id>[^/.]+)")
    def remove_staff(self, request: Request, pk: str = None, user_id: str = None) -> Response:
        user = DepartmentStaffService.remove_staff(pk, user_id, request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Set the department head",
        request=SetHeadSerializer,
        responses={200: DepartmentDetailSerializer},
        tags=["Departments"],
    )
    @action(detail=True, methods=["post"], url_path="head")
    def set_head(self, request: Request, pk: str = None) -> Response:
        serializer = SetHeadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        department = DepartmentStaffService.set_head(
            pk, serializer.validated_data["user_id"], request.user,
        )
        return Response(DepartmentDetailSerializer(department).data, status=status.HTTP_200_OK)
