"""
Reviews app ViewSets.

Thin views: validate, delegate to ``services.py``, serialize.
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import (
    ReviewCreateSerializer,
    ReviewFilterSerializer,
    ReviewSerializer,
    ReviewUpdateSerializer,
)
from .services import ReviewQueryService, ReviewService


class ReviewViewSet(viewsets.ViewSet):
    """
    /api/reviews/

    Endpoints
    ---------
    GET    /reviews/                            → list
    POST   /reviews/                            → create (complaint or system)
    GET    /reviews/{id}/                       → retrieve
    PATCH  /reviews/{id}/                       → partial_update (author)
    DELETE /reviews/{id}/                       → destroy (author or admin)
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List reviews",
        parameters=[
            OpenApiParameter(name="department", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="complaint", type=int, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="category", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="review_type", type=str, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="rating", type=str, location=OpenApiParameter.QUERY, description="Star value or range, e.g. '4' or '3-5'."),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY),
        ],
        responses={200: ReviewSerializer(many=True)},
        tags=["Reviews"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ReviewFilterSerializer(data=request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)
        qs = ReviewQueryService.get_filtered_queryset(filter_serializer.validated_data)
        return Response(ReviewSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Write a review",
        description=(
            "Complaint reviews require a resolved complaint submitted by the "
            "caller, once per complaint. System reviews require a category."
        ),
        request=ReviewCreateSerializer,
        responses={
            201: ReviewSerializer,
            400: OpenApiResponse(description="Complaint not resolved, or already reviewed."),
            403: OpenApiResponse(description="Caller did not submit the complaint."),
            404: OpenApiResponse(description="Complaint not found."),
        },
        tags=["Reviews"],
    )
    def create(self, request: Request) -> Response:
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewService.create_review(request.user, serializer.validated_data)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)

    @extend_schema(summary="Retrieve a review", responses={200: ReviewSerializer}, tags=["Reviews"])
    def retrieve(self, request: Request, pk: str = None) -> Response:
        review = ReviewQueryService.get_review(pk)
        return Response(ReviewSerializer(review).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Edit my review",
        request=ReviewUpdateSerializer,
        responses={200: ReviewSerializer},
        tags=["Reviews"],
    )
    def partial_update(self, request: Request, pk: str = None) -> Response:
        serializer = ReviewUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = ReviewService.update_review(pk, request.user, serializer.validated_data)
        return Response(ReviewSerializer(review).data, status=status.HTTP_200_OK)

    @extend_schema(summary="Delete a review", responses={204: None}, tags=["Reviews"])
    def destroy(self, request: Request, pk: str = None) -> Response:
        ReviewService.delete_review(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
