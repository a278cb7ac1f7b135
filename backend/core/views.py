"""
Core app views: the public constants endpoint and the authenticated
Server-Sent Events stream.  Both delegate to ``core.services``.
"""

from __future__ import annotations

from django.http import StreamingHttpResponse
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import EventStreamQuerySerializer, SystemConstantsSerializer
from .services import EventStreamService, SystemConstantsService


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return all system-wide choice enumerations, the forward status
    lifecycle and input limits so the frontend can build dropdowns,
    filters and labels without hardcoding values.

    **Authentication**: Not required (``AllowAny``).
    These constants are public configuration data.

    **Response** (``200 OK``):
        Serialised by ``SystemConstantsSerializer``.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="System constants",
        description=(
            "Return all system-wide choice enumerations, the status lifecycle "
            "and input limits."
        ),
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class EventStreamView(APIView):
    """
    **GET /api/core/events/[?complaint=<id>&complaint=<id>...]**

    Server-Sent-Events stream of complaint notifications.

    The caller is subscribed to the channel of their role (``citizen``,
    ``provider`` or ``admin``) and to one ``complaint-<id>`` channel per
    ``complaint`` query parameter.  Channels are joined before the
    response starts and left when it is closed.

    Frames::

        event: status_changed
        data: {"channel": "complaint-7", "type": "status_changed", ...}

    A ``: heartbeat`` comment is sent whenever no event arrives within
    ``NOTIFICATIONS["HEARTBEAT_SECONDS"]``.

    **Error Responses**:
        - ``401 Unauthorized``: Missing or invalid credentials.
        - ``404 Not Found``: A requested complaint is not visible.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Notification event stream",
        parameters=[
            OpenApiParameter(
                name="complaint",
                type=int,
                many=True,
                location=OpenApiParameter.QUERY,
                description="Complaint ids whose channels to join.",
            ),
        ],
        responses={200: OpenApiResponse(response=OpenApiTypes.STR, description="text/event-stream")},
        tags=["System"],
    )
    def get(self, request: Request) -> StreamingHttpResponse:
        query = EventStreamQuerySerializer(
            data={"complaint": request.query_params.getlist("complaint")},
        )
        query.is_valid(raise_exception=True)

        stream = EventStreamService(
            request.user, query.validated_data["complaint"],
        ).open()

        response = StreamingHttpResponse(stream, content_type="text/event-stream")
        response["Cache-Control"] = "no-cache"
        response["X-Accel-Buffering"] = "no"
        return response
