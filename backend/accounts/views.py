"""
Accounts app views.

Serializers validate, ``accounts.services`` decides, views respond.

- ``RegisterView``       — citizen sign-up, returns a token pair
- ``LoginView``          — username or email login
- ``MeView``             — GET / PATCH /me/
- ``UserViewSet``        — /users/  (list, retrieve, providers, role,
                           activate, deactivate)
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    ChangeRoleSerializer,
    CustomTokenObtainPairSerializer,
    LoginRequestSerializer,
    MeUpdateSerializer,
    RegisterRequestSerializer,
    TokenResponseSerializer,
    UserDetailSerializer,
    UserFilterSerializer,
    UserListSerializer,
)
from .services import (
    AuthenticationService,
    CurrentUserService,
    UserManagementService,
    UserRegistrationService,
)


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class RegisterView(generics.CreateAPIView):
    """
    POST /api/accounts/auth/register/

    Public endpoint.  Creates a new citizen and returns a token pair so
    the client is signed in straight away.

    Request body  → ``RegisterRequestSerializer``
    Response body → ``TokenResponseSerializer`` (201 Created)
    """

    permission_classes = [AllowAny]
    serializer_class = RegisterRequestSerializer

    @extend_schema(
        summary="Register a citizen",
        request=RegisterRequestSerializer,
        responses={
            201: OpenApiResponse(response=TokenResponseSerializer, description="User created."),
            400: OpenApiResponse(description="Validation error."),
            409: OpenApiResponse(description="Username, email or phone already taken."),
        },
        tags=["Auth"],
    )
    def create(self, request: Request, *args, **kwargs) -> Response:
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserRegistrationService.register_user(serializer.validated_data)

        payload = AuthenticationService.generate_tokens(user)
        payload["user"] = user
        return Response(
            TokenResponseSerializer(payload).data,
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates a user by username or email plus
    password.

    Request body  → ``LoginRequestSerializer``
    Response body → ``TokenResponseSerializer`` (200 OK)
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Log in",
        request=LoginRequestSerializer,
        responses={
            200: OpenApiResponse(response=TokenResponseSerializer, description="Token pair and user."),
            400: OpenApiResponse(description="Invalid credentials."),
        },
        tags=["Auth"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)
        payload["user"] = UserDetailSerializer(serializer.user).data
        return Response(payload, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") View
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET  /api/accounts/me/  → Retrieve current user profile.
    PATCH /api/accounts/me/ → Update own profile fields.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user profile",
        responses={200: UserDetailSerializer},
        tags=["Auth"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Update own profile",
        request=MeUpdateSerializer,
        responses={
            200: UserDetailSerializer,
            409: OpenApiResponse(description="Email or phone already in use."),
        },
        tags=["Auth"],
    )
    def patch(self, request: Request) -> Response:
        serializer = MeUpdateSerializer(
            instance=request.user, data=request.data, partial=True,
        )
        serializer.is_valid(raise_exception=True)
        user = CurrentUserService.update_profile(
            request.user, serializer.validated_data,
        )
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  User Management ViewSet
# ═══════════════════════════════════════════════════════════════════


class UserViewSet(viewsets.ViewSet):
    """
    /api/accounts/users/

    Administrative user management (list, retrieve, role, activate,
    deactivate) plus the provider directory used when assigning
    complaints.

    Role checks are enforced in ``UserManagementService``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List users",
        parameters=[
            OpenApiParameter(name="role", type=str, location=OpenApiParameter.QUERY, description="citizen / provider / admin."),
            OpenApiParameter(name="department", type=int, location=OpenApiParameter.QUERY, description="Department PK."),
            OpenApiParameter(name="is_active", type=bool, location=OpenApiParameter.QUERY),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY, description="Partial match on name, email, phone."),
        ],
        responses={200: UserListSerializer(many=True)},
        tags=["Users"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = UserFilterSerializer(data=request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)

        qs = UserManagementService.list_users(
            request.user, **filter_serializer.validated_data,
        )
        return Response(UserListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Retrieve a user",
        responses={200: UserDetailSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Users"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        user = UserManagementService.get_user(pk)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="List active providers",
        parameters=[
            OpenApiParameter(name="department", type=int, location=OpenApiParameter.QUERY, description="Department PK."),
        ],
        responses={200: UserListSerializer(many=True)},
        tags=["Users"],
    )
    @action(detail=False, methods=["get"], url_path="providers")
    def providers(self, request: Request) -> Response:
        filter_serializer = UserFilterSerializer(data=request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)

        qs = UserManagementService.list_providers(
            request.user,
            department_id=filter_serializer.validated_data.get("department_id"),
        )
        return Response(UserListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Change a user's role",
        request=ChangeRoleSerializer,
        responses={200: UserDetailSerializer, 403: OpenApiResponse(description="Admins only.")},
        tags=["Users"],
    )
    @action(detail=True, methods=["patch"], url_path="role")
    def change_role(self, request: Request, pk: str = None) -> Response:
        serializer = ChangeRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserManagementService.change_role(
            user_id=pk,
            role=serializer.validated_data["role"],
            performed_by=request.user,
        )
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Activate a user",
        request=None,
        responses={200: UserDetailSerializer},
        tags=["Users"],
    )
    @action(detail=True, methods=["patch"], url_path="activate")
    def activate(self, request: Request, pk: str = None) -> Response:
        user = UserManagementService.activate_user(pk, performed_by=request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Deactivate a user",
        request=None,
        responses={200: UserDetailSerializer},
        tags=["Users"],
    )
    @action(detail=True, methods=["patch"], url_path="deactivate")
    def deactivate(self, request: Request, pk: str = None) -> Response:
        user = UserManagementService.deactivate_user(pk, performed_by=request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)
