"""
Accounts serializers: registration, login, profile and the admin user
directory.  Uniqueness clashes and role rules are checked in
``services.py``; these classes only shape and validate fields.
"""

from __future__ import annotations

import re
from typing import Any

from django.contrib.auth import authenticate, get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import UserRole
from .services import add_token_claims

User = get_user_model()

PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")


def _validate_phone(value: str) -> str:
    if value and not PHONE_PATTERN.match(value):
        raise serializers.ValidationError(
            "Phone number must contain 7 to 15 digits, optionally prefixed with '+'."
        )
    return value


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class RegisterRequestSerializer(serializers.ModelSerializer):
    """
    Self-registration body.  Every account created here is a citizen;
    ``role`` is not an accepted field.  The email is lower-cased so the
    case-insensitive login lookup stays unambiguous.
    """

    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Minimum 8 characters.",
    )
    password_confirm = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="Must match 'password'.",
    )

    class Meta:
        model = User
        fields = [
            "username",
            "password",
            "password_confirm",
            "email",
            "phone_number",
            "first_name",
            "last_name",
        ]
        extra_kwargs = {
            "email": {"required": True, "validators": []},
            "username": {"validators": []},
            "phone_number": {"required": False, "validators": []},
            "first_name": {"required": True},
            "last_name": {"required": True},
        }

    def validate_phone_number(self, value: str) -> str:
        return _validate_phone(value)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["password"] != attrs["password_confirm"]:
            raise serializers.ValidationError(
                {"password_confirm": "Passwords do not match."}
            )

        # password_confirm is only used for validation
        attrs.pop("password_confirm")
        attrs["email"] = attrs["email"].lower()
        return attrs


class LoginRequestSerializer(serializers.Serializer):
    """
    Documents the login body: ``identifier`` (username or email) plus
    ``password``.
    """

    identifier = serializers.CharField(
        help_text="Username or Email.",
    )
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="User account password.",
    )


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    SimpleJWT pair serializer keyed on ``identifier`` (username or
    email).  Authentication goes through ``IdentifierAuthBackend`` and
    the issued tokens carry ``role`` and ``department_id`` claims.
    """

    username_field = "identifier"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["identifier"] = serializers.CharField(
            help_text="Username or Email.",
        )

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        return add_token_claims(token, user)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Authenticate using the custom ``IdentifierAuthBackend``.

        Returns a dict containing ``access`` and ``refresh``; the
        authenticated user is left on ``self.user`` for the view.
        """
        user = authenticate(
            request=self.context.get("request"),
            identifier=attrs.get("identifier"),
            password=attrs.get("password"),
        )

        if user is None:
            raise serializers.ValidationError(
                {"detail": "Invalid credentials."},
                code="authentication",
            )

        refresh = self.get_token(user)
        self.user = user
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


class TokenResponseSerializer(serializers.Serializer):
    """
    Serializes the JWT token pair returned after successful login or
    registration.
    """

    access = serializers.CharField(read_only=True)
    refresh = serializers.CharField(read_only=True)
    user = serializers.SerializerMethodField()

    def get_user(self, obj: dict) -> dict | None:
        user = obj.get("user")
        if user:
            return UserDetailSerializer(user).data
        return None


# ═══════════════════════════════════════════════════════════════════
#  User Serializers
# ═══════════════════════════════════════════════════════════════════


class UserListSerializer(serializers.ModelSerializer):
    """
    Serializer for listing users (admin views, provider directory).
    """

    department_name = serializers.CharField(
        source="department.name",
        read_only=True,
        default=None,
    )

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "is_active",
            "role",
            "department",
            "department_name",
        ]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (used in retrieve, me, and registration
    response).
    """

    role_display = serializers.CharField(source="get_role_display", read_only=True)
    department_name = serializers.CharField(
        source="department.name",
        read_only=True,
        default=None,
    )

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "is_active",
            "date_joined",
            "role",
            "role_display",
            "department",
            "department_name",
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user reference nested inside complaints and reviews."""

    full_name = serializers.CharField(source="get_full_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "role"]
        read_only_fields = fields


class ChangeRoleSerializer(serializers.Serializer):
    """
    Accepts the new ``role`` value for a user.

    Used by the ``role`` action on ``UserViewSet``; administrators only.
    """

    role = serializers.ChoiceField(choices=UserRole.choices)


class UserFilterSerializer(serializers.Serializer):
    """Query-parameter filters for the admin user listing."""

    role = serializers.ChoiceField(choices=UserRole.choices, required=False)
    department = serializers.IntegerField(required=False, source="department_id")
    is_active = serializers.BooleanField(required=False, allow_null=True, default=None)
    search = serializers.CharField(required=False, allow_blank=True)


class MeUpdateSerializer(serializers.ModelSerializer):
    """
    Allows the authenticated user to update limited profile fields.
    Sensitive fields (role, department, is_active, username) cannot be
    self-modified.
    """

    class Meta:
        model = User
        fields = [
            "email",
            "phone_number",
            "first_name",
            "last_name",
        ]
        extra_kwargs = {
            "email": {"validators": []},
            "phone_number": {"validators": []},
        }

    def validate_phone_number(self, value: str) -> str:
        return _validate_phone(value)
