"""
Login backend accepting a username or an email address.

Listed in ``settings.AUTHENTICATION_BACKENDS``; ``CustomTokenObtainPairSerializer``
calls ``authenticate(request, identifier=..., password=...)``.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q

User = get_user_model()


class IdentifierAuthBackend(ModelBackend):
    """
    Match ``identifier`` against ``username`` exactly or ``email``
    case-insensitively, then check the password and ``is_active``.

    A plain ``authenticate(username=..., password=...)`` call (the
    Django admin login) is handled the same way.
    """

    def authenticate(self, request, identifier=None, password=None, **kwargs):
        identifier = identifier or kwargs.get(User.USERNAME_FIELD)
        if not identifier or password is None:
            return None

        matches = list(
            User.objects.filter(Q(username=identifier) | Q(email__iexact=identifier))[:2]
        )
        if len(matches) != 1:
            # Keep the response time close to a real password check.
            User().set_password(password)
            return None

        user = matches[0]
        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
