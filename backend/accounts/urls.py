"""
Routes of the ``accounts`` namespace, mounted at ``/api/accounts/``.

    auth/register/            POST   create a citizen account, returns tokens
    auth/login/               POST   username or email + password
    auth/token/refresh/       POST   SimpleJWT refresh
    me/                       GET    own profile
                              PATCH  edit own profile
    users/                    GET    admin: list users (role / active / search)
    users/providers/          GET    active providers, optionally by department
    users/{id}/               GET    admin: user detail
    users/{id}/role/          PATCH  admin: change role
    users/{id}/activate/      PATCH  admin: re-enable login
    users/{id}/deactivate/    PATCH  admin: disable login
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import LoginView, MeView, RegisterView, UserViewSet

app_name = "accounts"

router = DefaultRouter()
router.register(r"users", UserViewSet, basename="user")

urlpatterns = [
    path("auth/register/", RegisterView.as_view(), name="register"),
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="me"),
    path("", include(router.urls)),
]
