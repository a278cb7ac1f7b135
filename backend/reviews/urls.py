"""
Reviews app URL configuration.

Included in the project-level ``urls.py`` as::

    path('api/', include('reviews.urls')),
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ReviewViewSet

app_name = "reviews"

router = DefaultRouter()
router.register(r"reviews", ReviewViewSet, basename="review")

urlpatterns = [
    path("", include(router.urls)),
]
