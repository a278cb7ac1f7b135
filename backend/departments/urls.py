"""
Departments app URL configuration.

Included in the project-level ``urls.py`` as::

    path('api/', include('departments.urls')),
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import DepartmentViewSet

app_name = "departments"

router = DefaultRouter()
router.register(r"departments", DepartmentViewSet, basename="department")

urlpatterns = [
    path("", include(router.urls)),
]
