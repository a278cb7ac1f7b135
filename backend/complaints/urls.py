"""
Complaints app URL configuration.

    /api/complaints/                                  → list / create
    /api/complaints/{id}/                             → retrieve / edit / archive
    /api/complaints/{id}/<action>/                    → workflow actions
    /api/complaints/{complaint_pk}/updates/           → history / add note
    /api/complaints/{complaint_pk}/attachments/       → list / register

Included in the project-level ``urls.py`` as::

    path('api/', include('complaints.urls')),
"""

from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers as nested_routers

from .views import (
    ComplaintAttachmentViewSet,
    ComplaintUpdateViewSet,
    ComplaintViewSet,
)

app_name = "complaints"

# ── Root router ──────────────────────────────────────────────────────────────
router = DefaultRouter()
router.register(
    prefix=r"complaints",
    viewset=ComplaintViewSet,
    basename="complaint",
)

# ── Nested router: updates and attachments ───────────────────────────────────
# Parent lookup kwarg → complaint_pk
complaint_router = nested_routers.NestedDefaultRouter(
    parent_router=router,
    parent_prefix=r"complaints",
    lookup="complaint",
)
complaint_router.register(
    prefix=r"updates",
    viewset=ComplaintUpdateViewSet,
    basename="complaint-update",
)
complaint_router.register(
    prefix=r"attachments",
    viewset=ComplaintAttachmentViewSet,
    basename="complaint-attachment",
)

urlpatterns = [
    *router.urls,
    *complaint_router.urls,
]
