from django.urls import path
from rest_framework.routers import DefaultRouter

from core.views import AuditLogViewSet, BranchViewSet, RegisterView, StoreSettingsView

router = DefaultRouter()
router.register(r"branches", BranchViewSet, basename="branch")
router.register(r"admin/audit-logs", AuditLogViewSet, basename="audit-log")

urlpatterns = router.urls + [
    path("register/", RegisterView.as_view(), name="register"),
    path("settings/", StoreSettingsView.as_view(), name="store-settings"),
]
