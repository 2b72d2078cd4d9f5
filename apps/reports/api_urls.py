from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import ReportTemplateViewSet, ReportViewSet

app_name = "reports_api"

router = DefaultRouter()
router.register(r"report-templates", ReportTemplateViewSet, basename="reporttemplate")
router.register(r"reports", ReportViewSet, basename="report")

urlpatterns = [path("", include(router.urls))]
