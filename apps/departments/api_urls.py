from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import DepartmentViewSet

app_name = "departments_api"

router = DefaultRouter()
router.register(r"departments", DepartmentViewSet, basename="department")

urlpatterns = [path("", include(router.urls))]
