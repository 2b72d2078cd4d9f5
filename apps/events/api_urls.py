from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import AttendanceViewSet, EventViewSet

app_name = "events_api"

router = DefaultRouter()
router.register(r"events", EventViewSet, basename="event")
router.register(r"attendance", AttendanceViewSet, basename="attendance")

urlpatterns = [path("", include(router.urls))]
