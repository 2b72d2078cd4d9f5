from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import AnnouncementViewSet

app_name = "announcements_api"

router = DefaultRouter()
router.register(r"announcements", AnnouncementViewSet, basename="announcement")

urlpatterns = [path("", include(router.urls))]
