from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import NotificationViewSet

app_name = "notifications_api"

router = DefaultRouter()
router.register(r"notifications", NotificationViewSet, basename="notification")

urlpatterns = [path("", include(router.urls))]
