from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .api import MessageViewSet

app_name = "messaging_api"

router = DefaultRouter()
router.register(r"messages", MessageViewSet, basename="message")

urlpatterns = [path("", include(router.urls))]
